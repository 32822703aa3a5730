"""Domain layer - data models, collaborator protocols, and errors."""

from modules.groups.domain.models import (
    FetchFailure,
    FetchResult,
    Group,
    MembershipDelta,
    MembershipUpdate,
    MigrationResult,
    NodeId,
    NodeMigration,
    NodeMigrationState,
)
from modules.groups.domain.errors import (
    ConcurrencyError,
    GroupsError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from modules.groups.domain.types import GroupStore, NodeValidator

__all__ = [
    "FetchFailure",
    "FetchResult",
    "Group",
    "MembershipDelta",
    "MembershipUpdate",
    "MigrationResult",
    "NodeId",
    "NodeMigration",
    "NodeMigrationState",
    "ConcurrencyError",
    "GroupsError",
    "NotFoundError",
    "UpstreamError",
    "ValidationError",
    "GroupStore",
    "NodeValidator",
]
