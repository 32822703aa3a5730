# modules/groups/__init__.py
"""HSM group membership management module.

Nodes of the cluster are identified by their xname and organized into named,
possibly overlapping HSM groups. This module reconciles group memberships
against the remote group store.

Features:
- Bounded concurrent reads of many groups, tolerant to per-group failures
- Pure set arithmetic for merges, deletions and migrations
- Node migrations between groups with dry-run and apply modes
- Node id validation before any write
"""

from modules.groups.fetcher import ConcurrentFetcher
from modules.groups.migration import MigrationPlanner
from modules.groups.service import GroupMembershipService
from modules.groups.validation import StoreNodeValidator

__all__ = [
    "ConcurrentFetcher",
    "GroupMembershipService",
    "MigrationPlanner",
    "StoreNodeValidator",
]
