"""Data models for the groups module.

Lightweight dataclasses describing HSM groups and the in-memory values that
flow through a reconciliation: fetch outcomes, membership deltas and the
per-node records of a migration. None of them are persisted; the HSM owns
durable state.

Key distinctions:
  - Group: mirror of an HSM group, converted from/to the wire document with
    group_from_dict()/as_canonical_dict()
  - MembershipDelta, FetchResult: produced and consumed inside one operation
  - NodeMigration, MigrationResult: outcome of a migration, returned to callers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

# Location-derived node identifier (xname), e.g. "x1000c0s0b0n0"
NodeId = str


@dataclass
class Group:
    """An HSM group.

    Attributes:
        label: Unique group name, primary key in the HSM.
        members: Node ids belonging to the group.
        description: Free-form description.
        tags: Free-form tags.
        exclusive_group: Name of the exclusive group this group belongs to, if any.
    """

    label: str
    members: Set[NodeId] = field(default_factory=set)
    description: str = ""
    tags: Set[str] = field(default_factory=set)
    exclusive_group: Optional[str] = None

    def __post_init__(self):
        self.members = set(self.members or [])
        self.tags = set(self.tags or [])

    def sorted_members(self) -> List[NodeId]:
        return sorted(self.members)


def group_from_dict(d: dict) -> Group:
    """Convert an HSM group document into a Group.

    The HSM nests member ids under ``members.ids``; both the nested form and
    a flat list are accepted. Missing fields default to empty values.

    Args:
        d: Raw group document

    Returns:
        Group with normalized members and tags

    Raises:
        ValueError: If the document is not a mapping or has no label
    """
    if not isinstance(d, dict) or not d.get("label"):
        raise ValueError(f"Invalid group document: {d!r}")

    raw_members = d.get("members") or {}
    if isinstance(raw_members, dict):
        member_ids = raw_members.get("ids") or []
    else:
        member_ids = raw_members

    return Group(
        label=d["label"],
        members=set(member_ids),
        description=d.get("description") or "",
        tags=set(d.get("tags") or []),
        exclusive_group=d.get("exclusiveGroup"),
    )


def as_canonical_dict(group: Group) -> Dict[str, Any]:
    """Return the HSM document for a Group, members and tags sorted."""
    doc: Dict[str, Any] = {
        "label": group.label,
        "description": group.description,
        "tags": sorted(group.tags),
        "members": {"ids": group.sorted_members()},
    }
    if group.exclusive_group:
        doc["exclusiveGroup"] = group.exclusive_group
    return doc


@dataclass
class MembershipDelta:
    """Members to add to and remove from one group."""

    group_label: str
    additions: Set[NodeId] = field(default_factory=set)
    removals: Set[NodeId] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.additions and not self.removals


@dataclass
class MembershipUpdate:
    """Outcome of adding to or removing from a single group.

    ``members`` is the computed membership after the change. ``failed_nodes``
    lists the nodes whose write failed when the change was applied.
    """

    group_label: str
    members: List[NodeId]
    delta: MembershipDelta
    applied: bool = False
    failed_nodes: List[NodeId] = field(default_factory=list)


@dataclass
class FetchFailure:
    """A group whose membership could not be read."""

    group_label: str
    cause: Exception

    @property
    def message(self) -> str:
        return str(self.cause)


@dataclass
class FetchResult:
    """Aggregate outcome of a bounded concurrent membership fetch.

    Attributes:
        members: label -> member set for every label that was read
        failures: one FetchFailure per failed task
    """

    members: Dict[str, Set[NodeId]] = field(default_factory=dict)
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def failed_labels(self) -> Set[str]:
        return {failure.group_label for failure in self.failures}

    @property
    def is_conclusive(self) -> bool:
        """False when every requested label failed.

        An empty mapping in that case says nothing about the groups; it must
        not be read as "the groups have no members".
        """
        return bool(self.members) or not self.failures

    def failure_for(self, label: str) -> Optional[FetchFailure]:
        return next((f for f in self.failures if f.group_label == label), None)


class NodeMigrationState(Enum):
    """Per-node progress of a migration apply."""

    PENDING = "pending"
    ADDED_TO_TARGET = "added_to_target"
    REMOVED_FROM_PARENT = "removed_from_parent"
    FAILED = "failed"


@dataclass
class NodeMigration:
    """Progress of one node moving from the parent to the target group.

    ``state`` is FAILED when either step failed; ``failed_step`` tells which
    one so a later run can skip what already happened.
    """

    node_id: NodeId
    state: NodeMigrationState = NodeMigrationState.PENDING
    failed_step: Optional[NodeMigrationState] = None
    error: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.state == NodeMigrationState.REMOVED_FROM_PARENT


@dataclass
class MigrationResult:
    """Computed outcome of a migration.

    ``target_members`` and ``parent_members`` are the intended new member
    lists. After an apply they describe intent, not verified remote state.
    """

    target_label: str
    parent_label: str
    target_members: List[NodeId]
    parent_members: List[NodeId]
    applied: bool = False
    nodes: List[NodeMigration] = field(default_factory=list)

    @property
    def failed_nodes(self) -> List[NodeId]:
        return [
            n.node_id for n in self.nodes if n.state == NodeMigrationState.FAILED
        ]

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_nodes)

    def as_tuple(self):
        return self.target_members, self.parent_members

    def report(self) -> Dict[str, Any]:
        """Documents of both groups as they would look after the migration."""
        return {
            "target": as_canonical_dict(
                Group(label=self.target_label, members=set(self.target_members))
            ),
            "parent": as_canonical_dict(
                Group(label=self.parent_label, members=set(self.parent_members))
            ),
            "applied": self.applied,
        }
