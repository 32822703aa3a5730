"""Service layer for the groups module.

Synchronous entry points for in-process callers. The service wires the group
store into the fetcher, validator and migration planner, and implements the
single-group operations (add, update) on top of the reconciler.

Every mutating operation is a dry-run unless called with ``apply=True``. A
dry-run computes and logs the change and never issues a write.
"""

from typing import Dict, Iterable, List, Optional, Set

from core.logging import get_module_logger
from modules.groups.domain.errors import GroupsError, ValidationError
from modules.groups.domain.models import (
    Group,
    MembershipUpdate,
    MigrationResult,
    NodeId,
)
from modules.groups.domain.types import GroupStore, NodeValidator
from modules.groups.fetcher import ConcurrentFetcher
from modules.groups.migration import MigrationPlanner
from modules.groups.reconciler import (
    compute_delete_retained,
    compute_delta,
    filter_groups_by_label,
    filter_groups_by_member,
    merge_and_normalize,
    normalize,
)
from modules.groups.validation import StoreNodeValidator, invalid_xnames

logger = get_module_logger()

__all__ = ["GroupMembershipService"]


class GroupMembershipService:
    """Group membership operations against one group store.

    Args:
        store: Group store (HSM client or any GroupStore implementation)
        fetcher: Bulk fetcher, built from the store when omitted
        validator: Node validator, built from the store when omitted
        timeout: Per-request timeout in seconds for single reads and writes
    """

    def __init__(
        self,
        store: GroupStore,
        fetcher: Optional[ConcurrentFetcher] = None,
        validator: Optional[NodeValidator] = None,
        timeout: Optional[float] = None,
    ):
        self._store = store
        self.timeout = timeout
        self.fetcher = fetcher or ConcurrentFetcher(store, timeout=timeout)
        self.validator = validator or StoreNodeValidator(store, timeout=timeout)
        self.planner = MigrationPlanner(
            store, self.validator, self.fetcher, timeout=timeout
        )

    # Reads

    def list_labels(self) -> List[str]:
        """Return the labels of every group, sorted."""
        groups = self._store.get_all(timeout=self.timeout)
        return sorted(group.label for group in groups)

    def get_group(self, label: str) -> Group:
        return self._store.get_one(label, timeout=self.timeout)

    def get_group_map(self, labels: Iterable[str]) -> Dict[str, Set[NodeId]]:
        """Map the requested labels to their members from one bulk listing."""
        groups = self._store.get_all(timeout=self.timeout)
        return filter_groups_by_label(groups, labels)

    def get_group_map_by_members(
        self, node_ids: Iterable[NodeId]
    ) -> Dict[str, Set[NodeId]]:
        """Map every group holding any of node_ids to the nodes it holds."""
        groups = self._store.get_all(timeout=self.timeout)
        return filter_groups_by_member(groups, node_ids)

    def get_members_for_groups(self, labels: Iterable[str]) -> List[NodeId]:
        """Return the sorted union of members of the given groups.

        Groups that cannot be read are logged and skipped.
        """
        return self.fetcher.fetch_member_list(labels)

    # Writes

    def create_group(self, group: Group, apply: bool = False) -> Group:
        log = logger.bind(operation="create_group", group_label=group.label)
        if not apply:
            log.info("dry_run_create_group", members=group.sorted_members())
            return group
        self._store.post(group, timeout=self.timeout)
        log.info("group_created", member_count=len(group.members))
        return group

    def delete_group(self, label: str, apply: bool = False) -> None:
        log = logger.bind(operation="delete_group", group_label=label)
        if not apply:
            log.info("dry_run_delete_group")
            return
        self._store.delete_group(label, timeout=self.timeout)
        log.info("group_deleted")

    def add_members(
        self, label: str, node_ids: Iterable[NodeId], apply: bool = False
    ) -> MembershipUpdate:
        """Add nodes to a group.

        Each node is posted on its own; a failed post is logged and recorded
        in ``failed_nodes`` and the remaining nodes are still posted.

        Raises:
            ValidationError: If a node id is malformed
            UpstreamError: If the current members cannot be read
        """
        additions = normalize(node_ids)
        log = logger.bind(
            operation="add_members", group_label=label, node_count=len(additions)
        )
        self._validate_format(additions)

        current = self._store.get_members(label, timeout=self.timeout)
        members = merge_and_normalize(current, additions)
        update = MembershipUpdate(
            group_label=label,
            members=members,
            delta=compute_delta(label, current, members),
            applied=apply,
        )

        if not apply:
            log.info("dry_run_add_members", additions=additions)
            return update

        for node in additions:
            try:
                self._store.post_members(label, [node], timeout=self.timeout)
            except GroupsError as exc:
                log.warning("add_member_failed", node_id=node, error=str(exc))
                update.failed_nodes.append(node)
        log.info("members_added", failed=update.failed_nodes)
        return update

    def update_members(
        self,
        label: str,
        to_remove: Iterable[NodeId],
        to_add: Iterable[NodeId],
        apply: bool = False,
    ) -> MembershipUpdate:
        """Remove and add nodes of a single group in one pass.

        Removals are computed first, then additions are merged in, so a node
        listed in both ends up in the group.

        Raises:
            ValidationError: If a node id to add is malformed
            NotFoundError: If the group does not exist
        """
        removals = normalize(to_remove)
        additions = normalize(to_add)
        log = logger.bind(operation="update_members", group_label=label)
        self._validate_format(additions)

        group = self._store.get_one(label, timeout=self.timeout)
        retained = compute_delete_retained(group.members, removals)
        members = merge_and_normalize(retained, additions)
        delta = compute_delta(label, group.members, members)
        update = MembershipUpdate(
            group_label=label, members=members, delta=delta, applied=apply
        )

        if not apply:
            log.info(
                "dry_run_update_members",
                removals=sorted(delta.removals),
                additions=sorted(delta.additions),
            )
            return update

        for node in sorted(delta.removals):
            try:
                self._store.delete_member(label, node, timeout=self.timeout)
            except GroupsError as exc:
                log.warning("remove_member_failed", node_id=node, error=str(exc))
                update.failed_nodes.append(node)
        for node in sorted(delta.additions):
            try:
                self._store.post_members(label, [node], timeout=self.timeout)
            except GroupsError as exc:
                log.warning("add_member_failed", node_id=node, error=str(exc))
                update.failed_nodes.append(node)
        log.info("members_updated", failed=update.failed_nodes)
        return update

    def migrate(
        self,
        parent_label: str,
        target_label: str,
        node_ids: Iterable[NodeId],
        apply: bool = False,
    ) -> MigrationResult:
        """Move nodes from parent_label to target_label. See MigrationPlanner."""
        return self.planner.migrate(parent_label, target_label, node_ids, apply=apply)

    @staticmethod
    def _validate_format(node_ids: List[NodeId]) -> None:
        invalid = invalid_xnames(node_ids)
        if invalid:
            raise ValidationError(f"Nodes '{', '.join(invalid)}' not valid", invalid)
