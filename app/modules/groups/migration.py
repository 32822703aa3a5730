"""Migration of nodes between two groups.

A migration moves a set of nodes from a parent group to a target group:

    Validating -> Reading -> Reconciling -> Reporting | Applying -> Done

Nothing is kept between calls. A retried migration validates and reads again
from scratch.

The apply phase is not atomic. Each node is added to the target and then
removed from the parent; a failure on one node is recorded and logged and the
remaining nodes are still processed. The returned member lists are the
computed intent, callers needing certainty must fetch both groups again.
"""

from typing import Iterable, List, Optional

from core.logging import get_module_logger
from modules.groups.domain.errors import GroupsError, UpstreamError, ValidationError
from modules.groups.domain.models import (
    FetchResult,
    MigrationResult,
    NodeId,
    NodeMigration,
    NodeMigrationState,
)
from modules.groups.domain.types import GroupStore, NodeValidator
from modules.groups.fetcher import ConcurrentFetcher
from modules.groups.reconciler import compute_migration_state, normalize

logger = get_module_logger()


def _require_members(fetch: FetchResult, label: str) -> set:
    """Return the members read for label or raise if the read failed."""
    if label in fetch.members:
        return fetch.members[label]
    failure = fetch.failure_for(label)
    cause = failure.cause if failure else None
    raise UpstreamError(
        f"Could not read members of group '{label}'",
        status=getattr(cause, "status", None),
        payload=getattr(cause, "payload", None),
        retryable=getattr(cause, "retryable", False),
        retry_after=getattr(cause, "retry_after", None),
    ) from cause


class MigrationPlanner:
    """Plans and optionally applies node migrations.

    Args:
        store: Group store the writes are issued against
        validator: Checks node format and parent membership
        fetcher: Reads the current state of both groups
        timeout: Per-request timeout in seconds for the apply calls
    """

    def __init__(
        self,
        store: GroupStore,
        validator: NodeValidator,
        fetcher: ConcurrentFetcher,
        timeout: Optional[float] = None,
    ):
        self._store = store
        self._validator = validator
        self._fetcher = fetcher
        self.timeout = timeout

    def migrate(
        self,
        parent_label: str,
        target_label: str,
        moving_nodes: Iterable[NodeId],
        apply: bool = False,
    ) -> MigrationResult:
        """Move nodes from parent_label to target_label.

        Args:
            parent_label: Group the nodes currently belong to
            target_label: Group the nodes move to
            moving_nodes: Node ids to move
            apply: Issue the writes when True, only report when False

        Returns:
            MigrationResult with the new member lists of both groups and the
            per-node apply records

        Raises:
            ValidationError: If a node is malformed or not in the parent group.
                Raised before any read of the groups or any write.
            UpstreamError: If either group could not be read
            ConcurrencyError: If the fetch pool failed
        """
        moving = normalize(moving_nodes)
        log = logger.bind(
            operation="migrate",
            parent_label=parent_label,
            target_label=target_label,
            node_count=len(moving),
            apply=apply,
        )

        if not moving:
            raise ValidationError("No nodes to migrate")
        if parent_label == target_label:
            raise ValidationError(
                f"Parent and target group are the same: '{parent_label}'", moving
            )
        invalid = self._invalid_nodes(moving, parent_label)
        if invalid:
            log.warning("migration_validation_failed", nodes=invalid)
            raise ValidationError(f"Nodes '{', '.join(invalid)}' not valid", invalid)

        fetch = self._fetcher.fetch_members([target_label, parent_label])
        target_existing = _require_members(fetch, target_label)
        parent_existing = _require_members(fetch, parent_label)

        target_new, parent_new = compute_migration_state(
            target_existing, parent_existing, moving
        )
        result = MigrationResult(
            target_label=target_label,
            parent_label=parent_label,
            target_members=target_new,
            parent_members=parent_new,
            applied=apply,
        )

        if not apply:
            result.nodes = [NodeMigration(node_id=node) for node in moving]
            report = result.report()
            log.info(
                "migration_dry_run",
                target=report["target"],
                parent=report["parent"],
            )
            return result

        result.nodes = self._apply(parent_label, target_label, moving)
        log.info(
            "migration_applied",
            completed=sum(1 for n in result.nodes if n.is_complete),
            failed=result.failed_nodes,
        )
        return result

    def _apply(
        self, parent_label: str, target_label: str, moving: List[NodeId]
    ) -> List[NodeMigration]:
        """Add each node to the target, then remove it from the parent.

        A node whose add fails is not removed from the parent, so it is never
        missing from both groups.
        """
        records = []
        for node in moving:
            record = NodeMigration(node_id=node)
            records.append(record)
            try:
                self._store.post_members(target_label, [node], timeout=self.timeout)
            except GroupsError as exc:
                self._mark_failed(record, NodeMigrationState.ADDED_TO_TARGET, exc)
                continue
            record.state = NodeMigrationState.ADDED_TO_TARGET

            try:
                self._store.delete_member(parent_label, node, timeout=self.timeout)
            except GroupsError as exc:
                self._mark_failed(record, NodeMigrationState.REMOVED_FROM_PARENT, exc)
                continue
            record.state = NodeMigrationState.REMOVED_FROM_PARENT
        return records

    def _invalid_nodes(
        self, moving: List[NodeId], parent_label: str
    ) -> List[NodeId]:
        """Return the rejected ids, all of moving when the validator cannot tell."""
        invalid_nodes = getattr(self._validator, "invalid_nodes", None)
        if invalid_nodes is not None:
            return list(invalid_nodes(moving, parent_label))
        if self._validator.validate_membership(moving, parent_label):
            return []
        return list(moving)

    @staticmethod
    def _mark_failed(
        record: NodeMigration, step: NodeMigrationState, exc: Exception
    ) -> None:
        logger.warning(
            "migration_node_failed",
            node_id=record.node_id,
            step=step.value,
            error=str(exc),
        )
        record.state = NodeMigrationState.FAILED
        record.failed_step = step
        record.error = str(exc)
