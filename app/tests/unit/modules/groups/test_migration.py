"""Unit tests for node migrations between groups."""

import pytest

from modules.groups.domain.errors import UpstreamError, ValidationError
from modules.groups.domain.models import NodeMigrationState
from modules.groups.fetcher import ConcurrentFetcher
from modules.groups.migration import MigrationPlanner
from modules.groups.validation import StoreNodeValidator
from tests.fixtures.group_store import FakeGroupStore, StaticValidator

pytestmark = pytest.mark.unit

N1, N2, N4, N5, N6 = (
    "x1000c0s0b0n1",
    "x1000c0s0b0n2",
    "x1000c0s0b0n4",
    "x1000c0s0b0n5",
    "x1000c0s0b0n6",
)


def make_planner(store, validator=None):
    return MigrationPlanner(
        store,
        validator or StoreNodeValidator(store),
        ConcurrentFetcher(store, concurrency_limit=2),
    )


class TestDryRun:
    def test_dry_run_computes_new_memberships(self, fake_store):
        result = make_planner(fake_store).migrate("parent", "target", [N5])

        assert result.target_members == [N1, N2, N5]
        assert result.parent_members == [N4, N6]
        assert result.as_tuple() == ([N1, N2, N5], [N4, N6])
        assert not result.applied

    def test_dry_run_issues_no_writes(self, fake_store):
        make_planner(fake_store).migrate("parent", "target", [N5])

        assert fake_store.mutating_calls == []
        assert fake_store.groups["parent"] == {N4, N5, N6}
        assert fake_store.groups["target"] == {N1, N2}

    def test_dry_run_nodes_stay_pending(self, fake_store):
        result = make_planner(fake_store).migrate("parent", "target", [N5, N4])
        assert [n.node_id for n in result.nodes] == [N4, N5]
        assert all(n.state == NodeMigrationState.PENDING for n in result.nodes)
        assert not result.partial_failure

    def test_report_documents(self, fake_store):
        report = make_planner(fake_store).migrate("parent", "target", [N5]).report()
        assert report["target"]["label"] == "target"
        assert report["target"]["members"] == {"ids": [N1, N2, N5]}
        assert report["parent"]["members"] == {"ids": [N4, N6]}
        assert report["applied"] is False

    def test_duplicate_moving_nodes_collapse(self, fake_store):
        result = make_planner(fake_store).migrate("parent", "target", [N5, N5])
        assert result.target_members == [N1, N2, N5]
        assert len(result.nodes) == 1


class TestValidation:
    def test_rejected_nodes_raise_before_any_read(self, fake_store):
        planner = make_planner(fake_store, StaticValidator(valid=False))

        with pytest.raises(ValidationError) as exc_info:
            planner.migrate("parent", "target", [N1])

        assert exc_info.value.node_ids == [N1]
        assert fake_store.calls == []

    def test_node_not_in_parent_is_rejected(self, fake_store):
        with pytest.raises(ValidationError):
            make_planner(fake_store).migrate("parent", "target", [N1])
        assert fake_store.mutating_calls == []

    def test_malformed_node_is_rejected(self, fake_store):
        with pytest.raises(ValidationError):
            make_planner(fake_store).migrate("parent", "target", ["nid000001"])
        assert fake_store.mutating_calls == []

    def test_empty_node_list_is_rejected(self, fake_store):
        with pytest.raises(ValidationError):
            make_planner(fake_store).migrate("parent", "target", [])

    def test_same_parent_and_target_is_rejected(self, fake_store):
        with pytest.raises(ValidationError):
            make_planner(fake_store).migrate("parent", "parent", [N5])

    def test_only_failing_nodes_are_reported(self, fake_store):
        with pytest.raises(ValidationError) as exc_info:
            make_planner(fake_store).migrate("parent", "target", [N4, N1, N5])
        assert exc_info.value.node_ids == [N1]
        assert N4 not in str(exc_info.value)

    def test_validator_receives_parent_label(self, fake_store):
        validator = StaticValidator(valid=True)
        make_planner(fake_store, validator).migrate("parent", "target", [N5])
        assert validator.calls == [([N5], "parent")]


class TestReadFailures:
    def test_unreadable_target_raises(self):
        store = FakeGroupStore(groups={"parent": {N5}}, failing_reads={"target"})
        planner = make_planner(store, StaticValidator(valid=True))

        with pytest.raises(UpstreamError) as exc_info:
            planner.migrate("parent", "target", [N5])

        assert exc_info.value.status == 500
        assert store.mutating_calls == []

    def test_read_failure_keeps_retry_hint(self):
        store = FakeGroupStore(groups={"parent": {N5}}, failing_reads={"target"})
        planner = make_planner(store, StaticValidator(valid=True))

        with pytest.raises(UpstreamError) as exc_info:
            planner.migrate("parent", "target", [N5])

        assert exc_info.value.retryable

    def test_missing_parent_raises(self):
        store = FakeGroupStore(groups={"target": {N1}})
        planner = make_planner(store, StaticValidator(valid=True))

        with pytest.raises(UpstreamError):
            planner.migrate("parent", "target", [N5])
        assert store.mutating_calls == []


class TestApply:
    def test_apply_moves_nodes(self, fake_store):
        result = make_planner(fake_store).migrate(
            "parent", "target", [N5], apply=True
        )

        assert result.applied
        assert fake_store.groups["target"] == {N1, N2, N5}
        assert fake_store.groups["parent"] == {N4, N6}
        assert fake_store.mutating_calls == [
            ("post_members", "target", (N5,)),
            ("delete_member", "parent", N5),
        ]
        assert result.nodes[0].state == NodeMigrationState.REMOVED_FROM_PARENT
        assert result.nodes[0].is_complete

    def test_failed_add_skips_removal(self, fake_store):
        fake_store.failing_writes = {("post_members", "target", N5)}

        result = make_planner(fake_store).migrate(
            "parent", "target", [N4, N5], apply=True
        )

        assert result.partial_failure
        assert result.failed_nodes == [N5]
        failed = next(n for n in result.nodes if n.node_id == N5)
        assert failed.failed_step == NodeMigrationState.ADDED_TO_TARGET
        # N5 stays in the parent, N4 moved
        assert fake_store.groups["parent"] == {N5, N6}
        assert fake_store.groups["target"] == {N1, N2, N4}
        assert ("delete_member", "parent", N5) not in fake_store.calls

    def test_failed_removal_is_recorded(self, fake_store):
        fake_store.failing_writes = {("delete_member", "parent", N5)}

        result = make_planner(fake_store).migrate(
            "parent", "target", [N5], apply=True
        )

        assert result.failed_nodes == [N5]
        assert result.nodes[0].failed_step == NodeMigrationState.REMOVED_FROM_PARENT
        assert result.nodes[0].error
        assert N5 in fake_store.groups["target"]
        assert N5 in fake_store.groups["parent"]

    def test_rerun_after_partial_apply_completes(self, fake_store):
        fake_store.failing_writes = {("delete_member", "parent", N5)}
        planner = make_planner(fake_store)
        planner.migrate("parent", "target", [N5], apply=True)

        fake_store.failing_writes = set()
        result = planner.migrate("parent", "target", [N5], apply=True)

        assert not result.partial_failure
        assert result.as_tuple() == ([N1, N2, N5], [N4, N6])
        assert fake_store.groups["target"] == {N1, N2, N5}
        assert fake_store.groups["parent"] == {N4, N6}

    def test_rerun_after_completed_apply_is_rejected(self, fake_store):
        planner = make_planner(fake_store)
        planner.migrate("parent", "target", [N5], apply=True)
        writes_after_first_run = list(fake_store.mutating_calls)

        with pytest.raises(ValidationError) as exc_info:
            planner.migrate("parent", "target", [N5], apply=True)

        assert exc_info.value.node_ids == [N5]
        assert fake_store.mutating_calls == writes_after_first_run
        assert fake_store.groups["target"] == {N1, N2, N5}
        assert fake_store.groups["parent"] == {N4, N6}

    def test_apply_timeout_passed_to_writes(self, fake_store):
        seen = []
        original = fake_store.post_members

        def post_members(label, node_ids, timeout=None):
            seen.append(timeout)
            return original(label, node_ids, timeout=timeout)

        fake_store.post_members = post_members
        planner = MigrationPlanner(
            fake_store,
            StaticValidator(valid=True),
            ConcurrentFetcher(fake_store, concurrency_limit=2),
            timeout=3,
        )
        planner.migrate("parent", "target", [N5], apply=True)
        assert seen == [3]
