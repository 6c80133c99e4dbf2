"""
Tests for WBSAggregationService.

Covers:
- Leaf-to-root propagation and the create/update/delete hook
- Bottom-up hierarchy rebuild using this run's recomputed children
- Per-node failure isolation
- Cycle and depth guards
- Diagnostics and structured log events
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from portfolio_config.schema import EngineConfiguration, HierarchyConfig
from portfolio_engines.aggregation_types import (
    AggregatedStatus,
    AggregationOptions,
    ProgressWeighting,
    WBSItemStatus,
)
from portfolio_kernel.exceptions import (
    DataAccessError,
    HierarchyCycleError,
    HierarchyDepthExceededError,
)
from portfolio_modules.wbs.orm import WBSItemModel
from portfolio_modules.wbs.service import WBSAggregationService
from portfolio_modules.wbs.store import SqlAlchemyWBSStore

DELETED_AT = datetime(2024, 5, 1, tzinfo=timezone.utc)


class FailingStore(SqlAlchemyWBSStore):
    """Store whose aggregation writes fail for selected node ids."""

    def __init__(self, session, fail_ids: set[UUID]):
        super().__init__(session)
        self.fail_ids = fail_ids

    def apply_update(self, update, actor_id=None):
        if update.id in self.fail_ids:
            raise RuntimeError("simulated write failure")
        super().apply_update(update, actor_id=actor_id)


class UnavailableStore(SqlAlchemyWBSStore):
    """Store whose hierarchy reads fail as if the database went away."""

    def __init__(self, session):
        super().__init__(session)
        self.rollbacks = 0

    def get_children(self, parent_id):
        raise DataAccessError(f"load children of {parent_id}", "connection lost")

    def list_project_nodes(self, project_id):
        raise DataAccessError(f"list nodes of {project_id}", "connection lost")

    def rollback(self):
        self.rollbacks += 1
        super().rollback()


@pytest.fixture
def service(store, clock):
    return WBSAggregationService(store, clock=clock)


@pytest.fixture
def three_child_tree(add_node):
    """Root with Completed / InProgress / NotStarted children, 500 planned each."""
    root = add_node("Root", code="1")
    leaves = [
        add_node(
            "Design", parent=root, status=WBSItemStatus.COMPLETED,
            percent_complete=Decimal("100"), planned_cost=Decimal("500"),
            planned_start=date(2024, 1, 1), planned_end=date(2024, 1, 31),
        ),
        add_node(
            "Build", parent=root, status=WBSItemStatus.IN_PROGRESS,
            percent_complete=Decimal("50"), planned_cost=Decimal("500"),
            planned_start=date(2024, 2, 1), planned_end=date(2024, 2, 29),
        ),
        add_node(
            "Test", parent=root, status=WBSItemStatus.NOT_STARTED,
            percent_complete=Decimal("0"), planned_cost=Decimal("500"),
            planned_start=date(2024, 3, 1), planned_end=date(2024, 3, 31),
        ),
    ]
    return root, leaves


@pytest.fixture
def nested_tree(add_node):
    """Root -> Phase -> two completed leaves (300 + 200 planned)."""
    root = add_node("Root")
    phase = add_node("Phase", parent=root)
    add_node(
        "Leaf A", parent=phase, status=WBSItemStatus.COMPLETED,
        percent_complete=Decimal("100"), planned_cost=Decimal("300"),
    )
    add_node(
        "Leaf B", parent=phase, status=WBSItemStatus.COMPLETED,
        percent_complete=Decimal("100"), planned_cost=Decimal("200"),
    )
    return root, phase


class TestPropagateFromLeaf:
    """Tests for propagate_from_leaf."""

    def test_three_child_scenario(self, service, store, three_child_tree):
        root, leaves = three_child_tree

        result = service.propagate_from_leaf(leaves[1])

        assert result.updated == 1
        assert result.errors == ()
        node = store.get_node(root)
        assert node.aggregated_status == AggregatedStatus.MIXED
        assert node.percent_complete == 50
        assert node.aggregated_cost == Decimal("1500")
        assert node.aggregated_start == date(2024, 1, 1)
        assert node.aggregated_end == date(2024, 3, 31)

    def test_updates_every_ancestor_nearest_first(self, service, store, nested_tree):
        root, phase = nested_tree
        leaf = store.get_children(phase)[0].id

        result = service.propagate_from_leaf(leaf)

        assert [u.id for u in result.updates] == [phase, root]
        assert store.get_node(phase).aggregated_cost == Decimal("500")
        assert store.get_node(root).aggregated_status == AggregatedStatus.COMPLETED
        assert store.get_node(root).percent_complete == 100
        assert store.get_node(root).aggregated_cost == Decimal("500")

    def test_root_change_updates_nothing(self, service, three_child_tree):
        root, _ = three_child_tree

        result = service.propagate_from_leaf(root)

        assert result.updated == 0
        assert result.errors == ()

    def test_unknown_node_is_noop(self, service, captured_logs):
        missing = uuid4()

        result = service.propagate_from_leaf(missing)

        assert result.changed_node_id == missing
        assert result.updates == ()
        assert result.errors == ()
        skipped = [r for r in captured_logs() if r["message"] == "wbs_propagation_skipped"]
        assert skipped and skipped[0]["node_id"] == str(missing)

    def test_soft_deleted_sibling_excluded(self, service, store, add_node):
        root = add_node("Root")
        live = add_node(
            "Live", parent=root, status=WBSItemStatus.COMPLETED,
            percent_complete=Decimal("100"), planned_cost=Decimal("500"),
        )
        add_node(
            "Gone", parent=root, status=WBSItemStatus.NOT_STARTED,
            planned_cost=Decimal("1000"), deleted_at=DELETED_AT,
        )

        service.propagate_from_leaf(live)

        node = store.get_node(root)
        assert node.aggregated_status == AggregatedStatus.COMPLETED
        assert node.percent_complete == 100
        assert node.aggregated_cost == Decimal("500")

    def test_explicit_options_override_defaults(self, service, store, add_node):
        root = add_node("Root")
        done = add_node(
            "Big", parent=root, status=WBSItemStatus.COMPLETED,
            percent_complete=Decimal("100"), planned_cost=Decimal("900"),
        )
        add_node(
            "Small", parent=root, status=WBSItemStatus.NOT_STARTED,
            planned_cost=Decimal("100"),
        )

        service.propagate_from_leaf(
            done, options=AggregationOptions(progress_weighting=ProgressWeighting.EQUAL),
        )

        assert store.get_node(root).percent_complete == 50

    def test_write_failure_is_collected(self, session, clock, three_child_tree):
        root, leaves = three_child_tree
        service = WBSAggregationService(FailingStore(session, {root}), clock=clock)

        result = service.propagate_from_leaf(leaves[0])

        assert result.updated == 0
        assert result.errors == (f"Failed to update {root}: simulated write failure",)


class TestApplyNodeChange:
    """Tests for the create/update/delete hook."""

    def test_branch_is_reaggregated_before_ancestors(self, service, store, nested_tree):
        root, phase = nested_tree

        result = service.apply_node_change(phase)

        assert [u.id for u in result.updates] == [phase, root]
        assert store.get_node(root).aggregated_cost == Decimal("500")

    def test_deleted_node_drops_out_of_parent(self, service, store, session, three_child_tree):
        root, leaves = three_child_tree
        service.propagate_from_leaf(leaves[0])
        assert store.get_node(root).aggregated_cost == Decimal("1500")

        session.get(WBSItemModel, leaves[2]).deleted_at = DELETED_AT
        session.commit()
        result = service.apply_node_change(leaves[2])

        assert [u.id for u in result.updates] == [root]
        node = store.get_node(root)
        assert node.aggregated_cost == Decimal("1000")
        assert node.percent_complete == 75
        assert node.aggregated_end == date(2024, 2, 29)

    def test_unknown_node_is_noop(self, service):
        result = service.apply_node_change(uuid4())

        assert result.updates == ()

    def test_branch_losing_last_child_becomes_leaf(self, service, store, session, add_node):
        root = add_node("Root")
        phase = add_node("Phase", parent=root)
        leaf = add_node(
            "Leaf", parent=phase, status=WBSItemStatus.COMPLETED,
            percent_complete=Decimal("100"), planned_cost=Decimal("100"),
        )
        service.propagate_from_leaf(leaf)
        assert store.get_node(phase).aggregated_status == AggregatedStatus.COMPLETED

        session.get(WBSItemModel, leaf).deleted_at = DELETED_AT
        row = session.get(WBSItemModel, phase)
        row.status = WBSItemStatus.IN_PROGRESS.value
        row.percent_complete = Decimal("40")
        session.commit()
        result = service.apply_node_change(phase)

        assert result.errors == ()
        node = store.get_node(phase)
        assert node.aggregated_status is None
        assert node.aggregated_cost == Decimal("0")
        assert node.aggregated_start is None
        assert node.aggregated_end is None
        top = store.get_node(root)
        assert top.aggregated_status == AggregatedStatus.IN_PROGRESS
        assert top.percent_complete == 40

    def test_deleting_last_child_clears_parent(self, service, store, session, add_node):
        root = add_node("Root")
        leaf = add_node(
            "Leaf", parent=root, status=WBSItemStatus.COMPLETED,
            percent_complete=Decimal("100"), planned_cost=Decimal("100"),
        )
        service.propagate_from_leaf(leaf)

        session.get(WBSItemModel, leaf).deleted_at = DELETED_AT
        session.commit()
        result = service.apply_node_change(leaf)

        assert result.updates == ()
        assert result.errors == ()
        assert store.get_node(root).aggregated_status is None
        assert store.get_node(root).aggregated_cost == Decimal("0")


class TestRebuildHierarchy:
    """Tests for rebuild_hierarchy."""

    def test_parent_uses_recomputed_children(self, service, store, nested_tree, project_id):
        root, phase = nested_tree

        result = service.rebuild_hierarchy(project_id)

        assert result.project_id == project_id
        assert result.updated == 2
        assert result.errors == ()
        node = store.get_node(root)
        assert node.aggregated_status == AggregatedStatus.COMPLETED
        assert node.percent_complete == 100
        assert node.aggregated_cost == Decimal("500")

    def test_rebuild_is_idempotent(self, service, store, nested_tree, project_id):
        root, _ = nested_tree

        service.rebuild_hierarchy(project_id)
        first = store.get_node(root)
        service.rebuild_hierarchy(project_id)
        second = store.get_node(root)

        assert first.aggregated_status == second.aggregated_status
        assert first.percent_complete == second.percent_complete
        assert first.aggregated_cost == second.aggregated_cost

    def test_failed_node_does_not_abort_rebuild(self, session, clock, store, nested_tree, project_id):
        root, phase = nested_tree
        service = WBSAggregationService(FailingStore(session, {phase}), clock=clock)

        result = service.rebuild_hierarchy(project_id)

        assert result.updated == 1
        assert result.errors == (f"Failed to update {phase}: simulated write failure",)
        # root saw the phase's stale stored values
        node = store.get_node(root)
        assert node.aggregated_status == AggregatedStatus.NOT_STARTED
        assert node.aggregated_cost == Decimal("0")

    def test_other_projects_untouched(self, service, store, add_node, project_id):
        other = uuid4()
        foreign_root = add_node("Foreign", project_id=other)
        add_node(
            "Foreign leaf", parent=foreign_root, project_id=other,
            planned_cost=Decimal("700"),
        )

        result = service.rebuild_hierarchy(project_id)

        assert result.updated == 0
        assert store.get_node(foreign_root).aggregated_cost == Decimal("0")

    def test_childless_former_branch_is_cleared(self, service, store, session, nested_tree, project_id):
        root, phase = nested_tree
        service.rebuild_hierarchy(project_id)
        for child in store.get_children(phase):
            session.get(WBSItemModel, child.id).deleted_at = DELETED_AT
        row = session.get(WBSItemModel, phase)
        row.status = WBSItemStatus.IN_PROGRESS.value
        row.percent_complete = Decimal("40")
        session.commit()

        result = service.rebuild_hierarchy(project_id)

        assert result.updated == 1
        assert result.errors == ()
        assert store.get_node(phase).aggregated_status is None
        top = store.get_node(root)
        assert top.aggregated_status == AggregatedStatus.IN_PROGRESS
        assert top.percent_complete == 40
        assert top.aggregated_cost == Decimal("0")

    def test_unavailable_store_rolls_back_and_raises(self, session, clock, project_id):
        store = UnavailableStore(session)
        service = WBSAggregationService(store, clock=clock)

        with pytest.raises(DataAccessError) as exc_info:
            service.rebuild_hierarchy(project_id)

        assert exc_info.value.code == "DATA_ACCESS_FAILED"
        assert store.rollbacks == 1

    def test_logs_start_and_completion(self, service, nested_tree, project_id, captured_logs):
        service.rebuild_hierarchy(project_id)

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert "hierarchy_rebuild_started" in messages
        completed = next(r for r in logs if r["message"] == "hierarchy_rebuild_completed")
        assert completed["updated"] == 2
        assert completed["error_count"] == 0
        aggregated = [r for r in logs if r["message"] == "wbs_node_aggregated"]
        assert len(aggregated) == 2
        assert all(r["project_id"] == str(project_id) for r in aggregated)

    def test_actor_bound_to_log_records(self, store, clock, nested_tree, project_id, captured_logs):
        actor = uuid4()
        service = WBSAggregationService(store, clock=clock, actor_id=actor)

        service.rebuild_hierarchy(project_id)

        aggregated = [r for r in captured_logs() if r["message"] == "wbs_node_aggregated"]
        assert aggregated
        assert all(r["actor_id"] == str(actor) for r in aggregated)


class TestHierarchyGuards:
    """Cycle and depth detection on ancestor walks."""

    def test_cycle_raises(self, service, session, add_node):
        a = add_node("A")
        b = add_node("B", parent=a)
        session.get(WBSItemModel, a).parent_id = b
        session.commit()

        with pytest.raises(HierarchyCycleError) as exc_info:
            service.propagate_from_leaf(b)

        assert exc_info.value.code == "HIERARCHY_CYCLE"
        assert exc_info.value.chain == [str(b), str(a), str(b)]

    def test_depth_exceeded_raises(self, store, clock, nested_tree):
        _, phase = nested_tree
        leaf = store.get_children(phase)[0].id
        config = EngineConfiguration(
            config_id="shallow", version=1, checksum="test",
            hierarchy=HierarchyConfig(max_depth=1),
        )
        service = WBSAggregationService(store, clock=clock, config=config)

        with pytest.raises(HierarchyDepthExceededError) as exc_info:
            service.propagate_from_leaf(leaf)

        assert exc_info.value.max_depth == 1

    def test_unavailable_store_rolls_back_and_raises(self, session, clock, nested_tree):
        _, phase = nested_tree
        leaf = SqlAlchemyWBSStore(session).get_children(phase)[0].id
        store = UnavailableStore(session)
        service = WBSAggregationService(store, clock=clock)

        with pytest.raises(DataAccessError) as exc_info:
            service.propagate_from_leaf(leaf)

        assert "connection lost" in str(exc_info.value)
        assert store.rollbacks == 1

    def test_dangling_parent_ends_walk(self, service, session, add_node):
        orphan = add_node("Orphan")
        session.get(WBSItemModel, orphan).parent_id = uuid4()
        session.commit()

        result = service.propagate_from_leaf(orphan)

        assert result.updates == ()


class TestDiagnostics:
    """Tests for get_node_aggregation and get_node_summary."""

    def test_aggregation_is_timestamped_by_clock(self, service, clock, three_child_tree):
        root, _ = three_child_tree

        result = service.get_node_aggregation(root)

        assert result.timestamp == clock.now()
        assert result.status.status == AggregatedStatus.MIXED
        assert result.cost.total_cost == Decimal("1500")

    def test_summary_is_logged(self, service, three_child_tree, captured_logs):
        root, _ = three_child_tree

        summary = service.get_node_summary(root)

        assert summary.child_count == 3
        assert summary.date_range_span.days == 90
        assert any(r["message"] == "wbs_aggregation_summary" for r in captured_logs())

    def test_unknown_node_returns_none(self, service):
        assert service.get_node_aggregation(uuid4()) is None
        assert service.get_node_summary(uuid4()) is None
