"""
Tests for status aggregation.

Covers:
- Uniform child statuses pass through
- Any heterogeneous mix resolves to Mixed
- Branch children contribute their aggregated status
- Per-status counts
"""

from portfolio_engines.aggregation_types import AggregatedStatus, WBSItemStatus
from portfolio_engines.status import aggregate_status, count_statuses, resolve_status


class TestResolveStatus:
    """Tests for the status priority law."""

    def test_no_children_is_not_started(self):
        assert resolve_status([]) == AggregatedStatus.NOT_STARTED

    def test_all_completed(self):
        statuses = [AggregatedStatus.COMPLETED] * 3
        assert resolve_status(statuses) == AggregatedStatus.COMPLETED

    def test_all_cancelled(self):
        statuses = [AggregatedStatus.CANCELLED] * 2
        assert resolve_status(statuses) == AggregatedStatus.CANCELLED

    def test_single_delayed(self):
        assert resolve_status([AggregatedStatus.DELAYED]) == AggregatedStatus.DELAYED

    def test_delayed_with_completed_is_mixed(self):
        statuses = [AggregatedStatus.DELAYED, AggregatedStatus.COMPLETED]
        assert resolve_status(statuses) == AggregatedStatus.MIXED

    def test_in_progress_with_not_started_is_mixed(self):
        statuses = [AggregatedStatus.IN_PROGRESS, AggregatedStatus.NOT_STARTED]
        assert resolve_status(statuses) == AggregatedStatus.MIXED

    def test_completed_with_not_started_is_mixed(self):
        """No single status describes a finished-plus-unstarted set."""
        statuses = [AggregatedStatus.COMPLETED, AggregatedStatus.NOT_STARTED]
        assert resolve_status(statuses) == AggregatedStatus.MIXED

    def test_completed_with_cancelled_is_mixed(self):
        statuses = [AggregatedStatus.COMPLETED, AggregatedStatus.CANCELLED]
        assert resolve_status(statuses) == AggregatedStatus.MIXED

    def test_all_mixed_stays_mixed(self):
        statuses = [AggregatedStatus.MIXED, AggregatedStatus.MIXED]
        assert resolve_status(statuses) == AggregatedStatus.MIXED


class TestAggregateStatus:
    """Tests for aggregate_status over engine inputs."""

    def test_branch_child_uses_aggregated_status(self, child):
        """A branch whose own status is stale contributes its rollup."""
        children = [
            child(
                status=WBSItemStatus.NOT_STARTED,
                aggregated_status=AggregatedStatus.COMPLETED,
            ),
            child(status=WBSItemStatus.COMPLETED),
        ]

        result = aggregate_status(children=children)

        assert result.status == AggregatedStatus.COMPLETED
        assert result.has_children is True

    def test_counts_every_status(self, child):
        children = [
            child(status=WBSItemStatus.COMPLETED),
            child(status=WBSItemStatus.COMPLETED),
            child(status=WBSItemStatus.DELAYED),
        ]

        result = aggregate_status(children=children)

        assert result.status == AggregatedStatus.MIXED
        assert result.child_statuses[AggregatedStatus.COMPLETED] == 2
        assert result.child_statuses[AggregatedStatus.DELAYED] == 1
        assert result.child_statuses[AggregatedStatus.MIXED] == 0

    def test_empty_children(self):
        result = aggregate_status(children=[])

        assert result.status == AggregatedStatus.NOT_STARTED
        assert result.has_children is False

    def test_count_statuses_has_all_keys(self):
        counts = count_statuses([])
        assert set(counts) == set(AggregatedStatus)
        assert all(n == 0 for n in counts.values())
