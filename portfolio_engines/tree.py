"""
portfolio_engines.tree -- Per-node orchestration of the four aggregators.

Responsibility:
    Combine status, date, progress and cost aggregation for one parent into
    an immutable ``ParentAggregationUpdate``, plus the diagnostic result and
    summary views of the same computation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Walking ancestors and
    writing updates back belongs to ``portfolio_modules.wbs.service``.

Invariants enforced:
    - Idempotence: identical children and options produce an identical
      update record.
    - Purity: no clock access.  ``get_aggregation_result`` takes the
      timestamp from the caller.

Failure modes:
    None -- every aggregator is total over its input domain.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence
from uuid import UUID

from portfolio_engines.aggregation_types import (
    AggregationOptions,
    AggregationSummary,
    CostSummary,
    DateRangeSpan,
    ParentAggregationUpdate,
    WBSAggregationResult,
    WBSItemForAggregation,
)
from portfolio_engines.cost import aggregate_cost
from portfolio_engines.dates import aggregate_dates
from portfolio_engines.progress import aggregate_progress
from portfolio_engines.status import aggregate_status
from portfolio_engines.tracer import traced_engine


@traced_engine("tree", "1.0", fingerprint_fields=("parent_id", "children", "options"))
def aggregate_node(
    parent_id: UUID | str,
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
) -> ParentAggregationUpdate:
    """
    Aggregate all values for one parent from its live children.

    ``percent_complete`` on the update is the weighted progress; it replaces
    the parent's own value when the update is applied.
    """
    dates = aggregate_dates(children=children, options=options)
    status = aggregate_status(children=children, options=options)
    progress = aggregate_progress(children=children, options=options)
    cost = aggregate_cost(children=children, options=options)

    return ParentAggregationUpdate(
        id=parent_id,
        aggregated_start=dates.parent_start,
        aggregated_end=dates.parent_end,
        aggregated_status=status.status,
        percent_complete=progress.weighted_progress,
        aggregated_cost=cost.total_cost,
    )


def get_aggregation_result(
    parent_id: UUID | str,
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
    timestamp: datetime | None = None,
) -> WBSAggregationResult:
    """Full per-aggregator results, including status counts and weight sums."""
    return WBSAggregationResult(
        parent_id=parent_id,
        dates=aggregate_dates(children=children, options=options),
        status=aggregate_status(children=children, options=options),
        progress=aggregate_progress(children=children, options=options),
        cost=aggregate_cost(children=children, options=options),
        timestamp=timestamp,
    )


def get_aggregation_summary(
    parent_id: UUID | str,
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
) -> AggregationSummary:
    """
    Summarize a parent's aggregation for logging/monitoring.

    ``date_range_span`` is present only when both an aggregated start and
    end exist; its ``days`` is the whole-day distance between them.
    """
    result = get_aggregation_result(parent_id, children, options)

    span: DateRangeSpan | None = None
    if result.dates.parent_start and result.dates.parent_end:
        span = DateRangeSpan(
            days=(result.dates.parent_end - result.dates.parent_start).days,
            start_date=result.dates.parent_start,
            end_date=result.dates.parent_end,
        )

    return AggregationSummary(
        parent_id=parent_id,
        child_count=len(children),
        children_with_date_data=sum(1 for c in children if c.has_date_data),
        children_with_cost_data=sum(1 for c in children if c.has_cost_data),
        status_distribution=result.status.child_statuses,
        cost_summary=CostSummary(
            planned_total=result.cost.planned_total,
            actual_total=result.cost.actual_total,
            aggregated_total=result.cost.total_cost,
        ),
        date_range_span=span,
    )
