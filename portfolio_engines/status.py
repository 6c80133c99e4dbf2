"""
portfolio_engines.status -- Priority-based status resolution for WBS parents.

Responsibility:
    Map the statuses of a node's children to one aggregated status and
    report a per-status count for diagnostics.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Uniform child set -> that status (including pure Completed/Cancelled,
      and Mixed when every branch child is itself Mixed).
    - Heterogeneous set containing Delayed or InProgress -> Mixed.
    - Any other heterogeneous set -> Mixed.
    - Zero children -> NotStarted.
    - The result depends only on the multiset of statuses, not their order.

Failure modes:
    None -- total over its input domain.
"""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from portfolio_engines.aggregation_types import (
    AggregatedStatus,
    AggregatedStatusResult,
    AggregationOptions,
    WBSItemForAggregation,
)
from portfolio_engines.tracer import traced_engine


def resolve_status(statuses: Sequence[AggregatedStatus]) -> AggregatedStatus:
    """Apply the priority law to a multiset of child statuses."""
    if not statuses:
        return AggregatedStatus.NOT_STARTED

    distinct = set(statuses)
    if len(distinct) == 1:
        return next(iter(distinct))

    # Heterogeneous: Delayed/InProgress dominate to Mixed, and a mix of
    # NotStarted/Completed/Cancelled has no single status either.
    return AggregatedStatus.MIXED


def count_statuses(statuses: Sequence[AggregatedStatus]) -> dict[AggregatedStatus, int]:
    """Count per status; every status appears in the map, zero or not."""
    counts = Counter(statuses)
    return {status: counts.get(status, 0) for status in AggregatedStatus}


@traced_engine("status", "1.0", fingerprint_fields=("children",))
def aggregate_status(
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
) -> AggregatedStatusResult:
    """
    Resolve the aggregated status of a parent from its children.

    A branch child contributes its own aggregated status; a leaf child its
    authored status.  ``options`` is accepted for a uniform aggregator
    signature; ``cancelled_as_complete`` is not consulted.
    """
    statuses = [child.effective_status for child in children]
    return AggregatedStatusResult(
        status=resolve_status(statuses),
        child_statuses=count_statuses(statuses),
        has_children=bool(children),
    )
