"""
portfolio_engines.cost -- Planned/actual/aggregated cost rollup across children.

Responsibility:
    Sum children's planned and actual cost and, under recursive aggregation,
    their already-rolled-up aggregated cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - total_cost >= max(planned_total, actual_total) always: the rollup never
      reports less than the larger direct sum, whatever the recursion flag.
    - Missing costs count as 0.  Zero children -> all totals 0.

Failure modes:
    None -- total over its input domain.
"""

from __future__ import annotations

from typing import Sequence

from portfolio_engines._numeric import ZERO
from portfolio_engines.aggregation_types import (
    DEFAULT_AGGREGATION_OPTIONS,
    AggregatedCost,
    AggregationOptions,
    WBSItemForAggregation,
)
from portfolio_engines.tracer import traced_engine


@traced_engine("cost", "1.0", fingerprint_fields=("children", "options"))
def aggregate_cost(
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
) -> AggregatedCost:
    """Sum child costs; total = max(aggregated sum, planned sum, actual sum)."""
    opts = options or DEFAULT_AGGREGATION_OPTIONS

    planned_total = sum((c.planned_cost or ZERO for c in children), ZERO)
    actual_total = sum((c.actual_cost or ZERO for c in children), ZERO)

    total_cost = ZERO
    if opts.recursive_aggregation:
        total_cost = sum((c.aggregated_cost for c in children), ZERO)

    return AggregatedCost(
        total_cost=max(total_cost, planned_total, actual_total),
        planned_total=planned_total,
        actual_total=actual_total,
        child_count=len(children),
    )
