"""
portfolio_engines.progress -- Weighted percent-complete aggregation.

Responsibility:
    Compute a parent's weighted progress (used as its percent_complete) and
    the simple average progress of its children.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - weighted_progress and average_progress are integers in [0, 100]
      (rounded half-up, then clamped).
    - A zero weight falls back to weight 1 for that child only; the other
      children keep their cost weights.
    - Zero children -> both outputs 0.

Weighting modes:
    equal   every child weight = 1
    cost    planned_cost + aggregated_cost
    hybrid  aggregated_cost > 0 (branch) -> 1;
            otherwise (leaf) planned_cost + actual_cost

Failure modes:
    None -- total over its input domain.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from portfolio_engines._numeric import ONE, ZERO, clamped_percent
from portfolio_engines.aggregation_types import (
    DEFAULT_AGGREGATION_OPTIONS,
    AggregatedProgress,
    AggregationOptions,
    ProgressWeighting,
    WBSItemForAggregation,
)
from portfolio_engines.tracer import traced_engine


def child_weight(child: WBSItemForAggregation, weighting: ProgressWeighting) -> Decimal:
    """Weight of one child under the given weighting mode."""
    if weighting == ProgressWeighting.EQUAL:
        return ONE

    planned = child.planned_cost or ZERO
    if weighting == ProgressWeighting.COST:
        weight = planned + child.aggregated_cost
    elif child.aggregated_cost > ZERO:
        # hybrid: a rolled-up cost marks a branch
        return ONE
    else:
        weight = planned + (child.actual_cost or ZERO)

    return weight if weight > ZERO else ONE


@traced_engine("progress", "1.0", fingerprint_fields=("children", "options"))
def aggregate_progress(
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
) -> AggregatedProgress:
    """Weighted and average progress across children."""
    opts = options or DEFAULT_AGGREGATION_OPTIONS

    if not children:
        return AggregatedProgress(
            weighted_progress=0,
            average_progress=0,
            child_count=0,
            child_progress_total=ZERO,
            total_weight=ZERO,
        )

    weighting = ProgressWeighting(opts.progress_weighting)
    total_weight = ZERO
    weighted_sum = ZERO
    progress_sum = ZERO

    for child in children:
        weight = child_weight(child, weighting)
        progress_sum += child.percent_complete
        total_weight += weight
        weighted_sum += child.percent_complete * weight

    average = progress_sum / len(children)
    weighted = weighted_sum / total_weight if total_weight > ZERO else ZERO

    return AggregatedProgress(
        weighted_progress=clamped_percent(weighted),
        average_progress=clamped_percent(average),
        child_count=len(children),
        child_progress_total=progress_sum,
        total_weight=total_weight,
    )
