"""
portfolio_engines.dates -- Earliest-start / latest-end date aggregation.

Responsibility:
    Compute a parent's aggregated start and end dates from its children,
    preferring actual dates over planned ones per child.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - parent_start = min of included child starts; parent_end = max of
      included child ends; None when no child supplies one.
    - Children with no date at all never shift the result but are still
      counted in child_count.
    - ``require`` and ``propagate`` behave exactly like ``skip``: a pure
      aggregator has no parent dates to propagate and no failure path.

Failure modes:
    None -- total over its input domain.
"""

from __future__ import annotations

from typing import Sequence

from portfolio_engines.aggregation_types import (
    AggregatedDates,
    AggregationOptions,
    WBSItemForAggregation,
)
from portfolio_engines.tracer import traced_engine


@traced_engine("dates", "1.0", fingerprint_fields=("children", "options"))
def aggregate_dates(
    children: Sequence[WBSItemForAggregation],
    options: AggregationOptions | None = None,
) -> AggregatedDates:
    """
    Aggregate (actual or planned) start/end pairs across children.

    ``options.date_handling`` is accepted for every mode; all three exclude
    undated children from the min/max and keep them in child_count.
    """
    starts = [c.start_date for c in children if c.has_date_data and c.start_date]
    ends = [c.end_date for c in children if c.has_date_data and c.end_date]

    return AggregatedDates(
        parent_start=min(starts) if starts else None,
        parent_end=max(ends) if ends else None,
        has_children=bool(children),
        child_count=len(children),
    )
