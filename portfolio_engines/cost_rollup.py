"""
portfolio_engines.cost_rollup -- Single-node cost rollup and hierarchy totals.

Responsibility:
    Combine a WBS node's direct cost items, its direct children's aggregated
    cost, and its invoice allocations into a ``CostRollupResult`` with
    variance metrics.  Also summarizes per-node rollups into project-level
    totals and per-level cost figures.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Inputs are any objects
    exposing the attributes of ``CostLine`` / ``AllocationLine``
    (the module DTOs do).

Invariants enforced:
    - total_planned = direct_planned + children_aggregated and
      total_actual = direct_actual + children_aggregated.  Children's
      aggregated cost does not separate planned from actual, so it is added
      to both sides.
    - Percentage variances are 0 when their denominator is 0; otherwise
      rounded half-up to 2 decimal places.
    - Invoice allocations are reported separately and never enter
      planned/actual totals.

Failure modes:
    None -- total over its input domain.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Protocol, Sequence
from uuid import UUID

from portfolio_engines._numeric import HUNDRED, ZERO, round_ratio, to_decimal
from portfolio_engines.tracer import traced_engine


class CostLine(Protocol):
    """A direct planned/actual cost entry."""

    planned_amount: Decimal
    actual_amount: Decimal


class AllocationLine(Protocol):
    """A portion of an invoice attributed to a WBS node."""

    amount: Decimal


@dataclass(frozen=True)
class CostRollupResult:
    """Cost rollup for a single WBS item."""

    wbs_item_id: UUID | str
    level: int

    direct_planned_cost: Decimal
    direct_actual_cost: Decimal
    children_aggregated_cost: Decimal

    total_planned_cost: Decimal
    total_actual_cost: Decimal

    planned_variance: Decimal  # total_planned - total_actual
    planned_variance_percentage: Decimal
    actual_variance: Decimal  # direct_planned - direct_actual
    actual_variance_percentage: Decimal

    invoice_allocated_amount: Decimal
    allocation_count: int

    has_children: bool
    child_count: int
    children_with_costs: int

    wbs_item_name: str | None = None


@dataclass(frozen=True)
class WBSCostHierarchy:
    """Cost rollups for every live node of a project."""

    project_id: UUID | str
    root_items: tuple[CostRollupResult, ...]
    all_items: Mapping[UUID | str, CostRollupResult]
    total_project_cost: Decimal
    total_project_variance: Decimal
    timestamp: datetime | None


@dataclass(frozen=True)
class CostByLevel:
    """Aggregated cost of all nodes at one WBS level."""

    level: int
    item_count: int
    total_cost: Decimal


def variance_percentage(variance: Decimal, base: Decimal) -> Decimal:
    """variance / base * 100 rounded to 2 dp; 0 when base is not positive."""
    if base <= ZERO:
        return ZERO
    return round_ratio(variance / base * HUNDRED)


@traced_engine("cost_rollup", "1.0", fingerprint_fields=("wbs_item_id", "level"))
def calculate_cost_rollup(
    wbs_item_id: UUID | str,
    level: int,
    cost_items: Sequence[CostLine],
    child_aggregated_costs: Sequence[Decimal],
    allocations: Sequence[AllocationLine],
    wbs_item_name: str | None = None,
) -> CostRollupResult:
    """
    Roll up direct and child costs for one WBS node.

    Args:
        wbs_item_id: The node being rolled up.
        level: The node's WBS level (root = 0).
        cost_items: Direct CostItems attached to the node.
        child_aggregated_costs: ``aggregated_cost`` of each live direct child.
        allocations: InvoiceAllocations targeting the node.
        wbs_item_name: Optional display name carried onto the result.
    """
    direct_planned = sum((to_decimal(c.planned_amount) for c in cost_items), ZERO)
    direct_actual = sum((to_decimal(c.actual_amount) for c in cost_items), ZERO)
    child_costs = [to_decimal(c) for c in child_aggregated_costs]
    children_aggregated = sum(child_costs, ZERO)

    total_planned = direct_planned + children_aggregated
    total_actual = direct_actual + children_aggregated

    planned_variance = total_planned - total_actual
    actual_variance = direct_planned - direct_actual

    return CostRollupResult(
        wbs_item_id=wbs_item_id,
        wbs_item_name=wbs_item_name,
        level=level,
        direct_planned_cost=direct_planned,
        direct_actual_cost=direct_actual,
        children_aggregated_cost=children_aggregated,
        total_planned_cost=total_planned,
        total_actual_cost=total_actual,
        planned_variance=planned_variance,
        planned_variance_percentage=variance_percentage(planned_variance, total_planned),
        actual_variance=actual_variance,
        actual_variance_percentage=variance_percentage(actual_variance, direct_planned),
        invoice_allocated_amount=sum((to_decimal(a.amount) for a in allocations), ZERO),
        allocation_count=len(allocations),
        has_children=bool(child_costs),
        child_count=len(child_costs),
        children_with_costs=sum(1 for c in child_costs if c > ZERO),
    )


def summarize_cost_hierarchy(
    project_id: UUID | str,
    rollups: Sequence[CostRollupResult],
    timestamp: datetime | None = None,
) -> WBSCostHierarchy:
    """
    Project-level totals over per-node rollups.

    Roots are the level-0 rollups.  Totals sum every node's
    ``total_planned_cost`` / ``planned_variance`` as-is.
    """
    return WBSCostHierarchy(
        project_id=project_id,
        root_items=tuple(r for r in rollups if r.level == 0),
        all_items={r.wbs_item_id: r for r in rollups},
        total_project_cost=sum((r.total_planned_cost for r in rollups), ZERO),
        total_project_variance=sum((r.planned_variance for r in rollups), ZERO),
        timestamp=timestamp,
    )


def cost_by_level(items: Sequence[tuple[int, Decimal]]) -> list[CostByLevel]:
    """Group (level, aggregated_cost) pairs by level, ascending."""
    counts: dict[int, int] = defaultdict(int)
    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for level, aggregated_cost in items:
        counts[level] += 1
        totals[level] += to_decimal(aggregated_cost)

    return [
        CostByLevel(level=level, item_count=counts[level], total_cost=totals[level])
        for level in sorted(counts)
    ]
