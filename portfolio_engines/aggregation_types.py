"""
portfolio_engines.aggregation_types -- Value objects for WBS aggregation.

Responsibility:
    Frozen dataclasses and enums shared by the status, date, progress and
    cost aggregators and by the tree aggregation engine: the strict per-child
    input struct, the per-call options, and every aggregation result.

Architecture position:
    Engines -- pure data definitions, zero I/O.

Invariants enforced:
    - All monetary and percentage fields are ``Decimal`` (coerced once at
      construction of ``WBSItemForAggregation``).
    - Costs are non-negative; percent_complete lies in [0, 100].

Failure modes:
    - ValueError from ``WBSItemForAggregation`` on negative cost or
      out-of-range percent.  This is the boundary validation; the
      aggregators themselves never raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from portfolio_engines._numeric import HUNDRED, ZERO, to_decimal


class WBSItemStatus(str, Enum):
    """Status authored on leaf WBS items."""

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    DELAYED = "Delayed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class AggregatedStatus(str, Enum):
    """Status derived on parent WBS items (adds MIXED)."""

    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    DELAYED = "Delayed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    MIXED = "Mixed"


class DateHandling(str, Enum):
    """How children without dates are treated."""

    PROPAGATE = "propagate"
    SKIP = "skip"
    REQUIRE = "require"


class ProgressWeighting(str, Enum):
    """How child progress is weighted."""

    COST = "cost"
    EQUAL = "equal"
    HYBRID = "hybrid"


@dataclass(frozen=True)
class AggregationOptions:
    """
    Per-call aggregation configuration (never persisted).

    ``cancelled_as_complete`` is accepted for compatibility but is not
    consulted by the status resolver.
    """

    date_handling: DateHandling = DateHandling.SKIP
    progress_weighting: ProgressWeighting = ProgressWeighting.COST
    recursive_aggregation: bool = True
    cancelled_as_complete: bool = False


DEFAULT_AGGREGATION_OPTIONS = AggregationOptions()


@dataclass(frozen=True)
class WBSItemForAggregation:
    """
    Strict input struct for one child of the node being aggregated.

    A branch child carries its own rolled-up ``aggregated_status``,
    ``aggregated_cost`` and ``percent_complete``; a leaf child carries
    ``aggregated_status=None``.
    """

    id: UUID | str
    parent_id: UUID | str | None = None
    planned_start: date | None = None
    planned_end: date | None = None
    actual_start: date | None = None
    actual_end: date | None = None
    status: WBSItemStatus = WBSItemStatus.NOT_STARTED
    percent_complete: Decimal = ZERO
    planned_cost: Decimal | None = None
    actual_cost: Decimal | None = None
    aggregated_cost: Decimal = ZERO
    aggregated_status: AggregatedStatus | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", WBSItemStatus(self.status))
        if self.aggregated_status is not None:
            object.__setattr__(
                self, "aggregated_status", AggregatedStatus(self.aggregated_status)
            )
        object.__setattr__(self, "percent_complete", to_decimal(self.percent_complete))
        object.__setattr__(self, "aggregated_cost", to_decimal(self.aggregated_cost))
        for attr in ("planned_cost", "actual_cost"):
            val = getattr(self, attr)
            if val is not None:
                object.__setattr__(self, attr, to_decimal(val))

        if not ZERO <= self.percent_complete <= HUNDRED:
            raise ValueError(
                f"percent_complete must be within 0-100, got {self.percent_complete}"
            )
        for attr in ("planned_cost", "actual_cost", "aggregated_cost"):
            val = getattr(self, attr)
            if val is not None and val < ZERO:
                raise ValueError(f"{attr} must be non-negative")

    @property
    def effective_status(self) -> AggregatedStatus:
        """Rolled-up status for branches, authored status for leaves."""
        if self.aggregated_status is not None:
            return self.aggregated_status
        return AggregatedStatus(self.status.value)

    @property
    def start_date(self) -> date | None:
        return self.actual_start or self.planned_start

    @property
    def end_date(self) -> date | None:
        return self.actual_end or self.planned_end

    @property
    def has_date_data(self) -> bool:
        return any(
            (self.actual_start, self.planned_start, self.actual_end, self.planned_end)
        )

    @property
    def has_cost_data(self) -> bool:
        return (self.planned_cost or ZERO) > ZERO or (self.actual_cost or ZERO) > ZERO


# ---------------------------------------------------------------------------
# Aggregator results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AggregatedDates:
    """Earliest child start and latest child end."""

    parent_start: date | None
    parent_end: date | None
    has_children: bool
    child_count: int


@dataclass(frozen=True)
class AggregatedStatusResult:
    """Priority-resolved status plus per-status counts."""

    status: AggregatedStatus
    child_statuses: Mapping[AggregatedStatus, int]
    has_children: bool


@dataclass(frozen=True)
class AggregatedProgress:
    """Weighted and simple progress across children (integers, 0-100)."""

    weighted_progress: int
    average_progress: int
    child_count: int
    child_progress_total: Decimal
    total_weight: Decimal


@dataclass(frozen=True)
class AggregatedCost:
    """Planned/actual sums and the rolled-up total."""

    total_cost: Decimal
    planned_total: Decimal
    actual_total: Decimal
    child_count: int


# ---------------------------------------------------------------------------
# Tree-level results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParentAggregationUpdate:
    """
    Immutable update record for one parent node.

    Applied to the node's own fields by an explicit write step.
    ``percent_complete`` carries the weighted rollup.
    """

    id: UUID | str
    aggregated_start: date | None
    aggregated_end: date | None
    aggregated_status: AggregatedStatus
    percent_complete: int
    aggregated_cost: Decimal


@dataclass(frozen=True)
class WBSAggregationResult:
    """Diagnostic superset of ``ParentAggregationUpdate``."""

    parent_id: UUID | str
    dates: AggregatedDates
    status: AggregatedStatusResult
    progress: AggregatedProgress
    cost: AggregatedCost
    timestamp: datetime | None


@dataclass(frozen=True)
class DateRangeSpan:
    days: int
    start_date: date
    end_date: date


@dataclass(frozen=True)
class CostSummary:
    planned_total: Decimal
    actual_total: Decimal
    aggregated_total: Decimal


@dataclass(frozen=True)
class AggregationSummary:
    """Summary of one parent's aggregation for logging/monitoring."""

    parent_id: UUID | str
    child_count: int
    children_with_date_data: int
    children_with_cost_data: int
    status_distribution: Mapping[AggregatedStatus, int]
    cost_summary: CostSummary
    date_range_span: DateRangeSpan | None = None

    def to_log_dict(self) -> dict[str, Any]:
        """Flatten for structured logging."""
        payload: dict[str, Any] = {
            "parent_id": str(self.parent_id),
            "child_count": self.child_count,
            "children_with_date_data": self.children_with_date_data,
            "children_with_cost_data": self.children_with_cost_data,
            "status_distribution": {
                s.value: n for s, n in self.status_distribution.items()
            },
            "planned_total": str(self.cost_summary.planned_total),
            "actual_total": str(self.cost_summary.actual_total),
            "aggregated_total": str(self.cost_summary.aggregated_total),
        }
        if self.date_range_span is not None:
            payload["date_range_days"] = self.date_range_span.days
        return payload
