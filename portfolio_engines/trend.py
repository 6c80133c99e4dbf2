"""
portfolio_engines.trend -- Linear-regression trend analysis over cost series.

Responsibility:
    Fit an ordinary least-squares line to an evenly spaced series (x = 0..n-1)
    and classify its direction; bucket dated cost entries into periods and
    build a ``CostTrend`` from the per-period planned - actual variance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Fewer than 2 points -> slope 0, intercept 0, r_squared 0, Stable.
    - r_squared is 0 when either sum of squares is 0.
    - slope > threshold -> Deteriorating; slope < -threshold -> Improving.
      The series analyzed for cost trends is variance (planned - actual),
      so a rising slope means actual spend is falling behind plan.
    - Buckets are emitted in chronological order.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Protocol, Sequence
from uuid import UUID

from portfolio_engines._numeric import ZERO, round_ratio, to_decimal
from portfolio_engines.tracer import traced_engine

DEFAULT_SLOPE_THRESHOLD = Decimal("0.1")


class TrendDirection(str, Enum):
    IMPROVING = "Improving"
    STABLE = "Stable"
    DETERIORATING = "Deteriorating"


class TrendGranularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class TrendResult:
    slope: Decimal
    intercept: Decimal
    r_squared: Decimal
    direction: TrendDirection


@dataclass(frozen=True)
class PeriodCost:
    """Summed planned/actual cost for one period bucket."""

    period: date
    planned: Decimal
    actual: Decimal

    @property
    def variance(self) -> Decimal:
        return self.planned - self.actual


@dataclass(frozen=True)
class CostTrend:
    entity_id: UUID | str
    period_start: date
    period_end: date
    granularity: TrendGranularity
    periods: tuple[date, ...]
    planned_cost_trend: tuple[Decimal, ...]
    actual_cost_trend: tuple[Decimal, ...]
    variance_trend: tuple[Decimal, ...]
    trend_direction: TrendDirection
    trend_slope: Decimal
    trend_accuracy: Decimal  # r-squared


class DatedCostLine(Protocol):
    planned_amount: Decimal
    actual_amount: Decimal
    recorded_on: date


def classify_slope(
    slope: Decimal, threshold: Decimal = DEFAULT_SLOPE_THRESHOLD,
) -> TrendDirection:
    if slope > threshold:
        return TrendDirection.DETERIORATING
    if slope < -threshold:
        return TrendDirection.IMPROVING
    return TrendDirection.STABLE


@traced_engine("trend", "1.0", fingerprint_fields=("values", "slope_threshold"))
def analyze_trend(
    values: Sequence[Decimal | int],
    slope_threshold: Decimal = DEFAULT_SLOPE_THRESHOLD,
) -> TrendResult:
    """Least-squares fit of ``values`` against their index."""
    n = len(values)
    if n < 2:
        return TrendResult(
            slope=ZERO, intercept=ZERO, r_squared=ZERO,
            direction=TrendDirection.STABLE,
        )

    ys = [to_decimal(v) for v in values]
    x_mean = Decimal(n - 1) / 2
    y_mean = sum(ys, ZERO) / n

    ss_xy = ZERO
    ss_xx = ZERO
    ss_yy = ZERO
    for i, y in enumerate(ys):
        dx = i - x_mean
        dy = y - y_mean
        ss_xy += dx * dy
        ss_xx += dx * dx
        ss_yy += dy * dy

    slope = ss_xy / ss_xx if ss_xx != ZERO else ZERO
    intercept = y_mean - slope * x_mean
    if ss_xx == ZERO or ss_yy == ZERO:
        r_squared = ZERO
    else:
        r_squared = (ss_xy * ss_xy) / (ss_xx * ss_yy)

    return TrendResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        direction=classify_slope(slope, slope_threshold),
    )


def bucket_start(day: date | datetime, granularity: TrendGranularity) -> date:
    """First day of the period containing ``day``."""
    if isinstance(day, datetime):
        day = day.date()
    granularity = TrendGranularity(granularity)
    if granularity == TrendGranularity.WEEKLY:
        return day - timedelta(days=day.weekday())
    if granularity == TrendGranularity.MONTHLY:
        return day.replace(day=1)
    return day


def bucket_costs(
    lines: Sequence[DatedCostLine],
    granularity: TrendGranularity = TrendGranularity.DAILY,
) -> list[PeriodCost]:
    """Sum planned/actual amounts per period, oldest period first."""
    planned: dict[date, Decimal] = defaultdict(lambda: ZERO)
    actual: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for line in lines:
        key = bucket_start(line.recorded_on, granularity)
        planned[key] += to_decimal(line.planned_amount)
        actual[key] += to_decimal(line.actual_amount)

    return [
        PeriodCost(period=key, planned=planned[key], actual=actual[key])
        for key in sorted(planned)
    ]


@traced_engine(
    "cost_trend", "1.0",
    fingerprint_fields=("entity_id", "period_start", "period_end", "granularity"),
)
def build_cost_trend(
    entity_id: UUID | str,
    period_start: date,
    period_end: date,
    lines: Sequence[DatedCostLine],
    granularity: TrendGranularity = TrendGranularity.DAILY,
    slope_threshold: Decimal = DEFAULT_SLOPE_THRESHOLD,
) -> CostTrend:
    """
    Bucket ``lines`` and fit a trend to the per-period variance.

    ``lines`` are expected to already be filtered to the period; slope and
    r-squared are reported rounded to 2 decimal places.
    """
    buckets = bucket_costs(lines, granularity)
    variances = [b.variance for b in buckets]
    trend = analyze_trend(values=variances, slope_threshold=slope_threshold)

    return CostTrend(
        entity_id=entity_id,
        period_start=period_start,
        period_end=period_end,
        granularity=TrendGranularity(granularity),
        periods=tuple(b.period for b in buckets),
        planned_cost_trend=tuple(b.planned for b in buckets),
        actual_cost_trend=tuple(b.actual for b in buckets),
        variance_trend=tuple(variances),
        trend_direction=trend.direction,
        trend_slope=round_ratio(trend.slope),
        trend_accuracy=round_ratio(trend.r_squared),
    )
