"""
portfolio_engines.forecast -- Earned-value budget forecasting.

Responsibility:
    Compute Earned Value Management metrics (EV, PV, CPI, SPI, CV, SV),
    an estimate-at-completion forecast, a confidence level, and a projected
    completion date for a WBS item, project or program.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The evaluation date is a
    parameter; this module never reads a clock.

Invariants enforced:
    - EV = progress / 100 * planned; PV = BAC = planned.
    - Every ratio whose denominator is 0 is reported as 0 (never NaN/inf).
    - Monetary outputs are rounded half-up to whole units; CPI and SPI to
      2 decimal places.
    - FAC = AC + ETC and VAC = BAC - FAC are computed from the unrounded
      intermediates, then rounded.

Confidence:
    |CV / BAC| * 100 < high_confidence_below  -> High
    |CV / BAC| * 100 > low_confidence_above   -> Low
    otherwise                                 -> Medium
    With BAC = 0 the ratio is undefined: CV = 0 gives Medium, any other
    CV gives Low.

Failure modes:
    None -- total over its input domain.  Progress outside [0, 100] is
    clamped.

Audit relevance:
    ``forecast_method`` is echoed on the result so a reader can see which
    method was requested; all methods currently share the EVM formula.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_CEILING, Decimal
from enum import Enum
from uuid import UUID

from portfolio_engines._numeric import (
    HUNDRED,
    ZERO,
    clamp,
    round_ratio,
    round_whole,
    to_decimal,
)
from portfolio_engines.tracer import traced_engine


class EntityType(str, Enum):
    WBS_ITEM = "WBSItem"
    PROJECT = "Project"
    PROGRAM = "Program"


class ForecastMethod(str, Enum):
    TREND = "Trend"
    PERCENTAGE_COMPLETE = "PercentageComplete"
    ACTUAL = "Actual"


class ConfidenceLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


DEFAULT_HIGH_CONFIDENCE_BELOW = Decimal("5")
DEFAULT_LOW_CONFIDENCE_ABOVE = Decimal("15")


@dataclass(frozen=True)
class BudgetForecast:
    """
    EVM snapshot and forecast for one entity.

    Contract:
        Produced only by ``calculate_budget_forecast``.

    Guarantees:
        - projected_completion_date is None unless ETC > 0 and AC > 0.
        - cost_performance_index / schedule_performance_index are 0 when
          their denominators are 0.
    """

    entity_id: UUID | str
    entity_type: EntityType
    current_planned_cost: Decimal
    current_actual_cost: Decimal
    current_variance: Decimal
    completion_percentage: Decimal

    forecasted_total_cost: Decimal  # FAC / EAC
    forecasted_variance: Decimal  # VAC
    forecasted_completion_cost: Decimal  # ETC

    earned_value: Decimal
    planned_value: Decimal
    actual_cost: Decimal
    cost_performance_index: Decimal
    schedule_performance_index: Decimal
    cost_variance: Decimal
    schedule_variance: Decimal

    forecast_method: ForecastMethod
    confidence_level: ConfidenceLevel
    projected_completion_date: date | None
    as_of: date


def classify_confidence(
    cost_variance: Decimal,
    budget_at_completion: Decimal,
    high_confidence_below: Decimal = DEFAULT_HIGH_CONFIDENCE_BELOW,
    low_confidence_above: Decimal = DEFAULT_LOW_CONFIDENCE_ABOVE,
) -> ConfidenceLevel:
    """Confidence from the absolute cost variance as a percent of BAC."""
    if budget_at_completion == ZERO:
        return ConfidenceLevel.MEDIUM if cost_variance == ZERO else ConfidenceLevel.LOW

    variance_pct = abs(cost_variance / budget_at_completion) * HUNDRED
    if variance_pct < high_confidence_below:
        return ConfidenceLevel.HIGH
    if variance_pct > low_confidence_above:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.MEDIUM


def projected_completion(
    as_of: date,
    estimate_to_complete: Decimal,
    actual_cost: Decimal,
) -> date | None:
    """as_of + ceil(ETC / AC) days, or None when either input is not positive."""
    if estimate_to_complete <= ZERO or actual_cost <= ZERO:
        return None
    days = (estimate_to_complete / actual_cost).to_integral_value(rounding=ROUND_CEILING)
    return as_of + timedelta(days=int(days))


@traced_engine(
    "budget_forecast",
    "1.0",
    fingerprint_fields=("entity_id", "planned_cost", "actual_cost", "current_progress"),
)
def calculate_budget_forecast(
    entity_id: UUID | str,
    entity_type: EntityType,
    planned_cost: Decimal,
    actual_cost: Decimal,
    current_progress: Decimal | int,
    as_of: date,
    forecast_method: ForecastMethod = ForecastMethod.PERCENTAGE_COMPLETE,
    high_confidence_below: Decimal = DEFAULT_HIGH_CONFIDENCE_BELOW,
    low_confidence_above: Decimal = DEFAULT_LOW_CONFIDENCE_ABOVE,
) -> BudgetForecast:
    """
    Compute EVM metrics and the budget forecast.

    Args:
        entity_id: The entity being forecast.
        entity_type: WBSItem, Project or Program.
        planned_cost: Budget at completion (BAC) for the entity.
        actual_cost: Actual cost to date (AC).
        current_progress: Percent complete, 0-100.
        as_of: Evaluation date used for the projected completion date.
        forecast_method: Echoed on the result.
        high_confidence_below / low_confidence_above: Confidence bands in
            percent of BAC.
    """
    bac = to_decimal(planned_cost)
    ac = to_decimal(actual_cost)
    progress = clamp(to_decimal(current_progress))

    ev = progress / HUNDRED * bac
    pv = bac

    cpi = ev / ac if ac > ZERO else ZERO
    spi = ev / pv if pv > ZERO else ZERO
    cv = ev - ac
    sv = ev - pv

    etc = (bac - ev) / cpi if cpi > ZERO else ZERO
    fac = ac + etc
    vac = bac - fac

    return BudgetForecast(
        entity_id=entity_id,
        entity_type=EntityType(entity_type),
        current_planned_cost=bac,
        current_actual_cost=ac,
        current_variance=round_whole(cv),
        completion_percentage=progress,
        forecasted_total_cost=round_whole(fac),
        forecasted_variance=round_whole(vac),
        forecasted_completion_cost=round_whole(etc),
        earned_value=round_whole(ev),
        planned_value=round_whole(pv),
        actual_cost=round_whole(ac),
        cost_performance_index=round_ratio(cpi),
        schedule_performance_index=round_ratio(spi),
        cost_variance=round_whole(cv),
        schedule_variance=round_whole(sv),
        forecast_method=ForecastMethod(forecast_method),
        confidence_level=classify_confidence(
            cv, bac, high_confidence_below, low_confidence_above,
        ),
        projected_completion_date=projected_completion(as_of, etc, ac),
        as_of=as_of,
    )
