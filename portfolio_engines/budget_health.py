"""
portfolio_engines.budget_health -- Budget health classification.

Responsibility:
    Classify an entity's budget as Healthy, Warning or Critical from its
    planned and actual totals, and derive a 0-100 risk score plus human
    readable warnings.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - utilization = actual / planned * 100; variance = (planned - actual)
      / planned * 100.  Both are 0 when planned is 0.
    - Critical if utilization > utilization_critical or variance <
      variance_critical.  Otherwise Warning if any warning fired.
    - risk_score = min(100, round(utilization + 2 * |variance|)).
    - ``schedule_slippage`` is always False; only cost signals are assessed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from portfolio_engines._numeric import HUNDRED, ZERO, round_ratio, round_whole, to_decimal
from portfolio_engines.tracer import traced_engine

SPENDING_RATE_DAYS = Decimal("30")


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class HealthThresholds:
    """Warning and critical bands, in percent."""

    utilization_warning: Decimal = Decimal("85")
    variance_warning: Decimal = Decimal("-10")
    utilization_critical: Decimal = Decimal("95")
    variance_critical: Decimal = Decimal("-15")


DEFAULT_HEALTH_THRESHOLDS = HealthThresholds()


@dataclass(frozen=True)
class BudgetHealth:
    entity_id: UUID | str
    health_status: HealthStatus
    risk_score: int
    budget_utilization: Decimal
    variance_percentage: Decimal
    spending_rate: Decimal
    remaining_budget: Decimal
    budget_overrun: bool
    schedule_slippage: bool
    performance_degradation: bool
    warnings: tuple[str, ...]


def spending_rate(actual_total: Decimal) -> Decimal:
    """Daily spend over a 30-day window; totals of 30 or less pass through."""
    if actual_total > SPENDING_RATE_DAYS:
        return actual_total / SPENDING_RATE_DAYS
    return actual_total


@traced_engine(
    "budget_health", "1.0",
    fingerprint_fields=("entity_id", "planned_total", "actual_total"),
)
def assess_budget_health(
    entity_id: UUID | str,
    planned_total: Decimal,
    actual_total: Decimal,
    thresholds: HealthThresholds | None = None,
) -> BudgetHealth:
    """Classify budget health for an entity's planned/actual totals."""
    t = thresholds or DEFAULT_HEALTH_THRESHOLDS
    planned = to_decimal(planned_total)
    actual = to_decimal(actual_total)

    if planned > ZERO:
        utilization = actual / planned * HUNDRED
        variance = (planned - actual) / planned * HUNDRED
    else:
        utilization = ZERO
        variance = ZERO

    warnings: list[str] = []
    budget_overrun = False
    performance_degradation = False

    if utilization > t.utilization_warning:
        warnings.append(f"Budget utilization at {round_whole(utilization)}%")
        budget_overrun = True
    if variance < t.variance_warning:
        warnings.append(f"Variance at {round_whole(variance)}%")
        performance_degradation = True

    if utilization > t.utilization_critical or variance < t.variance_critical:
        status = HealthStatus.CRITICAL
    elif warnings:
        status = HealthStatus.WARNING
    else:
        status = HealthStatus.HEALTHY

    risk = min(HUNDRED, utilization + 2 * abs(variance))

    return BudgetHealth(
        entity_id=entity_id,
        health_status=status,
        risk_score=int(round_whole(risk)),
        budget_utilization=round_ratio(utilization),
        variance_percentage=round_ratio(variance),
        spending_rate=round_ratio(spending_rate(actual)),
        remaining_budget=round_whole(max(ZERO, planned - actual)),
        budget_overrun=budget_overrun,
        schedule_slippage=False,
        performance_degradation=performance_degradation,
        warnings=tuple(warnings),
    )
