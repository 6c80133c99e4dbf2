"""
Configuration Schema (``portfolio_config.schema``).

Responsibility
--------------
Frozen dataclasses describing every tunable of the aggregation and
forecasting engines.  Declarative data only -- no executable logic beyond
range validation in ``__post_init__``.

Invariants enforced
-------------------
* All thresholds are ``Decimal`` -- NEVER ``float``.
* Every dataclass is ``frozen=True``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from portfolio_kernel.exceptions import ConfigurationError

DATE_HANDLING_VALUES = ("propagate", "skip", "require")
PROGRESS_WEIGHTING_VALUES = ("cost", "equal", "hybrid")


@dataclass(frozen=True)
class AggregationDefaults:
    """Default ``AggregationOptions`` applied when a caller passes none."""

    date_handling: str = "skip"
    progress_weighting: str = "cost"
    recursive_aggregation: bool = True
    cancelled_as_complete: bool = False

    def __post_init__(self) -> None:
        if self.date_handling not in DATE_HANDLING_VALUES:
            raise ConfigurationError(
                "aggregation.date_handling",
                f"{self.date_handling!r} not in {DATE_HANDLING_VALUES}",
            )
        if self.progress_weighting not in PROGRESS_WEIGHTING_VALUES:
            raise ConfigurationError(
                "aggregation.progress_weighting",
                f"{self.progress_weighting!r} not in {PROGRESS_WEIGHTING_VALUES}",
            )


@dataclass(frozen=True)
class HierarchyConfig:
    """Guards for walking parent chains."""

    max_depth: int = 100

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ConfigurationError("hierarchy.max_depth", "must be >= 1")


@dataclass(frozen=True)
class ForecastConfig:
    """Confidence classification bands, in percent of BAC."""

    high_confidence_below_pct: Decimal = Decimal("5")
    low_confidence_above_pct: Decimal = Decimal("15")

    def __post_init__(self) -> None:
        if self.high_confidence_below_pct > self.low_confidence_above_pct:
            raise ConfigurationError(
                "forecast",
                "high_confidence_below_pct must not exceed low_confidence_above_pct",
            )


@dataclass(frozen=True)
class TrendConfig:
    """Slope magnitude above which a trend is not Stable."""

    slope_threshold: Decimal = Decimal("0.1")

    def __post_init__(self) -> None:
        if self.slope_threshold < 0:
            raise ConfigurationError("trend.slope_threshold", "must be non-negative")


@dataclass(frozen=True)
class BudgetHealthConfig:
    """Warning and critical thresholds for budget health checks."""

    utilization_warning_pct: Decimal = Decimal("85")
    variance_warning_pct: Decimal = Decimal("-10")
    utilization_critical_pct: Decimal = Decimal("95")
    variance_critical_pct: Decimal = Decimal("-15")


@dataclass(frozen=True)
class EngineConfiguration:
    """Complete, validated engine configuration."""

    config_id: str
    version: int
    checksum: str
    aggregation: AggregationDefaults = field(default_factory=AggregationDefaults)
    hierarchy: HierarchyConfig = field(default_factory=HierarchyConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    trend: TrendConfig = field(default_factory=TrendConfig)
    budget_health: BudgetHealthConfig = field(default_factory=BudgetHealthConfig)
