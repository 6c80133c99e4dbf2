"""
Module: portfolio_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    portfolio_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import portfolio_kernel (and sibling engine modules).
    MUST NOT import portfolio_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Timestamps and evaluation dates are explicit parameters.
    - Decimal-only arithmetic: money and percentages are ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``portfolio_engines.tracer``), emitting PORTFOLIO_ENGINE_TRACE records.

Usage:
    from portfolio_engines import aggregate_node, WBSItemForAggregation
    from portfolio_engines.forecast import calculate_budget_forecast
"""

from portfolio_engines.aggregation_types import (
    DEFAULT_AGGREGATION_OPTIONS,
    AggregatedCost,
    AggregatedDates,
    AggregatedProgress,
    AggregatedStatus,
    AggregatedStatusResult,
    AggregationOptions,
    AggregationSummary,
    CostSummary,
    DateHandling,
    DateRangeSpan,
    ParentAggregationUpdate,
    ProgressWeighting,
    WBSAggregationResult,
    WBSItemForAggregation,
    WBSItemStatus,
)
from portfolio_engines.allocation_efficiency import (
    AllocationEfficiency,
    ItemAllocationStats,
    analyze_allocation_efficiency,
)
from portfolio_engines.budget_health import (
    DEFAULT_HEALTH_THRESHOLDS,
    BudgetHealth,
    HealthStatus,
    HealthThresholds,
    assess_budget_health,
)
from portfolio_engines.cost import aggregate_cost
from portfolio_engines.cost_rollup import (
    CostByLevel,
    CostRollupResult,
    WBSCostHierarchy,
    calculate_cost_rollup,
    cost_by_level,
    summarize_cost_hierarchy,
)
from portfolio_engines.dates import aggregate_dates
from portfolio_engines.forecast import (
    BudgetForecast,
    ConfidenceLevel,
    EntityType,
    ForecastMethod,
    calculate_budget_forecast,
    classify_confidence,
)
from portfolio_engines.progress import aggregate_progress
from portfolio_engines.status import aggregate_status, resolve_status
from portfolio_engines.tracer import traced_engine
from portfolio_engines.tree import (
    aggregate_node,
    get_aggregation_result,
    get_aggregation_summary,
)
from portfolio_engines.trend import (
    CostTrend,
    PeriodCost,
    TrendDirection,
    TrendGranularity,
    TrendResult,
    analyze_trend,
    bucket_costs,
    build_cost_trend,
)

__all__ = [
    # Aggregation types
    "AggregatedCost",
    "AggregatedDates",
    "AggregatedProgress",
    "AggregatedStatus",
    "AggregatedStatusResult",
    "AggregationOptions",
    "AggregationSummary",
    "CostSummary",
    "DEFAULT_AGGREGATION_OPTIONS",
    "DateHandling",
    "DateRangeSpan",
    "ParentAggregationUpdate",
    "ProgressWeighting",
    "WBSAggregationResult",
    "WBSItemForAggregation",
    "WBSItemStatus",
    # Aggregators
    "aggregate_cost",
    "aggregate_dates",
    "aggregate_node",
    "aggregate_progress",
    "aggregate_status",
    "get_aggregation_result",
    "get_aggregation_summary",
    "resolve_status",
    # Cost rollup
    "CostByLevel",
    "CostRollupResult",
    "WBSCostHierarchy",
    "calculate_cost_rollup",
    "cost_by_level",
    "summarize_cost_hierarchy",
    # Forecast
    "BudgetForecast",
    "ConfidenceLevel",
    "EntityType",
    "ForecastMethod",
    "calculate_budget_forecast",
    "classify_confidence",
    # Budget health
    "BudgetHealth",
    "DEFAULT_HEALTH_THRESHOLDS",
    "HealthStatus",
    "HealthThresholds",
    "assess_budget_health",
    # Trend
    "CostTrend",
    "PeriodCost",
    "TrendDirection",
    "TrendGranularity",
    "TrendResult",
    "analyze_trend",
    "bucket_costs",
    "build_cost_trend",
    # Allocation efficiency
    "AllocationEfficiency",
    "ItemAllocationStats",
    "analyze_allocation_efficiency",
    # Tracing
    "traced_engine",
]
