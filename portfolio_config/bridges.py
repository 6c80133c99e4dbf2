"""
Config -> Engine Bridges.

Functions that convert an ``EngineConfiguration`` into the plain value
objects the pure engines accept.  These live in portfolio_config (the
producer) because the engines must NEVER import portfolio_config.

Usage:
    from portfolio_config import get_active_config
    from portfolio_config.bridges import build_aggregation_options

    config = get_active_config()
    options = build_aggregation_options(config)
"""

from __future__ import annotations

from portfolio_config.schema import EngineConfiguration
from portfolio_engines.aggregation_types import (
    AggregationOptions,
    DateHandling,
    ProgressWeighting,
)
from portfolio_engines.budget_health import HealthThresholds


def build_aggregation_options(config: EngineConfiguration) -> AggregationOptions:
    """Default AggregationOptions from the ``aggregation`` section."""
    agg = config.aggregation
    return AggregationOptions(
        date_handling=DateHandling(agg.date_handling),
        progress_weighting=ProgressWeighting(agg.progress_weighting),
        recursive_aggregation=agg.recursive_aggregation,
        cancelled_as_complete=agg.cancelled_as_complete,
    )


def build_health_thresholds(config: EngineConfiguration) -> HealthThresholds:
    """HealthThresholds from the ``budget_health`` section."""
    bh = config.budget_health
    return HealthThresholds(
        utilization_warning=bh.utilization_warning_pct,
        variance_warning=bh.variance_warning_pct,
        utilization_critical=bh.utilization_critical_pct,
        variance_critical=bh.variance_critical_pct,
    )
