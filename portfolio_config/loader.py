"""
Configuration Loader (``portfolio_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the typed
``portfolio_config.schema`` dataclasses.  The single public entry point for
runtime config is ``portfolio_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range or unparseable values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from portfolio_config.schema import (
    AggregationDefaults,
    BudgetHealthConfig,
    EngineConfiguration,
    ForecastConfig,
    HierarchyConfig,
    TrendConfig,
)
from portfolio_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from a YAML scalar (strings preferred over floats)."""
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(field_name, f"not a decimal: {value!r}") from exc


def parse_bool(value: Any, field_name: str) -> bool:
    """Accept only real YAML booleans; quoted "false" is not false."""
    if not isinstance(value, bool):
        raise ConfigurationError(field_name, f"not a boolean: {value!r}")
    return value


def parse_aggregation(data: dict[str, Any]) -> AggregationDefaults:
    return AggregationDefaults(
        date_handling=data.get("date_handling", "skip"),
        progress_weighting=data.get("progress_weighting", "cost"),
        recursive_aggregation=parse_bool(
            data.get("recursive_aggregation", True), "aggregation.recursive_aggregation"
        ),
        cancelled_as_complete=parse_bool(
            data.get("cancelled_as_complete", False), "aggregation.cancelled_as_complete"
        ),
    )


def parse_hierarchy(data: dict[str, Any]) -> HierarchyConfig:
    return HierarchyConfig(max_depth=int(data.get("max_depth", 100)))


def parse_forecast(data: dict[str, Any]) -> ForecastConfig:
    return ForecastConfig(
        high_confidence_below_pct=parse_decimal(
            data.get("high_confidence_below_pct", "5"),
            "forecast.high_confidence_below_pct",
        ),
        low_confidence_above_pct=parse_decimal(
            data.get("low_confidence_above_pct", "15"),
            "forecast.low_confidence_above_pct",
        ),
    )


def parse_trend(data: dict[str, Any]) -> TrendConfig:
    return TrendConfig(
        slope_threshold=parse_decimal(
            data.get("slope_threshold", "0.1"), "trend.slope_threshold"
        ),
    )


def parse_budget_health(data: dict[str, Any]) -> BudgetHealthConfig:
    defaults = BudgetHealthConfig()
    values = {
        name: parse_decimal(
            data.get(name, getattr(defaults, name)), f"budget_health.{name}"
        )
        for name in (
            "utilization_warning_pct",
            "variance_warning_pct",
            "utilization_critical_pct",
            "variance_critical_pct",
        )
    }
    return BudgetHealthConfig(**values)


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed YAML (sorted keys)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_configuration(data: dict[str, Any]) -> EngineConfiguration:
    """
    Parse a full ``EngineConfiguration`` from a dict.

    Raises:
        KeyError: if ``config_id`` is missing.
        ConfigurationError: if any section is out of range.
    """
    return EngineConfiguration(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        aggregation=parse_aggregation(data.get("aggregation", {})),
        hierarchy=parse_hierarchy(data.get("hierarchy", {})),
        forecast=parse_forecast(data.get("forecast", {})),
        trend=parse_trend(data.get("trend", {})),
        budget_health=parse_budget_health(data.get("budget_health", {})),
    )


def load_configuration(path: Path) -> EngineConfiguration:
    """Load and parse a configuration file."""
    return parse_configuration(load_yaml_file(path))
