"""
portfolio_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive an ``EngineConfiguration``
    (or the engine inputs derived from it via ``portfolio_config.bridges``)
    and never read files themselves.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PORTFOLIO_CONFIG_TRACE`` log entry containing the config_id, version,
    and checksum, tying each computed rollup back to the thresholds that
    governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from portfolio_config.loader import load_configuration
from portfolio_config.schema import (
    AggregationDefaults,
    BudgetHealthConfig,
    EngineConfiguration,
    ForecastConfig,
    HierarchyConfig,
    TrendConfig,
)

_logger = logging.getLogger("portfolio_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | None = None) -> EngineConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to ``portfolio_config/defaults.yaml``.

    Returns:
        Validated, frozen ``EngineConfiguration``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigurationError: If a value is out of range.
    """
    config = load_configuration(config_path or DEFAULT_CONFIG_PATH)

    _logger.info(
        "PORTFOLIO_CONFIG_TRACE",
        extra={
            "trace_type": "PORTFOLIO_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
        },
    )
    return config


__all__ = [
    "AggregationDefaults",
    "BudgetHealthConfig",
    "EngineConfiguration",
    "ForecastConfig",
    "HierarchyConfig",
    "TrendConfig",
    "get_active_config",
]
