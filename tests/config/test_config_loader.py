"""
Tests for engine configuration loading and the config -> engine bridges.
"""

from decimal import Decimal

import pytest
import yaml

from portfolio_config import DEFAULT_CONFIG_PATH, get_active_config
from portfolio_config.bridges import build_aggregation_options, build_health_thresholds
from portfolio_config.loader import compute_checksum, parse_configuration
from portfolio_engines.aggregation_types import DateHandling, ProgressWeighting
from portfolio_kernel.exceptions import ConfigurationError


def _write(tmp_path, data: dict):
    path = tmp_path / "engine.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    """The packaged defaults.yaml."""

    def test_default_values(self):
        config = get_active_config()

        assert config.config_id == "portfolio-engine-defaults"
        assert config.version == 1
        assert config.aggregation.progress_weighting == "cost"
        assert config.aggregation.date_handling == "skip"
        assert config.hierarchy.max_depth == 100
        assert config.forecast.high_confidence_below_pct == Decimal("5")
        assert config.forecast.low_confidence_above_pct == Decimal("15")
        assert config.trend.slope_threshold == Decimal("0.1")
        assert config.budget_health.variance_critical_pct == Decimal("-15")

    def test_default_path_is_packaged(self):
        assert DEFAULT_CONFIG_PATH.name == "defaults.yaml"
        assert DEFAULT_CONFIG_PATH.exists()

    def test_config_trace_logged(self, captured_logs):
        config = get_active_config()

        record = next(r for r in captured_logs() if r["message"] == "PORTFOLIO_CONFIG_TRACE")
        assert record["config_id"] == config.config_id
        assert record["checksum"] == config.checksum


class TestParsing:
    """Tests for parse_configuration and file overrides."""

    def test_missing_sections_use_defaults(self):
        config = parse_configuration({"config_id": "minimal"})

        assert config.version == 1
        assert config.hierarchy.max_depth == 100
        assert config.budget_health.utilization_warning_pct == Decimal("85")

    def test_override_file(self, tmp_path):
        path = _write(tmp_path, {
            "config_id": "custom",
            "version": 3,
            "aggregation": {"progress_weighting": "equal"},
            "hierarchy": {"max_depth": 12},
        })

        config = get_active_config(path)

        assert config.config_id == "custom"
        assert config.version == 3
        assert config.aggregation.progress_weighting == "equal"
        assert config.hierarchy.max_depth == 12

    def test_missing_config_id(self):
        with pytest.raises(KeyError):
            parse_configuration({"version": 1})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_checksum_is_key_order_independent(self):
        a = {"config_id": "x", "trend": {"slope_threshold": "0.2"}}
        b = {"trend": {"slope_threshold": "0.2"}, "config_id": "x"}

        assert compute_checksum(a) == compute_checksum(b)
        assert compute_checksum(a) != compute_checksum({"config_id": "y"})


class TestValidation:
    """Out-of-range values raise ConfigurationError."""

    @pytest.mark.parametrize("data,field", [
        ({"aggregation": {"progress_weighting": "budget"}}, "aggregation.progress_weighting"),
        ({"aggregation": {"date_handling": "guess"}}, "aggregation.date_handling"),
        ({"aggregation": {"recursive_aggregation": "false"}}, "aggregation.recursive_aggregation"),
        ({"aggregation": {"cancelled_as_complete": 1}}, "aggregation.cancelled_as_complete"),
        ({"hierarchy": {"max_depth": 0}}, "hierarchy.max_depth"),
        ({"trend": {"slope_threshold": "-1"}}, "trend.slope_threshold"),
        ({"trend": {"slope_threshold": "steep"}}, "trend.slope_threshold"),
        (
            {"forecast": {"high_confidence_below_pct": "20", "low_confidence_above_pct": "10"}},
            "forecast",
        ),
    ])
    def test_invalid_values(self, data, field):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_configuration({"config_id": "bad", **data})

        assert exc_info.value.field == field
        assert exc_info.value.code == "INVALID_CONFIGURATION"


class TestBridges:
    """Tests for the config -> engine bridges."""

    def test_aggregation_options(self):
        config = parse_configuration({
            "config_id": "x",
            "aggregation": {
                "date_handling": "require",
                "progress_weighting": "hybrid",
                "cancelled_as_complete": True,
            },
        })

        options = build_aggregation_options(config)

        assert options.date_handling == DateHandling.REQUIRE
        assert options.progress_weighting == ProgressWeighting.HYBRID
        assert options.recursive_aggregation is True
        assert options.cancelled_as_complete is True

    def test_health_thresholds(self):
        config = parse_configuration({
            "config_id": "x",
            "budget_health": {"utilization_warning_pct": "80"},
        })

        thresholds = build_health_thresholds(config)

        assert thresholds.utilization_warning == Decimal("80")
        assert thresholds.utilization_critical == Decimal("95")
        assert thresholds.variance_warning == Decimal("-10")
