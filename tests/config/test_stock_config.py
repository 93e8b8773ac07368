"""
Configuration sets: YAML loading, validation and the bridge to StockRules.
"""

from pathlib import Path

import pytest
import yaml

from stock_config import get_active_config, load_active_configuration_set
from stock_config.bridges import engine_kwargs_from_config, rules_from_config
from stock_config.loader import parse_configuration_set
from stock_config.validator import validate_configuration
from stock_kernel.domain.ledger import SaleDebitTiming
from stock_kernel.domain.policy import StockRules


def _write_set(config_dir: Path, name: str, data: dict) -> Path:
    path = config_dir / f"{name}.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


def _minimal(**sections) -> dict:
    data = {"config_id": "test", "version": 1}
    data.update(sections)
    return data


class TestDefaultSet:

    def test_shipped_default_loads(self):
        config = load_active_configuration_set()

        assert config.config_id == "pharmacy-default"
        assert config.sales.debit_timing == "on_create"
        assert len(config.checksum) == 64

    def test_default_rules_match_kernel_defaults(self):
        assert get_active_config() == StockRules()

    def test_trace_logged(self, captured_logs):
        load_active_configuration_set()
        trace = next(r for r in captured_logs() if r["message"] == "STOCK_CONFIG_TRACE")
        assert trace["config_set_id"] == "pharmacy-default"
        assert trace["sale_debit_timing"] == "on_create"


class TestCustomSets:

    def test_sections_default_when_missing(self, tmp_path):
        _write_set(tmp_path, "bare", _minimal())
        rules = get_active_config(tmp_path, "bare")
        assert rules == StockRules()

    def test_deferred_sales(self, tmp_path):
        _write_set(
            tmp_path, "deferred",
            _minimal(
                sales={"debit_timing": "on_approval"},
                stock_levels={"default_low_stock_threshold": 25},
                expiry={"near_expiry_days": [30, 7], "expired_days": [0], "scan_hour_utc": 6},
            ),
        )
        rules = get_active_config(tmp_path, "deferred")

        assert rules.sale_debit_timing == SaleDebitTiming.ON_APPROVAL
        assert rules.default_low_stock_threshold == 25
        assert rules.near_expiry_days == (30, 7)
        assert rules.expired_days == (0,)
        assert rules.expiry_scan_hour_utc == 6

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_active_configuration_set(tmp_path, "absent")

    @pytest.mark.parametrize(
        "sections",
        [
            {"sales": {"debit_timing": "on_delivery"}},
            {"stock_levels": {"default_low_stock_threshold": -1}},
            {"expiry": {"near_expiry_days": [0]}},
            {"expiry": {"scan_hour_utc": 24}},
            {"database": {"pool_size": 0}},
            {"logging": {"level": "chatty"}},
        ],
    )
    def test_invalid_values_rejected(self, tmp_path, sections):
        _write_set(tmp_path, "bad", _minimal(**sections))
        with pytest.raises(ValueError, match="validation failed"):
            load_active_configuration_set(tmp_path, "bad")

    def test_wrong_type_rejected(self, tmp_path):
        _write_set(tmp_path, "typed", _minimal(stock_levels={"default_low_stock_threshold": "ten"}))
        with pytest.raises(ValueError):
            load_active_configuration_set(tmp_path, "typed")

    def test_missing_identity(self):
        with pytest.raises(KeyError):
            parse_configuration_set({"version": 1})

    def test_duplicate_days_only_warn(self):
        config = parse_configuration_set(_minimal(expiry={"near_expiry_days": [5, 5]}))
        result = validate_configuration(config)
        assert result.is_valid
        assert result.warnings == ["expiry.near_expiry_days contains duplicates"]


class TestBridges:

    def test_engine_kwargs(self):
        config = parse_configuration_set(
            _minimal(database={"pool_size": 5, "max_overflow": 0, "sqlite_busy_timeout": 2})
        )
        assert engine_kwargs_from_config(config) == {
            "pool_size": 5,
            "max_overflow": 0,
            "sqlite_busy_timeout": 2.0,
        }

    def test_rules_from_config(self):
        config = parse_configuration_set(_minimal(sales={"debit_timing": "on_approval"}))
        assert rules_from_config(config).sale_debit_timing == SaleDebitTiming.ON_APPROVAL

    def test_checksum_tracks_content(self):
        first = parse_configuration_set(_minimal())
        second = parse_configuration_set(_minimal(description="changed"))
        assert first.checksum != second.checksum
        assert first.checksum == parse_configuration_set(_minimal()).checksum
