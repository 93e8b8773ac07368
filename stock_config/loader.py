"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``stock_config.schema`` dataclasses.  Runtime callers go through
``stock_config.get_active_config()``; this module is the tooling
underneath it.

Architecture position
---------------------
**Config layer**.  No dependency on the kernel.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Missing optional sections fall back to schema defaults; required keys
  (``config_id``, ``version``) raise ``KeyError``.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    DatabaseDef,
    ExpiryScheduleDef,
    LoggingDef,
    SaleDef,
    StockConfigurationSet,
    StockLevelDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    return value


def parse_day_list(value: Any, field_name: str) -> tuple[int, ...]:
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{field_name} must be a list of integers, got {value!r}")
    return tuple(parse_int(v, field_name) for v in value)


def parse_stock_levels(data: dict[str, Any]) -> StockLevelDef:
    default = StockLevelDef()
    return StockLevelDef(
        default_low_stock_threshold=parse_int(
            data.get("default_low_stock_threshold", default.default_low_stock_threshold),
            "stock_levels.default_low_stock_threshold",
        ),
    )


def parse_sales(data: dict[str, Any]) -> SaleDef:
    return SaleDef(debit_timing=str(data.get("debit_timing", SaleDef().debit_timing)))


def parse_expiry(data: dict[str, Any]) -> ExpiryScheduleDef:
    default = ExpiryScheduleDef()
    return ExpiryScheduleDef(
        near_expiry_days=parse_day_list(
            data.get("near_expiry_days", list(default.near_expiry_days)),
            "expiry.near_expiry_days",
        ),
        expired_days=parse_day_list(
            data.get("expired_days", list(default.expired_days)),
            "expiry.expired_days",
        ),
        scan_hour_utc=parse_int(
            data.get("scan_hour_utc", default.scan_hour_utc), "expiry.scan_hour_utc",
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseDef:
    default = DatabaseDef()
    return DatabaseDef(
        url=data.get("url"),
        pool_size=parse_int(data.get("pool_size", default.pool_size), "database.pool_size"),
        max_overflow=parse_int(
            data.get("max_overflow", default.max_overflow), "database.max_overflow",
        ),
        sqlite_busy_timeout=float(data.get("sqlite_busy_timeout", default.sqlite_busy_timeout)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingDef:
    return LoggingDef(level=str(data.get("level", LoggingDef().level)).upper())


def parse_configuration_set(data: dict[str, Any]) -> StockConfigurationSet:
    """
    Parse a full ``StockConfigurationSet`` from a loaded YAML dict.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
        ValueError: if a value has the wrong type.
    """
    return StockConfigurationSet(
        config_id=data["config_id"],
        version=parse_int(data["version"], "version"),
        description=data.get("description", ""),
        stock_levels=parse_stock_levels(data.get("stock_levels") or {}),
        sales=parse_sales(data.get("sales") or {}),
        expiry=parse_expiry(data.get("expiry") or {}),
        database=parse_database(data.get("database") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def load_configuration_set(path: Path) -> StockConfigurationSet:
    return parse_configuration_set(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
