"""
Config -> Kernel Bridges.

Functions that convert a ``StockConfigurationSet`` into kernel inputs.
These live in stock_config (the producer) because the kernel must NEVER
import stock_config.

Usage:
    from stock_config import load_active_configuration_set
    from stock_config.bridges import rules_from_config

    config = load_active_configuration_set()
    rules = rules_from_config(config)
"""

from __future__ import annotations

from typing import Any

from stock_config.schema import StockConfigurationSet
from stock_kernel.domain.ledger import SaleDebitTiming
from stock_kernel.domain.policy import StockRules


def rules_from_config(config: StockConfigurationSet) -> StockRules:
    return StockRules(
        default_low_stock_threshold=config.stock_levels.default_low_stock_threshold,
        sale_debit_timing=SaleDebitTiming(config.sales.debit_timing),
        near_expiry_days=config.expiry.near_expiry_days,
        expired_days=config.expiry.expired_days,
        expiry_scan_hour_utc=config.expiry.scan_hour_utc,
    )


def engine_kwargs_from_config(config: StockConfigurationSet) -> dict[str, Any]:
    """Keyword arguments for ``stock_kernel.db.engine.init_engine_from_url``."""
    return {
        "pool_size": config.database.pool_size,
        "max_overflow": config.database.max_overflow,
        "sqlite_busy_timeout": config.database.sqlite_busy_timeout,
    }
