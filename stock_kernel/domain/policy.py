"""
StockRules -- runtime knobs consumed by kernel services.

The kernel never reads configuration files.  ``stock_config`` builds a
``StockRules`` from YAML and hands it to the orchestrator; tests build
one directly.
"""

from __future__ import annotations

from dataclasses import dataclass

from stock_kernel.domain.ledger import SaleDebitTiming
from stock_kernel.domain.stock_alerts import DEFAULT_EXPIRED_DAYS, DEFAULT_NEAR_EXPIRY_DAYS


@dataclass(frozen=True)
class StockRules:
    """Thresholds and timing rules for stock movements and alerts.

    Attributes:
        default_low_stock_threshold: Threshold for batches created without one.
        sale_debit_timing: When sales remove stock (see SaleDebitTiming).
        near_expiry_days: Days-before-expiry offsets that raise near_expiry.
        expired_days: Days-after-expiry offsets that raise expired.
        expiry_scan_hour_utc: Hour of day the daily expiry scan runs.
    """

    default_low_stock_threshold: int = 10
    sale_debit_timing: SaleDebitTiming = SaleDebitTiming.ON_CREATE
    near_expiry_days: tuple[int, ...] = DEFAULT_NEAR_EXPIRY_DAYS
    expired_days: tuple[int, ...] = DEFAULT_EXPIRED_DAYS
    expiry_scan_hour_utc: int = 0

    def __post_init__(self) -> None:
        if self.default_low_stock_threshold < 0:
            raise ValueError("default_low_stock_threshold must be >= 0")
        if any(d <= 0 for d in self.near_expiry_days):
            raise ValueError("near_expiry_days must all be positive")
        if any(d < 0 for d in self.expired_days):
            raise ValueError("expired_days must all be >= 0")
        if not 0 <= self.expiry_scan_hour_utc <= 23:
            raise ValueError("expiry_scan_hour_utc must be between 0 and 23")
