"""
Configuration Validator (``stock_config.validator``).

Responsibility
--------------
Checks a parsed ``StockConfigurationSet`` before it is bridged into the
kernel.  Errors block use of the configuration; warnings are logged.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from stock_config.schema import StockConfigurationSet

VALID_DEBIT_TIMINGS = ("on_create", "on_approval")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ConfigValidationResult:
    """``is_valid`` is True only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: StockConfigurationSet) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if config.stock_levels.default_low_stock_threshold < 0:
        result.errors.append("stock_levels.default_low_stock_threshold must be >= 0")

    if config.sales.debit_timing not in VALID_DEBIT_TIMINGS:
        result.errors.append(
            f"sales.debit_timing must be one of {', '.join(VALID_DEBIT_TIMINGS)}, "
            f"got {config.sales.debit_timing!r}"
        )

    expiry = config.expiry
    if any(d <= 0 for d in expiry.near_expiry_days):
        result.errors.append("expiry.near_expiry_days must all be positive")
    if any(d < 0 for d in expiry.expired_days):
        result.errors.append("expiry.expired_days must all be >= 0")
    if len(set(expiry.near_expiry_days)) != len(expiry.near_expiry_days):
        result.warnings.append("expiry.near_expiry_days contains duplicates")
    if len(set(expiry.expired_days)) != len(expiry.expired_days):
        result.warnings.append("expiry.expired_days contains duplicates")
    if not 0 <= expiry.scan_hour_utc <= 23:
        result.errors.append("expiry.scan_hour_utc must be between 0 and 23")

    if config.database.pool_size < 1:
        result.errors.append("database.pool_size must be >= 1")
    if config.database.max_overflow < 0:
        result.errors.append("database.max_overflow must be >= 0")

    if config.logging.level not in VALID_LOG_LEVELS:
        result.errors.append(f"logging.level {config.logging.level!r} is not a log level")

    return result
