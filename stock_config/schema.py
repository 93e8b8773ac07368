"""
StockConfigurationSet schema.

Defines the human-authored, reviewable source artifact for stock
configuration.  YAML files are parsed into these types by the loader,
checked by the validator, and bridged into the kernel's ``StockRules``.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockLevelDef:
    """Stock-level alert defaults."""

    default_low_stock_threshold: int = 10


@dataclass(frozen=True)
class SaleDef:
    """Sale settlement rules.

    ``debit_timing`` is ``on_create`` (reserve when recorded, release on
    decline) or ``on_approval`` (debit only when approved).
    """

    debit_timing: str = "on_create"


@dataclass(frozen=True)
class ExpiryScheduleDef:
    """Expiry alert schedule."""

    near_expiry_days: tuple[int, ...] = (10, 5, 3, 2, 1)
    expired_days: tuple[int, ...] = (0, 1, 2, 3, 5, 10)
    scan_hour_utc: int = 0


@dataclass(frozen=True)
class DatabaseDef:
    """Engine settings (the URL normally comes from DATABASE_URL)."""

    url: str | None = None
    pool_size: int = 20
    max_overflow: int = 10
    sqlite_busy_timeout: float = 30.0


@dataclass(frozen=True)
class LoggingDef:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Configuration set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockConfigurationSet:
    """One named configuration (``sets/<name>.yaml``)."""

    config_id: str
    version: int
    description: str = ""
    stock_levels: StockLevelDef = StockLevelDef()
    sales: SaleDef = SaleDef()
    expiry: ExpiryScheduleDef = ExpiryScheduleDef()
    database: DatabaseDef = DatabaseDef()
    logging: LoggingDef = LoggingDef()
    checksum: str = ""
