"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from stock_kernel.domain.audit import AuditAction, AuditEntry, AuditLogger, AuditLogRecord
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    BatchFilter,
    BatchRecord,
    BatchSnapshot,
    BatchUpdate,
    LedgerFilter,
    NewBatch,
    NotificationCounts,
    NotificationRecord,
    Page,
    PageMeta,
    SaleItem,
    SaleRecord,
    SaleStatus,
    StockStatus,
)
from stock_kernel.domain.ledger import (
    SALE_TRANSITIONS,
    TERMINAL_SALE_STATUSES,
    EntryStatus,
    EntryType,
    LedgerEntryRecord,
    SaleDebitTiming,
    signed_quantity,
    validate_quantity,
)
from stock_kernel.domain.policy import StockRules
from stock_kernel.domain.stock_alerts import (
    ExpiryScanResult,
    NotificationKey,
    NotificationType,
    Severity,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditLogger",
    "AuditLogRecord",
    "BatchFilter",
    "BatchRecord",
    "BatchSnapshot",
    "BatchUpdate",
    "Clock",
    "DeterministicClock",
    "EntryStatus",
    "EntryType",
    "ExpiryScanResult",
    "LedgerEntryRecord",
    "LedgerFilter",
    "NewBatch",
    "NotificationCounts",
    "NotificationKey",
    "NotificationRecord",
    "NotificationType",
    "Page",
    "PageMeta",
    "SALE_TRANSITIONS",
    "SaleDebitTiming",
    "SaleItem",
    "SaleRecord",
    "SaleStatus",
    "Severity",
    "StockRules",
    "StockStatus",
    "SystemClock",
    "TERMINAL_SALE_STATUSES",
    "signed_quantity",
    "validate_quantity",
]
