"""Selectors for the stock kernel (read side)."""

from stock_kernel.selectors.audit_selector import AuditSelector
from stock_kernel.selectors.batch_selector import BatchSelector
from stock_kernel.selectors.ledger_selector import LedgerSelector
from stock_kernel.selectors.notification_selector import NotificationSelector

__all__ = [
    "AuditSelector",
    "BatchSelector",
    "LedgerSelector",
    "NotificationSelector",
]
