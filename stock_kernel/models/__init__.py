"""Domain models for the stock kernel."""

from stock_kernel.models.audit_log import AuditLog
from stock_kernel.models.batch import Batch
from stock_kernel.models.ledger import LedgerEntry
from stock_kernel.models.notification import Notification
from stock_kernel.models.reference import Location, LocationBatch, PurchaseOrderItem, User
from stock_kernel.models.sale import Sale

__all__ = [
    "AuditLog",
    "Batch",
    "LedgerEntry",
    "Location",
    "LocationBatch",
    "Notification",
    "PurchaseOrderItem",
    "Sale",
    "User",
]
