"""Services for the stock kernel (write side)."""

from stock_kernel.services.audit_recorder import AuditRecorder
from stock_kernel.services.batch_store import BatchStore
from stock_kernel.services.expiry_scheduler import ExpiryScanScheduler
from stock_kernel.services.ledger_service import LedgerService
from stock_kernel.services.notification_service import StockNotificationEvaluator
from stock_kernel.services.sale_approval_service import SaleApprovalService
from stock_kernel.services.stock_orchestrator import KernelServices, StockOrchestrator

__all__ = [
    "AuditRecorder",
    "BatchStore",
    "ExpiryScanScheduler",
    "KernelServices",
    "LedgerService",
    "SaleApprovalService",
    "StockNotificationEvaluator",
    "StockOrchestrator",
]
