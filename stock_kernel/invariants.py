"""
Kernel Invariants Contract.

These invariants are structural law. No configuration value may switch
them off; configuration only chooses *when* a sale reserves stock and
*which* thresholds raise alerts.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across BatchStore, LedgerService,
SaleApprovalService, StockNotificationEvaluator and the ORM listeners
in stock_kernel.db.immutability.
"""

from enum import Enum, unique


@unique
class StockInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_QUANTITY = "non_negative_quantity"
    """A batch's current_qty is never below zero. Enforced by the guarded
    UPDATE in BatchStore.apply_delta and by the ck_batches_qty_non_negative
    check constraint."""

    ATOMIC_MOVEMENT = "atomic_movement"
    """A batch quantity change and its ledger entry commit together or
    not at all. Enforced by LedgerService running both in the caller's
    transaction."""

    LEDGER_IMMUTABILITY = "ledger_immutability"
    """Ledger entries are never deleted and never updated, except for the
    pending -> approved|declined settlement of a sale."""

    TERMINAL_SALE_STATUS = "terminal_sale_status"
    """Approved and declined sales cannot transition again, so a sale's
    stock effect is applied or released at most once."""

    NOTIFICATION_DEDUP = "notification_dedup"
    """At most one unread notification exists per (type, entity) key."""


ALL_STOCK_INVARIANTS: frozenset[StockInvariant] = frozenset(StockInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_config",
    "scripts",
)
