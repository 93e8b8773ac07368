"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock history must be reconstructable: every quantity a batch ever held
is the sum of its ledger entries.  If an entry could be edited or deleted
the batch quantity would no longer be explainable.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

Core-level statements (the guarded batch UPDATE, ON DELETE SET NULL on
users) do not pass through these listeners; they never touch protected
columns.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity        | Allowed mutation                               | Delete
--------------|------------------------------------------------|--------
LedgerEntry   | pending sale -> approved/declined              | never
              | (status, notes, stock_reserved, updated_at)    |
Notification  | unread -> read (is_read, read_at)              | never
AuditLog      | none                                           | never

===============================================================================
USAGE
===============================================================================

Called once at startup (and by the test conftest):

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_SALE_SETTLEMENT_FIELDS = frozenset({"status", "notes", "stock_reserved", "updated_at"})
_NOTIFICATION_READ_FIELDS = frozenset({"is_read", "read_at"})


def _changed_fields(target) -> set[str]:
    insp = inspect(target)
    return {attr.key for attr in insp.attrs if attr.history.has_changes()}


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_ledger_entry_immutability(mapper, connection, target):
    """
    Allow only the settlement of a pending sale.

    Logic:
        1. Every changed field must be a settlement field.
        2. status must be changing, FROM pending TO approved/declined.
        3. The entry must be a sale.
    """
    changed = _changed_fields(target)
    if not changed:
        return

    illegal = changed - _SALE_SETTLEMENT_FIELDS
    if illegal:
        field = sorted(illegal)[0]
        _block(
            "LedgerEntry", target, "UPDATE",
            f"Cannot modify field '{field}' on a ledger entry",
            field=field,
        )

    status_history = get_history(target, "status")
    if not status_history.deleted:
        _block(
            "LedgerEntry", target, "UPDATE",
            "Ledger entries may only change as part of a sale settlement",
        )

    old_status = status_history.deleted[0]
    new_status = target.status
    if (
        target.entry_type != "sale"
        or old_status != "pending"
        or new_status not in ("approved", "declined")
    ):
        _block(
            "LedgerEntry", target, "UPDATE",
            f"Illegal status change '{old_status}' -> '{new_status}'",
            field="status",
        )


def _check_ledger_entry_delete(mapper, connection, target):
    _block("LedgerEntry", target, "DELETE", "Ledger entries cannot be deleted")


def _check_notification_immutability(mapper, connection, target):
    """Only the unread -> read transition is permitted."""
    changed = _changed_fields(target)
    if not changed:
        return

    illegal = changed - _NOTIFICATION_READ_FIELDS
    if illegal:
        field = sorted(illegal)[0]
        _block(
            "Notification", target, "UPDATE",
            f"Cannot modify field '{field}' on a notification",
            field=field,
        )

    read_history = get_history(target, "is_read")
    if read_history.deleted and read_history.deleted[0] and not target.is_read:
        _block(
            "Notification", target, "UPDATE",
            "A read notification cannot be marked unread",
            field="is_read",
        )


def _check_notification_delete(mapper, connection, target):
    _block("Notification", target, "DELETE", "Notifications cannot be deleted")


def _check_audit_log_immutability(mapper, connection, target):
    _block("AuditLog", target, "UPDATE", "Audit logs are immutable and cannot be modified")


def _check_audit_log_delete(mapper, connection, target):
    _block("AuditLog", target, "DELETE", "Audit logs cannot be deleted")


def _listeners():
    from stock_kernel.models.audit_log import AuditLog
    from stock_kernel.models.ledger import LedgerEntry
    from stock_kernel.models.notification import Notification

    return (
        (LedgerEntry, "before_update", _check_ledger_entry_immutability),
        (LedgerEntry, "before_delete", _check_ledger_entry_delete),
        (Notification, "before_update", _check_notification_immutability),
        (Notification, "before_delete", _check_notification_delete),
        (AuditLog, "before_update", _check_audit_log_immutability),
        (AuditLog, "before_delete", _check_audit_log_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """
    Safely remove an event listener, ignoring if not registered.
    """
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
