"""
Stock alert domain logic (``stock_kernel.domain.stock_alerts``).

Responsibility
--------------
Pure rules that turn a batch's quantity and expiry date into alert
decisions: which notification types must exist (unread) and which must
be cleared, the severity schedule for expiry alerts, and the message
text.  The notification service applies these decisions to storage.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.

Invariants enforced
-------------------
* Notifications are deduplicated by a structured ``NotificationKey``
  (type, entity name, entity id) rather than by message text.
* Stock-level decisions depend only on (current_qty, low_stock_threshold),
  so evaluating the same state twice yields the same decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID


class NotificationType(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED = "expired"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


BATCH_ENTITY = "Batch"


@dataclass(frozen=True)
class NotificationKey:
    """Structured dedup key: one unread notification per key."""

    notification_type: NotificationType
    entity_name: str
    entity_id: str

    @classmethod
    def for_batch(cls, notification_type: NotificationType, batch_id: UUID) -> NotificationKey:
        return cls(notification_type, BATCH_ENTITY, str(batch_id))


@dataclass(frozen=True)
class StockLevelDecision:
    """What the evaluator must ensure for one batch.

    ``ensure`` holds at most one type that needs an unread notification;
    ``clear`` lists types whose unread notifications must be marked read.
    """

    ensure: NotificationType | None
    clear: tuple[NotificationType, ...]


def decide_stock_level(current_qty: int, low_stock_threshold: int) -> StockLevelDecision:
    """Map a batch quantity snapshot to the out-of-stock / low-stock decision."""
    if current_qty == 0:
        return StockLevelDecision(NotificationType.OUT_OF_STOCK, ())

    clear = [NotificationType.OUT_OF_STOCK]
    if current_qty <= low_stock_threshold:
        return StockLevelDecision(NotificationType.LOW_STOCK, tuple(clear))

    clear.append(NotificationType.LOW_STOCK)
    return StockLevelDecision(None, tuple(clear))


STOCK_LEVEL_SEVERITY: dict[NotificationType, Severity] = {
    NotificationType.OUT_OF_STOCK: Severity.HIGH,
    NotificationType.LOW_STOCK: Severity.MEDIUM,
}


# Days before expiry at which a near_expiry alert fires.
DEFAULT_NEAR_EXPIRY_DAYS: tuple[int, ...] = (10, 5, 3, 2, 1)

# Days after expiry at which an expired alert fires (stock must remain).
DEFAULT_EXPIRED_DAYS: tuple[int, ...] = (0, 1, 2, 3, 5, 10)


def near_expiry_severity(days_until_expiry: int) -> Severity:
    """10/5 days -> low, 3/2 days -> medium, 1 day -> high."""
    if days_until_expiry <= 1:
        return Severity.HIGH
    if days_until_expiry <= 3:
        return Severity.MEDIUM
    return Severity.LOW


def expired_severity(days_since_expiry: int) -> Severity:
    """Day 0 -> high, up to 3 days -> medium, later -> low."""
    if days_since_expiry == 0:
        return Severity.HIGH
    if days_since_expiry <= 3:
        return Severity.MEDIUM
    return Severity.LOW


def _plural_days(days: int) -> str:
    return f"{days} day{'s' if days > 1 else ''}"


def batch_label(batch_id: UUID, batch_number: str | None) -> str:
    return f"#{batch_number}" if batch_number else f"#{batch_id}"


def out_of_stock_message(label: str) -> str:
    return f"Batch {label} is out of stock"


def low_stock_message(label: str, current_qty: int) -> str:
    return f"Batch {label} is running low on stock ({current_qty} remaining)"


def near_expiry_message(label: str, days_until_expiry: int) -> str:
    return f"Batch {label} expires in {_plural_days(days_until_expiry)}"


def expired_message(label: str, days_since_expiry: int) -> str:
    if days_since_expiry == 0:
        return f"Batch {label} has expired today"
    return f"Batch {label} expired {_plural_days(days_since_expiry)} ago"


@dataclass(frozen=True)
class ExpiryScanResult:
    """Outcome of one expiry scan."""

    as_of: date
    near_expiry_created: int = 0
    expired_created: int = 0

    @property
    def total_created(self) -> int:
        return self.near_expiry_created + self.expired_created
