"""
Data Transfer Objects for the stock kernel.

Frozen dataclasses passed between services, selectors and callers.
ORM models convert to these via ``to_dto()``; nothing outside the
kernel sees a live ORM instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

from stock_kernel.domain.ledger import EntryStatus, LedgerEntryRecord
from stock_kernel.domain.stock_alerts import NotificationType, Severity

T = TypeVar("T")


@dataclass(frozen=True)
class BatchSnapshot:
    """Batch state as returned by the guarded quantity update.

    Threshold comparisons after a movement use this snapshot, never a
    second read.
    """

    id: UUID
    batch_number: str | None
    current_qty: int
    low_stock_threshold: int
    expiry_date: date
    unit_price: Decimal


@dataclass(frozen=True)
class BatchRecord:
    """Full view of a batch."""

    id: UUID
    drug_id: UUID
    supplier_id: UUID
    batch_number: str | None
    manufacture_date: date
    expiry_date: date
    purchase_date: date
    unit_cost: Decimal
    unit_price: Decimal
    current_qty: int
    low_stock_threshold: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class NewBatch:
    """Input for BatchStore.create_batch."""

    drug_id: UUID
    supplier_id: UUID
    manufacture_date: date
    expiry_date: date
    purchase_date: date
    unit_cost: Decimal
    unit_price: Decimal
    batch_number: str | None = None
    current_qty: int = 0
    low_stock_threshold: int | None = None
    location_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class BatchUpdate:
    """Input for BatchStore.update_batch.

    Fields left as None keep their current value.  There is no quantity
    field: quantity only moves through the ledger.  ``location_ids``
    replaces every location assignment when given (an empty tuple
    removes them all).
    """

    batch_number: str | None = None
    manufacture_date: date | None = None
    expiry_date: date | None = None
    purchase_date: date | None = None
    unit_cost: Decimal | None = None
    unit_price: Decimal | None = None
    low_stock_threshold: int | None = None
    location_ids: tuple[UUID, ...] | None = None

    def changed_fields(self) -> list[str]:
        return [
            name
            for name in (
                "batch_number", "manufacture_date", "expiry_date", "purchase_date",
                "unit_cost", "unit_price", "low_stock_threshold",
            )
            if getattr(self, name) is not None
        ]


@dataclass(frozen=True)
class SaleItem:
    """One line of a grouped sale."""

    batch_id: UUID
    quantity: int
    notes: str | None = None


class SaleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True)
class SaleRecord:
    """A grouped sale header with its lines."""

    id: UUID
    status: SaleStatus
    notes: str | None
    created_by_id: UUID | None
    created_at: datetime
    updated_at: datetime
    entries: tuple[LedgerEntryRecord, ...] = ()

    @property
    def total_quantity(self) -> int:
        return sum(e.quantity for e in self.entries)

    @property
    def total_amount(self) -> Decimal:
        return sum((e.unit_price * e.quantity for e in self.entries), Decimal("0"))


@dataclass(frozen=True)
class NotificationRecord:
    id: UUID
    notification_type: NotificationType
    severity: Severity
    message: str
    entity_name: str
    entity_id: str
    is_read: bool
    read_at: datetime | None
    expires_at: datetime | None
    user_id: UUID | None
    created_at: datetime


@dataclass(frozen=True)
class NotificationCounts:
    total: int
    unread: int
    by_severity: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PageMeta:
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 1
        return max(1, (self.total + self.limit - 1) // self.limit)


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    meta: PageMeta


@dataclass(frozen=True)
class LedgerFilter:
    """Filters for listing ledger entries."""

    entry_type: str | None = None
    status: EntryStatus | None = None
    batch_id: UUID | None = None
    user_id: UUID | None = None
    from_location_id: UUID | None = None
    to_location_id: UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    search: str | None = None
    page: int = 1
    limit: int = 20
    sort_by: str = "transaction_date"
    sort_dir: str = "desc"


class StockStatus(str, Enum):
    """Batch listing filter by stock state."""

    ALL = "all"
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    EXPIRED = "expired"
    NEAR_EXPIRY = "near_expiry"


# Window used by the near_expiry listing filter (not by alerts).
NEAR_EXPIRY_WINDOW_DAYS = 30


@dataclass(frozen=True)
class BatchFilter:
    """Filters for listing batches.

    ``as_of`` anchors the expired / near-expiry / in-stock filters;
    the selector uses today's date when it is None.
    """

    stock_status: StockStatus = StockStatus.ALL
    drug_id: UUID | None = None
    supplier_id: UUID | None = None
    expiry_from: date | None = None
    expiry_to: date | None = None
    as_of: date | None = None
    page: int = 1
    limit: int = 50
    sort_by: str = "expiry_date"
    sort_dir: str = "asc"
