"""
Ledger domain types (``stock_kernel.domain.ledger``).

Responsibility
--------------
Pure value objects for stock movements: entry types and their sign rule,
entry statuses, the sale settlement state machine, and the frozen record
returned to callers.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Sign rule: ``inbound`` and ``positive return`` credit the batch;
  ``sale`` and ``negative return`` debit it.
* ``SALE_TRANSITIONS`` defines the only valid sale status transitions.
  Terminal states have no outgoing edges.
* Quantities are positive integers (bool is rejected even though it is
  an ``int`` subclass).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.exceptions import InvalidEntryTypeError, InvalidQuantityError


class EntryType(str, Enum):
    """Kinds of quantity-affecting events."""

    INBOUND = "inbound"
    SALE = "sale"
    POSITIVE_RETURN = "positive return"
    NEGATIVE_RETURN = "negative return"

    @property
    def is_credit(self) -> bool:
        return self in CREDIT_TYPES

    @classmethod
    def parse(cls, value: EntryType | str) -> EntryType:
        """Resolve a raw type string, raising InvalidEntryTypeError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidEntryTypeError(str(value)) from None


CREDIT_TYPES: frozenset[EntryType] = frozenset({
    EntryType.INBOUND,
    EntryType.POSITIVE_RETURN,
})

DEBIT_TYPES: frozenset[EntryType] = frozenset({
    EntryType.SALE,
    EntryType.NEGATIVE_RETURN,
})


class EntryStatus(str, Enum):
    """Ledger entry statuses.  Non-sale entries are born ``completed``."""

    PENDING = "pending"
    COMPLETED = "completed"
    APPROVED = "approved"
    DECLINED = "declined"


SALE_TRANSITIONS: dict[EntryStatus, frozenset[EntryStatus]] = {
    EntryStatus.PENDING: frozenset({
        EntryStatus.APPROVED,
        EntryStatus.DECLINED,
    }),
    EntryStatus.APPROVED: frozenset(),
    EntryStatus.DECLINED: frozenset(),
}

TERMINAL_SALE_STATUSES: frozenset[EntryStatus] = frozenset({
    EntryStatus.APPROVED,
    EntryStatus.DECLINED,
})


class SaleDebitTiming(str, Enum):
    """When a sale removes stock from its batch.

    ON_CREATE reserves stock while the sale is pending: decline credits
    it back, approve only settles the status.  ON_APPROVAL defers the
    debit: decline never touches the batch, approve performs the debit.
    """

    ON_CREATE = "on_create"
    ON_APPROVAL = "on_approval"


def validate_quantity(quantity: object) -> int:
    """Return ``quantity`` if it is a positive int, else raise InvalidQuantityError."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


def signed_quantity(entry_type: EntryType, quantity: int) -> int:
    """Apply the sign rule: credits are positive, debits negative."""
    return quantity if entry_type in CREDIT_TYPES else -quantity


def can_transition(current: EntryStatus, target: EntryStatus) -> bool:
    return target in SALE_TRANSITIONS.get(current, frozenset())


def append_note(existing: str | None, addition: str | None) -> str | None:
    """Concatenate notes, one per line, ignoring blanks."""
    parts = [p for p in (existing, addition) if p and p.strip()]
    if not parts:
        return existing
    return "\n".join(parts)


@dataclass(frozen=True)
class LedgerEntryRecord:
    """Immutable view of a persisted ledger entry."""

    id: UUID
    batch_id: UUID
    entry_type: EntryType
    quantity: int
    unit_price: Decimal
    status: EntryStatus
    stock_reserved: bool
    user_id: UUID | None
    notes: str | None
    from_location_id: UUID | None
    to_location_id: UUID | None
    sale_id: UUID | None
    transaction_date: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def signed_quantity(self) -> int:
        return signed_quantity(self.entry_type, self.quantity)

    @property
    def is_sale(self) -> bool:
        return self.entry_type == EntryType.SALE

    @property
    def is_pending(self) -> bool:
        return self.status == EntryStatus.PENDING
