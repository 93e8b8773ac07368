"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP controllers, schedulers, scripts) map kernel failures to
responses. Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        orchestrator.record_transaction(batch_id, "sale", 5, user_id)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- NotFoundError
    |   +-- BatchNotFoundError
    |   +-- LedgerEntryNotFoundError
    |   +-- SaleNotFoundError
    |   +-- NotificationNotFoundError
    |   +-- LocationNotFoundError
    |
    +-- BadRequestError
    |   +-- InvalidQuantityError
    |   +-- InvalidEntryTypeError
    |   +-- InvalidSaleTransitionError
    |   +-- NotASaleError
    |   +-- DeclineReasonRequiredError
    |   +-- InvalidBatchDatesError
    |   +-- EmptySaleError
    |   +-- GroupedSaleLineError
    |
    +-- InsufficientStockError
    |
    +-- ConflictError
    |   +-- BatchReferencedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
NotFound        | BATCH_NOT_FOUND             | Batch ID doesn't exist
                | LEDGER_ENTRY_NOT_FOUND      | Stock movement ID doesn't exist
                | SALE_NOT_FOUND              | Grouped sale ID doesn't exist
                | NOTIFICATION_NOT_FOUND      | Notification ID doesn't exist
                | LOCATION_NOT_FOUND          | Location ID doesn't exist
----------------|-----------------------------|-----------------------------------------
BadRequest      | INVALID_QUANTITY            | Quantity is not a positive integer
                | INVALID_ENTRY_TYPE          | Unknown movement type
                | INVALID_SALE_TRANSITION     | Sale is not pending
                | NOT_A_SALE                  | Approve/decline on a non-sale entry
                | DECLINE_REASON_REQUIRED     | Decline without a reason
                | INVALID_BATCH_DATES         | Expiry not after manufacture
                | EMPTY_SALE                  | Grouped sale with no lines
                | GROUPED_SALE_LINE           | Settling one line of a grouped sale
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Debit would drive quantity negative
----------------|-----------------------------|-----------------------------------------
Conflict        | BATCH_REFERENCED            | Batch has dependent rows
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY CATEGORY BASE CLASSES?
   The API layer maps categories to status codes (NotFoundError -> 404,
   BadRequestError -> 400, ConflictError -> 409, InsufficientStockError
   -> 422) without enumerating every leaf.

2. WHY IS InsufficientStockError ITS OWN CATEGORY?
   It is the only failure that depends on concurrent state rather than
   on the request itself; callers may choose to resubmit a smaller
   quantity.

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(StockKernelError):
    """Base exception for missing referenced records."""

    code: str = "NOT_FOUND"


class BatchNotFoundError(NotFoundError):
    """Batch with given ID was not found."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch not found: {batch_id}")


class LedgerEntryNotFoundError(NotFoundError):
    """Stock movement with given ID was not found."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Transaction not found: {entry_id}")


class SaleNotFoundError(NotFoundError):
    """Grouped sale with given ID was not found."""

    code: str = "SALE_NOT_FOUND"

    def __init__(self, sale_id: str):
        self.sale_id = sale_id
        super().__init__(f"Sale not found: {sale_id}")


class NotificationNotFoundError(NotFoundError):
    """Notification with given ID was not found."""

    code: str = "NOTIFICATION_NOT_FOUND"

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification not found: {notification_id}")


class LocationNotFoundError(NotFoundError):
    """One or more locations were not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_ids: list[str]):
        self.location_ids = location_ids
        super().__init__(f"Locations not found: {', '.join(location_ids)}")


# Bad-request exceptions


class BadRequestError(StockKernelError):
    """Base exception for requests that are invalid on their own terms."""

    code: str = "BAD_REQUEST"


class InvalidQuantityError(BadRequestError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class InvalidEntryTypeError(BadRequestError):
    """Unknown stock movement type."""

    code: str = "INVALID_ENTRY_TYPE"

    def __init__(self, entry_type: str):
        self.entry_type = entry_type
        super().__init__(f"Unknown transaction type: {entry_type!r}")


class InvalidSaleTransitionError(BadRequestError):
    """Sale status transition is not allowed from the current status."""

    code: str = "INVALID_SALE_TRANSITION"

    def __init__(self, entity_id: str, current_status: str, target_status: str):
        self.entity_id = entity_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Cannot move sale {entity_id} to '{target_status}': "
            f"current status is '{current_status}'"
        )


class NotASaleError(BadRequestError):
    """Approve/decline requested on a movement that is not a sale."""

    code: str = "NOT_A_SALE"

    def __init__(self, entry_id: str, entry_type: str):
        self.entry_id = entry_id
        self.entry_type = entry_type
        super().__init__(
            f"Only sale transactions can be approved or declined; "
            f"{entry_id} is '{entry_type}'"
        )


class DeclineReasonRequiredError(BadRequestError):
    """A decline must carry a non-blank reason."""

    code: str = "DECLINE_REASON_REQUIRED"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"A reason is required to decline sale {entity_id}")


class InvalidBatchDatesError(BadRequestError):
    """Expiry date must be after manufacture date."""

    code: str = "INVALID_BATCH_DATES"

    def __init__(self, manufacture_date: str, expiry_date: str):
        self.manufacture_date = manufacture_date
        self.expiry_date = expiry_date
        super().__init__(
            f"Expiry date {expiry_date} must be after manufacture date "
            f"{manufacture_date}"
        )


class EmptySaleError(BadRequestError):
    """A grouped sale needs at least one line."""

    code: str = "EMPTY_SALE"

    def __init__(self):
        super().__init__("A sale must contain at least one item")


class GroupedSaleLineError(BadRequestError):
    """A line of a grouped sale is settled through its sale, not on its own."""

    code: str = "GROUPED_SALE_LINE"

    def __init__(self, entry_id: str, sale_id: str):
        self.entry_id = entry_id
        self.sale_id = sale_id
        super().__init__(
            f"Transaction {entry_id} belongs to sale {sale_id}; "
            f"approve or decline the sale instead"
        )


# Stock exceptions


class InsufficientStockError(StockKernelError):
    """Debit would drive the batch quantity below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, batch_id: str, available: int, requested: int):
        self.batch_id = batch_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock in batch {batch_id}: "
            f"available {available}, requested {requested}"
        )


# Conflict exceptions


class ConflictError(StockKernelError):
    """Base exception for operations blocked by dependent state."""

    code: str = "CONFLICT"


class BatchReferencedError(ConflictError):
    """Batch cannot be deleted because other records reference it."""

    code: str = "BATCH_REFERENCED"

    def __init__(self, batch_id: str, dependency: str):
        self.batch_id = batch_id
        self.dependency = dependency
        super().__init__(
            f"Batch {batch_id} cannot be deleted: it has {dependency}"
        )


# Immutability exceptions


class ImmutabilityError(StockKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger entries, audit logs and notifications are append-only apart
    from their documented lifecycle fields.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
