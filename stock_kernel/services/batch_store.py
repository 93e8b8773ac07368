"""
stock_kernel.services.batch_store -- Batch quantity ownership.

Responsibility:
    The only code that writes ``batches.current_qty``.  Creates and
    deletes batches and applies signed quantity deltas.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    NON_NEGATIVE_QUANTITY -- ``apply_delta`` is one guarded statement:

        UPDATE batches
           SET current_qty = current_qty + :delta
         WHERE id = :id AND current_qty + :delta >= 0
        RETURNING ...

    The check and the write are the same statement, so two concurrent
    debits cannot both pass the check.  On PostgreSQL the second writer
    blocks on the row lock and re-evaluates the WHERE clause against the
    committed row; on SQLite writers are serialized by BEGIN IMMEDIATE.
    The RETURNING row is the snapshot every threshold comparison uses.

Failure modes:
    - BatchNotFoundError if the batch does not exist.
    - InsufficientStockError if the delta would drive the quantity negative.
    - InvalidBatchDatesError / InvalidQuantityError on batch creation or update.
    - LocationNotFoundError if a location assignment names an unknown location.
    - BatchReferencedError when deleting a batch that has dependents.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, exists, select, update
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import BatchRecord, BatchSnapshot, BatchUpdate, NewBatch
from stock_kernel.exceptions import (
    BatchNotFoundError,
    BatchReferencedError,
    InsufficientStockError,
    InvalidBatchDatesError,
    InvalidQuantityError,
    LocationNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.batch import Batch
from stock_kernel.models.ledger import LedgerEntry
from stock_kernel.models.reference import Location, LocationBatch, PurchaseOrderItem
from stock_kernel.services.base import BaseService

logger = get_logger("services.batch_store")

DEFAULT_LOW_STOCK_THRESHOLD = 10


class BatchStore(BaseService):
    """Owns each batch's quantity and lifecycle."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        super().__init__(session, clock)
        self._default_threshold = default_low_stock_threshold

    # -------------------------------------------------------------------------
    # Quantity
    # -------------------------------------------------------------------------

    def apply_delta(self, batch_id: UUID, signed_qty: int) -> BatchSnapshot:
        """Atomically add ``signed_qty`` to the batch quantity.

        Postconditions:
            - On success the new quantity is >= 0 and the returned snapshot
              reflects the row as written by this statement.
            - On failure nothing was written.
        """
        stmt = (
            update(Batch)
            .where(Batch.id == batch_id, Batch.current_qty + signed_qty >= 0)
            .values(
                current_qty=Batch.current_qty + signed_qty,
                updated_at=self.clock.now(),
            )
            .returning(
                Batch.id,
                Batch.batch_number,
                Batch.current_qty,
                Batch.low_stock_threshold,
                Batch.expiry_date,
                Batch.unit_price,
            )
            .execution_options(synchronize_session=False)
        )
        row = self.session.execute(stmt).one_or_none()

        if row is None:
            available = self.session.execute(
                select(Batch.current_qty).where(Batch.id == batch_id)
            ).scalar_one_or_none()
            if available is None:
                raise BatchNotFoundError(str(batch_id))
            logger.warning(
                "insufficient_stock_rejected",
                extra={
                    "batch_id": str(batch_id),
                    "available": available,
                    "requested": -signed_qty,
                },
            )
            raise InsufficientStockError(str(batch_id), available, -signed_qty)

        cached = self.session.identity_map.get(self.session.identity_key(Batch, batch_id))
        if cached is not None:
            self.session.expire(cached, ["current_qty", "updated_at"])

        logger.debug(
            "batch_quantity_applied",
            extra={
                "batch_id": str(batch_id),
                "delta": signed_qty,
                "current_qty": row.current_qty,
            },
        )
        return BatchSnapshot(
            id=row.id,
            batch_number=row.batch_number,
            current_qty=row.current_qty,
            low_stock_threshold=row.low_stock_threshold,
            expiry_date=row.expiry_date,
            unit_price=row.unit_price,
        )

    def ensure_available(self, batch_id: UUID, quantity: int) -> BatchSnapshot:
        """Check (without writing) that ``quantity`` could be debited now.

        Advisory only: the authoritative check is the guarded UPDATE in
        ``apply_delta``.
        """
        snapshot = self.snapshot(batch_id)
        if snapshot.current_qty < quantity:
            raise InsufficientStockError(str(batch_id), snapshot.current_qty, quantity)
        return snapshot

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_model(self, batch_id: UUID) -> Batch:
        batch = self.session.get(Batch, batch_id)
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch

    def get(self, batch_id: UUID) -> BatchRecord:
        return self.get_model(batch_id).to_dto()

    def snapshot(self, batch_id: UUID) -> BatchSnapshot:
        """Fresh read of the batch state (bypasses the identity map)."""
        batch = self.session.execute(
            select(Batch)
            .where(Batch.id == batch_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return batch.to_snapshot()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create_batch(self, data: NewBatch) -> BatchRecord:
        """Receive a new batch, optionally spread across locations.

        The opening quantity is split evenly (rounded down) across the
        distinct locations given.
        """
        if data.expiry_date <= data.manufacture_date:
            raise InvalidBatchDatesError(
                data.manufacture_date.isoformat(), data.expiry_date.isoformat(),
            )
        if isinstance(data.current_qty, bool) or data.current_qty < 0:
            raise InvalidQuantityError(data.current_qty)
        threshold = (
            data.low_stock_threshold
            if data.low_stock_threshold is not None
            else self._default_threshold
        )
        if threshold < 0:
            raise InvalidQuantityError(threshold)

        location_ids = self._require_locations(data.location_ids)

        now = self.clock.now()
        batch = Batch(
            drug_id=data.drug_id,
            supplier_id=data.supplier_id,
            batch_number=data.batch_number,
            manufacture_date=data.manufacture_date,
            expiry_date=data.expiry_date,
            purchase_date=data.purchase_date,
            unit_cost=data.unit_cost,
            unit_price=data.unit_price,
            current_qty=data.current_qty,
            low_stock_threshold=threshold,
            created_at=now,
            updated_at=now,
        )
        self.session.add(batch)
        self.session.flush()

        self._assign_locations(batch.id, location_ids, data.current_qty)

        logger.info(
            "batch_created",
            extra={
                "batch_id": str(batch.id),
                "current_qty": batch.current_qty,
                "low_stock_threshold": threshold,
                "location_count": len(location_ids),
            },
        )
        return batch.to_dto()

    def update_batch(self, batch_id: UUID, data: BatchUpdate) -> BatchRecord:
        """Change a batch's dates, prices, threshold or locations.

        Dates are checked against the values the batch ends up with, so
        moving only the expiry date is still validated.  When
        ``location_ids`` is given, the existing assignments are replaced
        and the current quantity is split evenly (rounded down) across
        the new ones.
        """
        batch = self.session.execute(
            select(Batch)
            .where(Batch.id == batch_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(str(batch_id))

        manufacture_date = data.manufacture_date or batch.manufacture_date
        expiry_date = data.expiry_date or batch.expiry_date
        if expiry_date <= manufacture_date:
            raise InvalidBatchDatesError(manufacture_date.isoformat(), expiry_date.isoformat())
        threshold = data.low_stock_threshold
        if threshold is not None and (isinstance(threshold, bool) or threshold < 0):
            raise InvalidQuantityError(threshold)

        location_ids = (
            self._require_locations(data.location_ids)
            if data.location_ids is not None
            else None
        )

        changed = data.changed_fields()
        for name in changed:
            setattr(batch, name, getattr(data, name))
        batch.updated_at = self.clock.now()
        self.session.flush()

        if location_ids is not None:
            self.session.execute(delete(LocationBatch).where(LocationBatch.batch_id == batch_id))
            self._assign_locations(batch_id, location_ids, batch.current_qty)

        logger.info(
            "batch_updated",
            extra={
                "batch_id": str(batch_id),
                "fields": changed,
                "location_count": len(location_ids) if location_ids is not None else None,
            },
        )
        return batch.to_dto()

    def delete_batch(self, batch_id: UUID) -> None:
        """Delete a batch that nothing references."""
        batch = self.get_model(batch_id)

        dependencies = (
            (LedgerEntry.batch_id, "transactions"),
            (PurchaseOrderItem.batch_id, "purchase order items"),
            (LocationBatch.batch_id, "location assignments"),
        )
        for column, label in dependencies:
            if self.session.execute(select(exists().where(column == batch_id))).scalar():
                raise BatchReferencedError(str(batch_id), label)

        self.session.delete(batch)
        self.session.flush()
        logger.info("batch_deleted", extra={"batch_id": str(batch_id)})

    # -------------------------------------------------------------------------
    # Locations
    # -------------------------------------------------------------------------

    def _require_locations(self, location_ids: tuple[UUID, ...]) -> list[UUID]:
        """Distinct location ids, in order; all must exist."""
        unique_ids = list(dict.fromkeys(location_ids))
        if unique_ids:
            found = set(
                self.session.execute(
                    select(Location.id).where(Location.id.in_(unique_ids))
                ).scalars()
            )
            missing = [str(lid) for lid in unique_ids if lid not in found]
            if missing:
                raise LocationNotFoundError(missing)
        return unique_ids

    def _assign_locations(self, batch_id: UUID, location_ids: list[UUID], quantity: int) -> None:
        if not location_ids:
            return
        per_location = quantity // len(location_ids)
        for location_id in location_ids:
            self.session.add(
                LocationBatch(location_id=location_id, batch_id=batch_id, quantity=per_location)
            )
        self.session.flush()
