"""
Module: stock_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: listings, lookups and
    counts over batches, ledger entries, notifications and the audit log.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, never
      live ORM instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from stock_kernel.db.base import Base
from stock_kernel.domain.dtos import PageMeta

ModelType = TypeVar("ModelType", bound=Base)

MAX_PAGE_SIZE = 100


def clamp_page(page: int, limit: int) -> tuple[int, int]:
    """Normalise 1-based page and page size (1..MAX_PAGE_SIZE)."""
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    def _count(self, stmt: Select) -> int:
        return self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()

    def _paginate(self, stmt: Select, page: int, limit: int) -> tuple[list[ModelType], PageMeta]:
        page, limit = clamp_page(page, limit)
        total = self._count(stmt)
        rows = self.session.execute(
            stmt.offset((page - 1) * limit).limit(limit)
        ).scalars().all()
        return list(rows), PageMeta(total=total, page=page, limit=limit)
