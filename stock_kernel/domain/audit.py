"""
Audit domain types.

``AuditEntry`` is what every mutating orchestrator operation hands to the
``AuditLogger``.  The acting user is passed explicitly; there is no
request-scoped "current user" lookup.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID


class AuditAction(str, Enum):
    """Types of auditable actions.

    A failed operation is recorded as ``<ACTION>_FAILED`` (see ``failed``).
    """

    CREATE = "CREATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    DECLINE = "DECLINE"
    UPDATE = "UPDATE"
    MARK_READ = "MARK_READ"

    def failed(self) -> str:
        return f"{self.value}_FAILED"


@dataclass(frozen=True)
class AuditEntry:
    """One activity-log record, not yet persisted."""

    entity_name: str
    entity_id: str
    action: str
    user_id: UUID | None
    summary: str
    occurred_at: datetime

    def without_user(self) -> AuditEntry:
        """Copy with the user reference cleared (fallback when the user is gone)."""
        return replace(self, user_id=None)


class AuditLogger(Protocol):
    """Collaborator interface for recording audit entries."""

    def log(self, entry: AuditEntry) -> None:
        """Write the entry now (blocking)."""
        ...

    def log_async(self, entry: AuditEntry) -> None:
        """Hand the entry off without blocking; never raises."""
        ...


@dataclass(frozen=True)
class AuditLogRecord:
    """Immutable view of a persisted audit log row."""

    id: UUID
    entity_name: str
    entity_id: str
    action: str
    user_id: UUID | None
    summary: str | None
    timestamp: datetime
