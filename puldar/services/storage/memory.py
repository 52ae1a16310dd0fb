"""
In-Memory Storage Implementation

Dict-backed ledger and audit stores. Used by tests and by sessions
that don't need the ledger to outlive the process.

Returned models are copies, so callers can't mutate stored state.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from puldar.models.audit import AuditEvent
from puldar.models.ledger import LedgerEntry, RecurringCommitment
from puldar.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger entries and commitments kept in dicts keyed by id."""

    def __init__(
        self,
        entries: Optional[list[LedgerEntry]] = None,
        commitments: Optional[list[RecurringCommitment]] = None,
    ):
        self._entries: dict[UUID, LedgerEntry] = {}
        self._commitments: dict[UUID, RecurringCommitment] = {}
        for entry in entries or []:
            self._entries[entry.id] = entry.model_copy()
        for commitment in commitments or []:
            self._commitments[commitment.id] = commitment.model_copy()

    async def save_entry(self, entry: LedgerEntry) -> bool:
        if entry.id in self._entries:
            raise DuplicateError(f"Entry already exists: {entry.id}")
        self._entries[entry.id] = entry.model_copy()
        return True

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy() if entry else None

    async def update_entry(self, entry: LedgerEntry) -> bool:
        if entry.id not in self._entries:
            raise NotFoundError(f"Entry not found: {entry.id}")
        self._entries[entry.id] = entry.model_copy()
        return True

    async def delete_entry(self, entry_id: UUID) -> bool:
        return self._entries.pop(entry_id, None) is not None

    async def list_entries(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        category_key: Optional[str] = None,
    ) -> list[LedgerEntry]:
        entries = list(self._entries.values())

        if date_from:
            entries = [e for e in entries if e.date >= date_from]
        if date_to:
            entries = [e for e in entries if e.date < date_to]
        if category_key:
            entries = [e for e in entries if e.category_key == category_key]

        entries.sort(key=lambda e: e.date, reverse=True)
        return [entry.model_copy() for entry in entries]

    async def save_commitment(self, commitment: RecurringCommitment) -> bool:
        self._commitments[commitment.id] = commitment.model_copy()
        return True

    async def list_commitments(self, active_only: bool = False) -> list[RecurringCommitment]:
        commitments = sorted(self._commitments.values(), key=lambda c: c.created_at)
        if active_only:
            commitments = [c for c in commitments if c.is_active]
        return [commitment.model_copy() for commitment in commitments]

    async def delete_commitment(self, commitment_id: UUID) -> bool:
        return self._commitments.pop(commitment_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
