"""
Abstract Storage Interface

DESIGN DECISION: The ledger core never talks to a concrete store.
The orchestrator depends on these ports, which allows us to:
1. Use in-memory storage for tests and short sessions
2. Keep settings in plain JSON files on disk
3. Swap in a real database later without touching the budget math

The interface is intentionally small - just the operations the
capture, history and dashboard flows need.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from puldar.models.audit import AuditEvent
from puldar.models.ledger import (
    BudgetConfiguration,
    CategoryState,
    LedgerEntry,
    RecurringCommitment,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger entries and recurring commitments.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def save_entry(self, entry: LedgerEntry) -> bool:
        """
        Save a new ledger entry.

        Returns:
            True if saved successfully

        Raises:
            DuplicateError: If an entry with the same id exists
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        """Retrieve an entry by id, or None."""
        pass

    @abstractmethod
    async def update_entry(self, entry: LedgerEntry) -> bool:
        """
        Replace an existing entry.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> bool:
        """
        Delete an entry by id.

        Returns:
            True if something was deleted
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        category_key: Optional[str] = None,
    ) -> list[LedgerEntry]:
        """
        List entries with optional filters, newest first.

        Args:
            date_from: Entries on or after this moment
            date_to: Entries strictly before this moment
            category_key: Exact storage key
        """
        pass

    @abstractmethod
    async def save_commitment(self, commitment: RecurringCommitment) -> bool:
        """Insert or replace a recurring commitment."""
        pass

    @abstractmethod
    async def list_commitments(self, active_only: bool = False) -> list[RecurringCommitment]:
        """List recurring commitments in creation order."""
        pass

    @abstractmethod
    async def delete_commitment(self, commitment_id: UUID) -> bool:
        """Delete a commitment; True if something was deleted."""
        pass


class SettingsStorageInterface(ABC):
    """
    Abstract interface for long-lived user settings.

    Each concern is loaded and saved as a whole document.
    """

    @abstractmethod
    async def load_configuration(self) -> Optional[BudgetConfiguration]:
        """Stored budget configuration, or None if never saved."""
        pass

    @abstractmethod
    async def save_configuration(self, configuration: BudgetConfiguration) -> bool:
        pass

    @abstractmethod
    async def load_category_state(self) -> CategoryState:
        """Stored category customizations (empty when never saved)."""
        pass

    @abstractmethod
    async def save_category_state(self, state: CategoryState) -> bool:
        pass

    @abstractmethod
    async def load_parse_cache(self) -> dict[str, dict]:
        """Serialized ParseCache map (empty when never saved)."""
        pass

    @abstractmethod
    async def save_parse_cache(self, data: dict[str, dict]) -> bool:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events of one capture, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
