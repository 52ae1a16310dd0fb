"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory stores for the ledger and audit log, JSON files for settings.
"""

from puldar.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
    StorageError,
)
from puldar.services.storage.json_file import JsonFileSettingsStorage
from puldar.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "SettingsStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileSettingsStorage",
]
