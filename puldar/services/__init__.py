"""Services package: model client and storage ports."""

from puldar.services.model import (
    GeminiModelClient,
    ModelClient,
    ModelError,
)
from puldar.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileSettingsStorage,
    LedgerStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
    StorageError,
)

__all__ = [
    # Model services
    "GeminiModelClient",
    "ModelClient",
    "ModelError",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileSettingsStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "SettingsStorageInterface",
    "StorageError",
]
