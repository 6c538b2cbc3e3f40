"""Services package."""

from household_finance.services.storage import (
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    MongoConnection,
    MongoLedgerStorage,
    StorageError,
)

__all__ = [
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "MongoConnection",
    "MongoLedgerStorage",
    "StorageError",
]
