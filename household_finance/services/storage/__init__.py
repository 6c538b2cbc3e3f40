"""
Storage Services Package

Provides the abstract storage interface, its typed errors, and two
implementations: MongoDB for production and in-memory for tests.
"""

from household_finance.services.storage.interface import (
    CorruptRecordError,
    InvalidDateError,
    InvalidIdentifierError,
    InvalidPayloadError,
    LedgerStorageInterface,
    NotFoundError,
    Predicate,
    SortSpec,
    StorageError,
    StoreUnavailableError,
    TransactionAbortedError,
)
from household_finance.services.storage.memory import InMemoryLedgerStorage
from household_finance.services.storage.mongo import (
    MongoConnection,
    MongoLedgerStorage,
)

__all__ = [
    # Interface
    "LedgerStorageInterface",
    "Predicate",
    "SortSpec",
    # Exceptions
    "CorruptRecordError",
    "InvalidDateError",
    "InvalidIdentifierError",
    "InvalidPayloadError",
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    "TransactionAbortedError",
    # Implementations
    "InMemoryLedgerStorage",
    "MongoConnection",
    "MongoLedgerStorage",
]
