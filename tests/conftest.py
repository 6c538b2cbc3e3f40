"""Shared fixtures: an in-memory ledger with memory-backed settings."""

import pytest

from household_finance.config import AppSettings
from household_finance.ledger import HouseholdLedger
from household_finance.services.storage import InMemoryLedgerStorage


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(storage_backend="memory")


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def ledger(storage, settings) -> HouseholdLedger:
    return HouseholdLedger(storage=storage, settings=settings)
