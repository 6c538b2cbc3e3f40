"""Tests for the in-memory backend and its predicate evaluation."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from bson import ObjectId

from household_finance.models.records import (
    Budget,
    BudgetCategory,
    Category,
    HouseholdMember,
    SortOrder,
    Transaction,
)
from household_finance.services.storage import (
    CorruptRecordError,
    InMemoryLedgerStorage,
    InvalidIdentifierError,
    TransactionAbortedError,
)
from household_finance.services.storage.interface import CATEGORIES, TRANSACTIONS
from household_finance.services.storage.memory import matches, resolve_field


def _expense(amount: str, category: str = "", day: int = 1) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        type="expense",
        category=category,
        date=date(2024, 1, day),
    )


class TestPredicateMatching:
    """Tests for document predicate evaluation."""

    def test_equality_and_ranges(self):
        """Test equality plus inclusive range bounds."""
        document = {"type": "expense", "date": datetime(2024, 1, 31)}
        assert matches(document, {"type": "expense", "date": {"$gte": datetime(2024, 1, 31)}})
        assert not matches(document, {"date": {"$gt": datetime(2024, 1, 31)}})
        assert not matches(document, {"type": "income"})

    def test_array_equality_is_containment(self):
        """Test that equality on an array field matches any element."""
        document = {"incomeStreams": ["salary", "rent"]}
        assert matches(document, {"incomeStreams": "rent"})
        assert not matches(document, {"incomeStreams": "bonus"})

    def test_missing_field_fails_range(self):
        """Test that an absent field never satisfies a range."""
        assert not matches({}, {"income": {"$gte": 0}})

    def test_incomparable_types_do_not_match(self):
        """Test that comparing a string to a number is simply false."""
        assert not matches({"income": "lots"}, {"income": {"$gte": 10.0}})

    def test_dotted_paths_fan_out_over_arrays(self):
        """Test nested lookup through arrays."""
        document = {"members": [{"name": "a"}, {"name": "b"}]}
        assert resolve_field(document, "members.name") == ["a", "b"]
        assert matches(document, {"members.name": "b"})


@pytest.mark.asyncio
class TestTransactionStorage:
    """Tests for transaction reads and aggregations."""

    async def test_sum_of_nothing_is_none(self):
        """Test that an empty match set has no sum."""
        storage = InMemoryLedgerStorage()
        assert await storage.sum_amounts({}) is None

    async def test_sum_amounts(self):
        """Test summing amounts exactly."""
        storage = InMemoryLedgerStorage()
        await storage.add_transaction(_expense("10"))
        await storage.add_transaction(_expense("5.5"))
        assert await storage.sum_amounts({}) == Decimal("15.5")

    async def test_sum_has_no_float_drift(self):
        """Test that in-memory sums add stored amounts as exact decimals."""
        storage = InMemoryLedgerStorage()
        await storage.add_transaction(_expense("0.1"))
        await storage.add_transaction(_expense("0.2"))
        assert await storage.sum_amounts({}) == Decimal("0.3")

    async def test_group_amounts_descending(self):
        """Test partitions are returned largest first."""
        storage = InMemoryLedgerStorage()
        await storage.add_transaction(_expense("10", "food"))
        await storage.add_transaction(_expense("100", "rent"))
        await storage.add_transaction(_expense("5", "food"))
        groups = await storage.group_amounts({}, "category")
        assert [(group.group, group.total) for group in groups] == [
            ("rent", Decimal("100")),
            ("food", Decimal("15")),
        ]

    async def test_missing_group_field_groups_as_none(self):
        """Test that records without the field form their own partition."""
        storage = InMemoryLedgerStorage()
        await storage.add_transaction(_expense("7"))
        groups = await storage.group_amounts({}, "memberId")
        assert groups[0].group is None
        assert groups[0].total == Decimal("7")

    async def test_pagination_applies_after_sort(self):
        """Test that skip and limit never reorder results."""
        storage = InMemoryLedgerStorage()
        for day in (5, 1, 4, 2, 3):
            await storage.add_transaction(_expense(str(day), day=day))

        page = await storage.find_transactions({}, sort=("date", SortOrder.ASC), skip=1, limit=2)
        assert [t.date.day for t in page] == [2, 3]

        page = await storage.find_transactions({}, sort=("date", SortOrder.DESC), limit=2)
        assert [t.date.day for t in page] == [5, 4]

    async def test_round_trip_keeps_types(self):
        """Test that stored records come back as the same values."""
        storage = InMemoryLedgerStorage()
        transaction_id = await storage.add_transaction(_expense("12.34", "food", day=9))
        [stored] = await storage.find_transactions({})
        assert stored.id == transaction_id
        assert stored.amount == Decimal("12.34")
        assert stored.date == date(2024, 1, 9)

    async def test_update_and_delete(self):
        """Test partial update and delete by id."""
        storage = InMemoryLedgerStorage()
        transaction_id = await storage.add_transaction(_expense("1", "food"))
        assert await storage.update_transaction(transaction_id, {"category": "dining"})
        assert not await storage.update_transaction(transaction_id, {"category": "dining"})
        [stored] = await storage.find_transactions({})
        assert stored.category == "dining"
        assert await storage.delete_transaction(transaction_id)
        assert not await storage.delete_transaction(transaction_id)

    async def test_malformed_id_raises(self):
        """Test that ids are validated before lookup."""
        storage = InMemoryLedgerStorage()
        with pytest.raises(InvalidIdentifierError):
            await storage.delete_transaction("123")

    async def test_invalid_stored_document_raises_storage_error(self):
        """Test that a document that no longer fits its record is reported."""
        storage = InMemoryLedgerStorage()
        storage._collections[TRANSACTIONS].append({
            "_id": ObjectId(),
            "amount": 3.0,
            "type": "transfer",
            "date": datetime(2024, 1, 1),
        })
        with pytest.raises(CorruptRecordError):
            await storage.find_transactions({})


@pytest.mark.asyncio
class TestBudgetAndMemberStorage:
    """Tests for budgets and embedded household members."""

    async def test_upsert_budget_keeps_id(self):
        """Test that saving the same period again updates in place."""
        storage = InMemoryLedgerStorage()
        budget = Budget(
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            categories=[BudgetCategory(category="food", amount=Decimal("300"))],
        )
        first = await storage.upsert_budget(budget)
        second = await storage.upsert_budget(
            budget.model_copy(update={"categories": [BudgetCategory(category="food", amount=Decimal("250"))]})
        )
        assert first == second
        found = await storage.find_budget({})
        assert found.categories[0].amount == Decimal("250")

    async def test_members_are_embedded_in_one_household(self):
        """Test adding, updating and filtering members."""
        storage = InMemoryLedgerStorage()
        alex = await storage.add_member(HouseholdMember(name="Alex", income=Decimal("3000")))
        await storage.add_member(HouseholdMember(name="Sam", income=Decimal("1000")))

        assert await storage.update_member(alex, {"income_streams": ["salary"]})
        members = await storage.find_members({"incomeStreams": "salary"})
        assert [member.name for member in members] == ["Alex"]
        assert members[0].id == alex
        assert members[0].income == Decimal("3000")


@pytest.mark.asyncio
class TestCascadingDelete:
    """Tests for the atomic category + subcategory delete."""

    async def _tree(self, storage):
        parent = await storage.add_category(Category(name="Home", type="expense"))
        for name in ("Rent", "Repairs"):
            await storage.add_category(Category(name=name, type="expense", parent_id=parent))
        await storage.add_category(Category(name="Food", type="expense"))
        return parent

    async def test_deletes_parent_and_children(self):
        """Test that no document with the id or parentId remains."""
        storage = InMemoryLedgerStorage()
        parent = await self._tree(storage)

        deleted, children = await storage.delete_category_cascade(parent)

        assert deleted is True
        assert children == 2
        remaining = await storage.list_categories()
        assert [category.name for category in remaining] == ["Food"]

    async def test_unknown_id_deletes_nothing(self):
        """Test deleting a category that does not exist."""
        storage = InMemoryLedgerStorage()
        await self._tree(storage)
        assert await storage.delete_category_cascade("0" * 24) == (False, 0)
        assert len(await storage.list_categories()) == 4

    async def test_failure_between_deletes_rolls_back(self, monkeypatch):
        """Test that a failure deleting children restores the parent."""
        storage = InMemoryLedgerStorage()
        parent = await self._tree(storage)
        original = storage._delete_where
        calls = []

        def failing_delete(collection, predicate):
            calls.append(predicate)
            if len(calls) == 2:
                raise RuntimeError("store went away")
            return original(collection, predicate)

        monkeypatch.setattr(storage, "_delete_where", failing_delete)

        with pytest.raises(TransactionAbortedError):
            await storage.delete_category_cascade(parent)

        names = sorted(category.name for category in await storage.list_categories())
        assert names == ["Food", "Home", "Rent", "Repairs"]
        assert len(storage._collections[CATEGORIES]) == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
