"""Behavioural tests for the household ledger against the in-memory store."""

import pytest
from datetime import date
from decimal import Decimal

from household_finance.audit import AuditLogger
from household_finance.config import AppSettings
from household_finance.ledger import HouseholdLedger, create_ledger
from household_finance.models.records import GoalStatus, TransactionType
from household_finance.services.storage import (
    InMemoryLedgerStorage,
    InvalidDateError,
    InvalidIdentifierError,
    InvalidPayloadError,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def seeded(ledger):
    """A ledger holding a few January transactions."""
    await ledger.add_transaction("10", "expense", "2024-01-05", category="food")
    await ledger.add_transaction("100", "expense", "2024-01-01", category="rent")
    await ledger.add_transaction("5", "expense", "2024-01-20", category="food")
    await ledger.add_transaction("2500", "income", "2024-01-25", category="salary")
    await ledger.add_transaction("40", "expense", "2024-02-02", category="food")
    return ledger


class TestTransactions:
    """Tests for transaction listing and aggregation."""

    async def test_list_filters_by_period_and_type(self, seeded):
        """Test combined date range and type filters."""
        expenses = await seeded.list_transactions("2024-01-01", "2024-01-31", "expense")
        assert sorted(t.amount for t in expenses) == [Decimal("5"), Decimal("10"), Decimal("100")]

    async def test_list_sorted_and_paginated(self, seeded):
        """Test string limit/skip with a sort."""
        page = await seeded.list_transactions(
            type="expense", sort_by="date", sort_order="desc", limit="2", skip="1"
        )
        assert [t.date for t in page] == [date(2024, 1, 20), date(2024, 1, 5)]

    async def test_sum_with_no_matches_is_zero_string(self, seeded):
        """Test the empty sum."""
        assert await seeded.sum_transactions("2023-01-01", "2023-12-31") == "0"

    async def test_sum_formats_decimal(self, ledger):
        """Test that 10 + 5.5 sums to "15.5"."""
        await ledger.add_transaction(10, "expense", "2024-01-01")
        await ledger.add_transaction(5.5, "expense", "2024-01-02")
        assert await ledger.sum_transactions() == "15.5"

    async def test_sum_drops_trailing_zeros(self, seeded):
        """Test whole sums have no fractional part."""
        assert await seeded.sum_transactions(type="expense", category="food") == "55"

    async def test_group_by_category_descending(self, seeded):
        """Test grouping January expenses."""
        groups = await seeded.group_transactions("2024-01-01", "2024-01-31", "expense", "category")
        assert [(g.group, g.total) for g in groups] == [
            ("rent", Decimal("100")),
            ("food", Decimal("15")),
        ]

    async def test_group_by_unknown_field_raises(self, seeded):
        """Test group_by validation."""
        with pytest.raises(InvalidPayloadError):
            await seeded.group_transactions(group_by="description")

    async def test_member_filter_requires_valid_id(self, seeded):
        """Test that a malformed member id fails instead of matching nothing."""
        with pytest.raises(InvalidIdentifierError):
            await seeded.list_transactions(member_id="nope")

    async def test_bad_date_raises(self, seeded):
        """Test malformed dates fail fast."""
        with pytest.raises(InvalidDateError):
            await seeded.sum_transactions(start_date="yesterday")

    async def test_update_only_supplied_fields(self, ledger):
        """Test partial transaction update."""
        transaction_id = await ledger.add_transaction(
            "12", "expense", "2024-03-01", category="food", description="lunch"
        )
        assert await ledger.update_transaction(transaction_id, amount="15", description="")
        [stored] = await ledger.list_transactions()
        assert stored.amount == Decimal("15")
        assert stored.description == "lunch"
        assert stored.category == "food"

    async def test_update_with_nothing_supplied(self, ledger):
        """Test that an empty update reports no change."""
        transaction_id = await ledger.add_transaction("12", "expense", "2024-03-01")
        assert await ledger.update_transaction(transaction_id) is False

    async def test_delete_transaction(self, ledger):
        """Test deleting by id."""
        transaction_id = await ledger.add_transaction("12", "expense", "2024-03-01")
        assert await ledger.delete_transaction(transaction_id) is True
        assert await ledger.list_transactions() == []

    async def test_transactions_for_member(self, ledger):
        """Test filtering by member."""
        member_id = await ledger.add_household_member(name="Alex")
        await ledger.add_transaction("30", "expense", "2024-03-01", member_id=member_id)
        await ledger.add_transaction("70", "expense", "2024-03-02")
        assert await ledger.sum_transactions(member_id=member_id) == "30"

    async def test_add_rejects_unknown_type(self, ledger):
        """Test transaction type validation."""
        with pytest.raises(InvalidPayloadError):
            await ledger.add_transaction("1", "gift", "2024-03-01")


    async def test_long_description_round_trips(self, ledger):
        """Test that descriptions of any length are stored and read back."""
        await ledger.add_transaction("4", "expense", "2024-03-01", description="x" * 1001)
        [transaction] = await ledger.list_transactions()
        assert len(transaction.description) == 1001


class TestBudgets:
    """Tests for budget save and overlap lookup."""

    async def _january(self, ledger):
        return await ledger.save_budget(
            "2024-01-01",
            "2024-01-31",
            '[{"category": "food", "amount": 300}, {"category": "rent", "amount": 1200}]',
        )

    async def test_overlapping_query_finds_budget(self, ledger):
        """Test a query window that overlaps the budget period."""
        budget_id = await self._january(ledger)
        budget = await ledger.find_budget("2024-01-15", "2024-02-15")
        assert budget is not None
        assert budget.id == budget_id
        assert [c.category for c in budget.categories] == ["food", "rent"]

    async def test_disjoint_query_finds_nothing(self, ledger):
        """Test a query window after the budget period."""
        await self._january(ledger)
        assert await ledger.find_budget("2024-02-01", "2024-02-28") is None

    async def test_touching_boundary_matches(self, ledger):
        """Test that a window starting on the budget's last day matches."""
        await self._january(ledger)
        assert await ledger.find_budget("2024-01-31", "2024-02-28") is not None

    async def test_saving_same_period_returns_existing_id(self, ledger):
        """Test upsert by exact period."""
        first = await self._january(ledger)
        second = await ledger.save_budget(
            "2024-01-01", "2024-01-31", [{"category": "food", "amount": "250"}]
        )
        assert first == second
        budget = await ledger.find_budget("2024-01-01", "2024-01-31")
        assert budget.categories[0].amount == Decimal("250")

    async def test_malformed_categories_rejected(self, ledger):
        """Test that bad budget payloads raise a typed error."""
        with pytest.raises(InvalidPayloadError):
            await ledger.save_budget("2024-01-01", "2024-01-31", "[{not json")
        with pytest.raises(InvalidPayloadError):
            await ledger.save_budget("2024-01-01", "2024-01-31", '[{"category": "food"}]')


class TestGoals:
    """Tests for financial goals."""

    async def test_create_update_and_filter(self, ledger):
        """Test the goal lifecycle."""
        car = await ledger.create_goal("New car", "15000", "2025-06-30")
        await ledger.create_goal("Holiday", "3000", "2024-08-01")

        assert await ledger.update_goal(car, current_amount="5000", status="completed")

        completed = await ledger.list_goals(status="completed")
        assert [goal.description for goal in completed] == ["New car"]
        assert completed[0].current_amount == Decimal("5000")

        window = await ledger.list_goals(
            target_date_after="2024-01-01", target_date_before="2024-12-31"
        )
        assert [goal.description for goal in window] == ["Holiday"]

    async def test_update_rejects_unknown_status(self, ledger):
        """Test goal status validation on update."""
        goal_id = await ledger.create_goal("Fund", "100", "2025-01-01")
        with pytest.raises(InvalidPayloadError):
            await ledger.update_goal(goal_id, status="paused")

    async def test_new_goals_are_ongoing(self, ledger):
        """Test the default status."""
        await ledger.create_goal("Fund", "100", "2025-01-01")
        [goal] = await ledger.list_goals()
        assert goal.status == GoalStatus.ONGOING


class TestHouseholdMembers:
    """Tests for member finances."""

    async def test_update_keeps_unsupplied_fields(self, ledger):
        """Test that a partial member update keeps the other fields and the id."""
        member_id = await ledger.add_household_member(
            name="Alex",
            income="4000",
            income_streams='["salary"]',
            expenses=["rent"],
        )
        assert await ledger.update_member_finances(member_id, income="4500")

        [member] = await ledger.list_member_finances()
        assert member.id == member_id
        assert member.income == Decimal("4500")
        assert member.income_streams == ["salary"]
        assert member.expenses == ["rent"]

    async def test_amounts_are_stored_as_given(self, ledger):
        """Test that member income and goal amounts accept any finite number."""
        await ledger.add_household_member(name="Alex", income="-150")
        await ledger.create_goal("Pay down card", "-500", "2025-01-01")
        [member] = await ledger.list_member_finances()
        [goal] = await ledger.list_goals()
        assert member.income == Decimal("-150")
        assert goal.target_amount == Decimal("-500")

    async def test_filter_returns_only_matching_members(self, ledger):
        """Test income range and stream filters apply per member."""
        await ledger.add_household_member(name="Alex", income="4000", income_streams=["salary"])
        await ledger.add_household_member(name="Sam", income="900", income_streams=["freelance"])
        await ledger.add_household_member(name="Kim", income="2000", income_streams=["salary", "rent"])

        salaried = await ledger.list_member_finances(income_stream="salary")
        assert [m.name for m in salaried] == ["Alex", "Kim"]

        middle = await ledger.list_member_finances(min_income="1000", max_income="3000")
        assert [m.name for m in middle] == ["Kim"]

    async def test_malformed_streams_rejected(self, ledger):
        """Test member payload validation."""
        with pytest.raises(InvalidPayloadError):
            await ledger.add_household_member(name="Alex", income_streams='{"salary": 1}')


class TestCategories:
    """Tests for category management and suggestion."""

    async def test_delete_category_with_children(self, ledger):
        """Test that deleting a parent removes its subcategories."""
        home = await ledger.add_category("Home", "expense")
        await ledger.add_category("Rent", "expense", parent_id=home)
        await ledger.add_category("Repairs", "expense", parent_id=home)
        await ledger.add_category("Food", "expense")

        result = await ledger.delete_category_detailed(home)

        assert result.success is True
        assert result.category_deleted is True
        assert result.subcategories_deleted == 2
        assert [c.name for c in await ledger.list_categories()] == ["Food"]

    async def test_delete_reports_rollback_as_false(self, ledger, storage, monkeypatch):
        """Test that a rolled-back delete returns False and leaves everything."""
        home = await ledger.add_category("Home", "expense")
        await ledger.add_category("Rent", "expense", parent_id=home)
        original = storage._delete_where
        calls = []

        def failing_delete(collection, predicate):
            calls.append(predicate)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return original(collection, predicate)

        monkeypatch.setattr(storage, "_delete_where", failing_delete)

        assert await ledger.delete_category(home) is False
        assert len(await ledger.list_categories()) == 2

    async def test_detailed_delete_carries_error(self, ledger, storage, monkeypatch):
        """Test the detailed result of a rollback."""
        home = await ledger.add_category("Home", "expense")

        def failing_delete(collection, predicate):
            raise RuntimeError("disk full")

        monkeypatch.setattr(storage, "_delete_where", failing_delete)
        result = await ledger.delete_category_detailed(home)
        assert result.success is False
        assert "disk full" in result.error_message

    async def test_delete_unknown_category_still_succeeds(self, ledger):
        """Test that deleting nothing is not a failure."""
        result = await ledger.delete_category_detailed("0" * 24)
        assert result.success is True
        assert result.category_deleted is False

    async def test_update_category(self, ledger):
        """Test renaming and re-keywording a category."""
        category_id = await ledger.add_category("Food", "expense", keywords=["grocery"])
        assert await ledger.update_category(category_id, name="Groceries", keywords='["market", " "]')
        [category] = await ledger.list_categories()
        assert category.name == "Groceries"
        assert category.keywords == ["market"]

    async def test_update_category_rejects_blank_name(self, ledger):
        """Test that a whitespace-only name is refused and nothing changes."""
        category_id = await ledger.add_category("Food", "expense")
        with pytest.raises(InvalidPayloadError):
            await ledger.update_category(category_id, name="   ")
        [category] = await ledger.list_categories()
        assert category.name == "Food"

    async def test_suggest_and_categorize(self, ledger):
        """Test suggestion against stored categories."""
        await ledger.add_category("Food", "expense", keywords=["grocery", "restaurant"])

        suggestion = await ledger.suggest_category("grocery shopping then restaurant")
        assert suggestion.category == "Food"
        assert suggestion.model_dump()["confidence"] == "1"

        none = await ledger.suggest_category("paid rent")
        assert none.category is None

        result = await ledger.categorize("Electricity bill")
        assert result.category == "electricity"
        assert result.is_new_suggestion is True

    async def test_threshold_comes_from_settings(self, storage):
        """Test a configured suggestion threshold."""
        ledger = HouseholdLedger(
            storage=storage,
            settings=AppSettings(storage_backend="memory", suggestion_confidence_threshold=0.25),
        )
        await ledger.add_category("Food", "expense", keywords=["grocery", "restaurant"])
        assert (await ledger.suggest_category("grocery")).category == "Food"


class TestMetrics:
    """Tests for derived metrics and formatting."""

    async def test_average_all_types(self, seeded):
        """Test the average across income and expense."""
        result = await seeded.average_transaction_amount("2024-01-01", "2024-01-31")
        assert result.count == "4"
        assert result.average == "653.75"

    async def test_average_by_type(self, seeded):
        """Test the average of one type."""
        result = await seeded.average_transaction_amount("2024-01-01", "2024-01-31", "income")
        assert result.model_dump() == {"average": "2500", "count": "1"}

    async def test_average_of_nothing(self, ledger):
        """Test that an empty period averages to zero."""
        result = await ledger.average_transaction_amount("2024-01-01", "2024-01-31")
        assert result.model_dump() == {"average": "0", "count": "0"}

    async def test_days_between_and_formatting(self, ledger):
        """Test the static helpers."""
        assert ledger.days_between("2024-03-01", "2024-02-01") == "29"
        assert ledger.format_currency("1234.5") == "$1,234.50"
        assert ledger.format_decimal(15.0) == "15"


class TestAuditing:
    """Tests that operations emit audit events."""

    async def test_writes_and_queries_are_logged(self, storage, settings, monkeypatch):
        """Test the audit trail of a write followed by a read."""
        audit_logger = AuditLogger()
        events = []

        async def capture(event):
            events.append(event)
            return True

        monkeypatch.setattr(audit_logger, "log", capture)
        ledger = HouseholdLedger(storage=storage, audit_logger=audit_logger, settings=settings)

        await ledger.add_transaction("1", TransactionType.EXPENSE, date(2024, 1, 1))
        await ledger.list_transactions()

        assert [event.event_type.value for event in events] == [
            "transaction_added",
            "query_executed",
        ]


class TestCreateLedger:
    """Tests for building a ledger from settings."""

    async def test_memory_backend(self):
        """Test that the memory backend is selected from settings."""
        ledger = create_ledger(AppSettings(storage_backend="memory"), with_audit=False)
        assert isinstance(ledger.storage, InMemoryLedgerStorage)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
