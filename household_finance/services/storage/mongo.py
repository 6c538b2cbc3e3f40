"""
MongoDB Storage Implementation

DESIGN DECISION: Every storage call opens its own client and closes it
on every exit path. Nothing is cached between calls, so each public
operation is an independent unit against the store.

Predicates from household_finance.queries.filters are already in the
store's query language and are passed through unchanged. Aggregations
run server-side as pipelines.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Optional

import structlog
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError
from tenacity import (
    Retrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_finance.config import MongoSettings, get_settings
from household_finance.models.records import (
    Budget,
    Category,
    FinancialGoal,
    HouseholdMember,
    SortOrder,
    Transaction,
)
from household_finance.models.results import GroupTotal
from household_finance.services.storage.codec import (
    decode_record,
    encode_record,
    encode_updates,
    to_object_id,
)
from household_finance.services.storage.interface import (
    BUDGETS,
    CATEGORIES,
    GOALS,
    HOUSEHOLD,
    TRANSACTIONS,
    LedgerStorageInterface,
    Predicate,
    SortSpec,
    StorageError,
    StoreUnavailableError,
    TransactionAbortedError,
)

# Server error code for transactions on a standalone server
ILLEGAL_OPERATION = 20

logger = structlog.get_logger(__name__)


class MongoConnection:
    """
    Opens short-lived MongoDB clients.

    Handles connection retries and guarantees the client is closed.
    """

    def __init__(self, settings: Optional[MongoSettings] = None):
        self._settings = settings or get_settings().mongo

    def connect(self) -> MongoClient:
        """
        Open a client and confirm the server is reachable.

        Raises:
            StoreUnavailableError: If no server answered after all attempts
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(ConnectionFailure),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    client = MongoClient(
                        self._settings.uri,
                        serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
                    )
                    try:
                        client.admin.command("ping")
                    except PyMongoError:
                        client.close()
                        raise
                    return client
        except PyMongoError as e:
            raise StoreUnavailableError(f"Failed to connect to MongoDB: {e}") from e
        raise StoreUnavailableError("Failed to connect to MongoDB")

    @contextmanager
    def database(self) -> Iterator[Database]:
        """Yield the configured database; the client closes on exit."""
        client = self.connect()
        try:
            yield client.get_default_database(self._settings.database)
        finally:
            client.close()


class MongoLedgerStorage(LedgerStorageInterface):
    """
    MongoDB implementation of ledger storage.

    Collections: transactions, budgets, financialGoals, household
    (one document embedding all members) and categories.
    """

    def __init__(self, connection: Optional[MongoConnection] = None):
        self._connection = connection or MongoConnection()

    @contextmanager
    def _database(self, action: str) -> Iterator[Database]:
        try:
            with self._connection.database() as db:
                yield db
        except ConnectionFailure as e:
            raise StoreUnavailableError(f"Failed to {action}: {e}") from e
        except PyMongoError as e:
            raise StorageError(f"Failed to {action}: {e}") from e

    def _update_by_id(self, collection: str, record_id: str, updates: dict[str, Any]) -> bool:
        object_id = to_object_id(record_id)
        with self._database(f"update {collection}") as db:
            result = db[collection].update_one(
                {"_id": object_id},
                {"$set": encode_updates(updates)},
            )
            return result.modified_count > 0

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> str:
        with self._database("add transaction") as db:
            result = db[TRANSACTIONS].insert_one(encode_record(transaction))
            return str(result.inserted_id)

    async def update_transaction(self, transaction_id: str, updates: dict[str, Any]) -> bool:
        return self._update_by_id(TRANSACTIONS, transaction_id, updates)

    async def delete_transaction(self, transaction_id: str) -> bool:
        object_id = to_object_id(transaction_id)
        with self._database("delete transaction") as db:
            result = db[TRANSACTIONS].delete_one({"_id": object_id})
            return result.deleted_count > 0

    async def find_transactions(
        self,
        predicate: Predicate,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Transaction]:
        with self._database("list transactions") as db:
            cursor = db[TRANSACTIONS].find(predicate)
            if sort:
                field, order = sort
                cursor = cursor.sort(field, DESCENDING if order == SortOrder.DESC else ASCENDING)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return [decode_record(Transaction, doc) for doc in cursor]

    async def sum_amounts(self, predicate: Predicate) -> Optional[Decimal]:
        pipeline = [
            {"$match": predicate},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ]
        with self._database("sum transactions") as db:
            results = list(db[TRANSACTIONS].aggregate(pipeline))
        if not results:
            return None
        return Decimal(str(results[0]["total"]))

    async def group_amounts(self, predicate: Predicate, group_field: str) -> list[GroupTotal]:
        pipeline = [
            {"$match": predicate},
            {"$group": {"_id": f"${group_field}", "total": {"$sum": "$amount"}}},
            {"$sort": {"total": -1}},
        ]
        with self._database("group transactions") as db:
            results = list(db[TRANSACTIONS].aggregate(pipeline))
        return [
            GroupTotal(
                group=None if doc["_id"] is None else str(doc["_id"]),
                total=Decimal(str(doc["total"])),
            )
            for doc in results
        ]

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def upsert_budget(self, budget: Budget) -> str:
        document = encode_record(budget)
        identity = {"startDate": document["startDate"], "endDate": document["endDate"]}
        with self._database("save budget") as db:
            saved = db[BUDGETS].find_one_and_update(
                identity,
                {"$set": document},
                upsert=True,
                return_document=ReturnDocument.AFTER,
                projection={"_id": True},
            )
            return str(saved["_id"])

    async def find_budget(self, predicate: Predicate) -> Optional[Budget]:
        with self._database("find budget") as db:
            document = db[BUDGETS].find_one(predicate)
        return decode_record(Budget, document) if document else None

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def add_goal(self, goal: FinancialGoal) -> str:
        with self._database("create goal") as db:
            result = db[GOALS].insert_one(encode_record(goal))
            return str(result.inserted_id)

    async def update_goal(self, goal_id: str, updates: dict[str, Any]) -> bool:
        return self._update_by_id(GOALS, goal_id, updates)

    async def find_goals(self, predicate: Predicate) -> list[FinancialGoal]:
        with self._database("list goals") as db:
            return [decode_record(FinancialGoal, doc) for doc in db[GOALS].find(predicate)]

    # -------------------------------------------------------------------------
    # Household members
    # -------------------------------------------------------------------------

    async def add_member(self, member: HouseholdMember) -> str:
        document = {"_id": ObjectId(), **encode_record(member)}
        with self._database("add household member") as db:
            db[HOUSEHOLD].update_one({}, {"$push": {"members": document}}, upsert=True)
        return str(document["_id"])

    async def update_member(self, member_id: str, updates: dict[str, Any]) -> bool:
        object_id = to_object_id(member_id)
        with self._database("update household member") as db:
            result = db[HOUSEHOLD].update_one(
                {"members._id": object_id},
                {"$set": encode_updates(updates, prefix="members.$.")},
            )
            return result.modified_count > 0

    async def find_members(self, predicate: Predicate) -> list[HouseholdMember]:
        pipeline = [
            {"$unwind": "$members"},
            {"$replaceRoot": {"newRoot": "$members"}},
            {"$match": predicate},
        ]
        with self._database("list household members") as db:
            return [decode_record(HouseholdMember, doc) for doc in db[HOUSEHOLD].aggregate(pipeline)]

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def add_category(self, category: Category) -> str:
        with self._database("add category") as db:
            result = db[CATEGORIES].insert_one(encode_record(category))
            return str(result.inserted_id)

    async def update_category(self, category_id: str, updates: dict[str, Any]) -> bool:
        return self._update_by_id(CATEGORIES, category_id, updates)

    async def list_categories(self) -> list[Category]:
        with self._database("list categories") as db:
            return [decode_record(Category, doc) for doc in db[CATEGORIES].find()]

    async def delete_category_cascade(self, category_id: str) -> tuple[bool, int]:
        object_id = to_object_id(category_id)
        with self._database("delete category") as db:
            categories = db[CATEGORIES]
            try:
                with db.client.start_session() as session:
                    with session.start_transaction():
                        deleted = categories.delete_one({"_id": object_id}, session=session)
                        children = categories.delete_many(
                            {"parentId": str(object_id)}, session=session
                        )
                return deleted.deleted_count > 0, children.deleted_count
            except OperationFailure as e:
                if e.code != ILLEGAL_OPERATION:
                    raise TransactionAbortedError(f"Category deletion rolled back: {e}") from e
                logger.warning(
                    "transactions_unsupported",
                    category_id=category_id,
                    fallback="compensating_delete",
                )
            except PyMongoError as e:
                raise TransactionAbortedError(f"Category deletion rolled back: {e}") from e
            return self._delete_with_compensation(categories, object_id)

    def _delete_with_compensation(
        self,
        categories: Collection,
        object_id: ObjectId,
    ) -> tuple[bool, int]:
        """
        Delete parent then children without a server transaction.

        The children are read first. If their delete fails part way the
        parent and every child read are put back.
        """
        child_filter = {"parentId": str(object_id)}
        children = list(categories.find(child_filter))
        parent = categories.find_one_and_delete({"_id": object_id})
        try:
            deleted = categories.delete_many(child_filter)
        except PyMongoError as e:
            for document in ([parent] if parent is not None else []) + children:
                self._restore_document(categories, document)
            raise TransactionAbortedError(f"Category deletion rolled back: {e}") from e
        return parent is not None, deleted.deleted_count

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(PyMongoError),
        reraise=True,
    )
    def _restore_document(self, collection: Collection, document: dict) -> None:
        collection.replace_one({"_id": document["_id"]}, document, upsert=True)
