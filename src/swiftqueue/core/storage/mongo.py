"""MongoDB backend using the pymongo async API."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from urllib.parse import urlparse

import structlog
from pymongo import ASCENDING, AsyncMongoClient, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from swiftqueue.core.modules.counter.models import Counter, CounterStatus
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenState
from swiftqueue.core.storage.base import (
    CounterRepository,
    SequenceRepository,
    Storage,
    TokenRepository,
    UniqueViolation,
)

logger = structlog.get_logger(__name__)

FIFO_SORT = [("created_at", ASCENDING), ("seq", ASCENDING)]


def _range(query: dict[str, Any], field: str, start: datetime | None, end: datetime | None) -> None:
    condition: dict[str, datetime] = {}
    if start is not None:
        condition["$gte"] = start
    if end is not None:
        condition["$lt"] = end
    if condition:
        query[field] = condition


class MongoTokenRepository(TokenRepository):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("tokens")

    async def create_indexes(self) -> None:
        await self._collection.create_index([("code", ASCENDING)], unique=True)
        await self._collection.create_index([("state", ASCENDING), *FIFO_SORT])
        await self._collection.create_index([("category", ASCENDING), ("created_at", ASCENDING)])
        await self._collection.create_index([("completed_at", ASCENDING)])
        # At most one serving token per counter
        await self._collection.create_index(
            [("counter_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"state": TokenState.SERVING.value},
            name="serving_counter_unique",
        )

    @asynccontextmanager
    async def creation_scope(self) -> AsyncGenerator[None]:
        # Concurrent creations are reconciled by the unique code index
        yield

    async def insert(self, token: Token) -> None:
        try:
            await self._collection.insert_one(token.to_mongo())
        except DuplicateKeyError as e:
            raise UniqueViolation(str(e)) from e

    async def get_by_code(self, code: str) -> Token | None:
        doc = await self._collection.find_one({"code": code})
        return Token.from_mongo(doc)

    async def find_first_waiting(self) -> Token | None:
        doc = await self._collection.find_one({"state": TokenState.WAITING}, sort=FIFO_SORT)
        return Token.from_mongo(doc)

    async def find_serving(self, counter_id: int) -> Token | None:
        doc = await self._collection.find_one({"state": TokenState.SERVING, "counter_id": counter_id})
        return Token.from_mongo(doc)

    async def count_ahead(self, token: Token) -> int:
        return await self._collection.count_documents(
            {
                "state": TokenState.WAITING,
                "category": token.category,
                "$or": [
                    {"created_at": {"$lt": token.created_at}},
                    {"created_at": token.created_at, "seq": {"$lt": token.seq}},
                ],
            }
        )

    def _build_query(
        self,
        state: TokenState | None,
        category: ServiceCategory | None,
        created_from: datetime | None,
        created_to: datetime | None,
        completed_from: datetime | None,
        completed_to: datetime | None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if state is not None:
            query["state"] = state
        if category is not None:
            query["category"] = category
        _range(query, "created_at", created_from, created_to)
        _range(query, "completed_at", completed_from, completed_to)
        return query

    async def count(
        self,
        *,
        state: TokenState | None = None,
        category: ServiceCategory | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        completed_from: datetime | None = None,
        completed_to: datetime | None = None,
    ) -> int:
        query = self._build_query(state, category, created_from, created_to, completed_from, completed_to)
        return await self._collection.count_documents(query)

    async def find(
        self,
        *,
        state: TokenState | None = None,
        category: ServiceCategory | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        completed_from: datetime | None = None,
        completed_to: datetime | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Token]:
        query = self._build_query(state, category, created_from, created_to, completed_from, completed_to)
        cursor = self._collection.find(query).sort(FIFO_SORT).skip(offset)
        if limit is not None:
            cursor = cursor.limit(limit)
        return await Token.list_cursor(cursor)

    async def update_if(
        self,
        code: str,
        expected_state: TokenState,
        changes: dict[str, object],
        expected_counter_id: int | None = None,
    ) -> Token | None:
        query: dict[str, Any] = {"code": code, "state": expected_state}
        if expected_counter_id is not None:
            query["counter_id"] = expected_counter_id
        try:
            doc = await self._collection.find_one_and_update(
                query, {"$set": changes}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise UniqueViolation(str(e)) from e
        return Token.from_mongo(doc)


class MongoCounterRepository(CounterRepository):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("counters")

    async def create_indexes(self) -> None:
        await self._collection.create_index([("number", ASCENDING)], unique=True)

    async def insert(self, counter: Counter) -> None:
        try:
            await self._collection.insert_one(counter.to_mongo())
        except DuplicateKeyError as e:
            raise UniqueViolation(str(e)) from e

    async def get(self, counter_id: int) -> Counter | None:
        doc = await self._collection.find_one({"_id": counter_id})
        return Counter.from_mongo(doc)

    async def get_by_number(self, number: int) -> Counter | None:
        doc = await self._collection.find_one({"number": number})
        return Counter.from_mongo(doc)

    async def find(self, status: CounterStatus | None = None) -> list[Counter]:
        query = {} if status is None else {"status": status}
        cursor = self._collection.find(query).sort("number", ASCENDING)
        return await Counter.list_cursor(cursor)

    async def count(self, status: CounterStatus | None = None) -> int:
        query = {} if status is None else {"status": status}
        return await self._collection.count_documents(query)

    async def set_status(self, counter_id: int, status: CounterStatus) -> Counter | None:
        doc = await self._collection.find_one_and_update(
            {"_id": counter_id}, {"$set": {"status": status}}, return_document=ReturnDocument.AFTER
        )
        return Counter.from_mongo(doc)

    async def delete(self, counter_id: int) -> bool:
        result = await self._collection.delete_one({"_id": counter_id})
        return result.deleted_count > 0


class MongoSequenceRepository(SequenceRepository):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("sequences")

    async def create_indexes(self) -> None:
        await self._collection.create_index([("name", ASCENDING)], unique=True)

    async def next(self, name: str) -> int:
        result = await self._collection.find_one_and_update(
            {"name": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        # Upserted documents start at 1
        return int(result["seq"])


class MongoStorage(Storage):
    """Storage backed by one MongoDB database (name taken from the URL path)."""

    tokens: MongoTokenRepository
    counters: MongoCounterRepository
    sequences: MongoSequenceRepository

    def __init__(self, database_url: str) -> None:
        self.client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(
            database_url, uuidRepresentation="standard", tz_aware=True
        )
        self.database = self.client.get_database(urlparse(database_url).path[1:] or "swiftqueue")
        self.tokens = MongoTokenRepository(self.database)
        self.counters = MongoCounterRepository(self.database)
        self.sequences = MongoSequenceRepository(self.database)

    async def open(self) -> None:
        await self.tokens.create_indexes()
        await self.counters.create_indexes()
        await self.sequences.create_indexes()
        logger.debug("mongo_indexes_ready", database=self.database.name)

    async def close(self) -> None:
        await self.client.aclose()
