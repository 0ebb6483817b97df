"""In-process backend guarded by asyncio locks.

Suitable for a single worker process and for tests. Records are copied on
the way in and out so callers never share mutable state with the store.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

from swiftqueue.core.modules.counter.models import Counter, CounterStatus
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenState
from swiftqueue.core.storage.base import (
    CounterRepository,
    SequenceRepository,
    Storage,
    TokenRepository,
    UniqueViolation,
)


def _fifo_key(token: Token) -> tuple[datetime, int]:
    return token.created_at, token.seq


def _in_range(value: datetime | None, start: datetime | None, end: datetime | None) -> bool:
    if start is None and end is None:
        return True
    if value is None:
        return False
    if start is not None and value < start:
        return False
    return not (end is not None and value >= end)


class MemoryTokenRepository(TokenRepository):
    def __init__(self) -> None:
        self._tokens: dict[str, Token] = {}  # code -> token
        self._lock = asyncio.Lock()
        self._creation_lock = asyncio.Lock()

    @asynccontextmanager
    async def creation_scope(self) -> AsyncGenerator[None]:
        async with self._creation_lock:
            yield

    async def insert(self, token: Token) -> None:
        async with self._lock:
            if token.code in self._tokens:
                raise UniqueViolation(f"Duplicate token code: {token.code}")
            self._tokens[token.code] = token.model_copy(deep=True)

    async def get_by_code(self, code: str) -> Token | None:
        async with self._lock:
            token = self._tokens.get(code)
            return token.model_copy(deep=True) if token else None

    async def find_first_waiting(self) -> Token | None:
        async with self._lock:
            waiting = [t for t in self._tokens.values() if t.state == TokenState.WAITING]
            if not waiting:
                return None
            return min(waiting, key=_fifo_key).model_copy(deep=True)

    async def find_serving(self, counter_id: int) -> Token | None:
        async with self._lock:
            token = self._serving_on(counter_id)
            return token.model_copy(deep=True) if token else None

    def _serving_on(self, counter_id: int) -> Token | None:
        for token in self._tokens.values():
            if token.state == TokenState.SERVING and token.counter_id == counter_id:
                return token
        return None

    async def count_ahead(self, token: Token) -> int:
        key = _fifo_key(token)
        async with self._lock:
            return sum(
                1
                for t in self._tokens.values()
                if t.state == TokenState.WAITING and t.category == token.category and _fifo_key(t) < key
            )

    def _select(
        self,
        state: TokenState | None,
        category: ServiceCategory | None,
        created_from: datetime | None,
        created_to: datetime | None,
        completed_from: datetime | None,
        completed_to: datetime | None,
    ) -> list[Token]:
        return [
            t
            for t in self._tokens.values()
            if (state is None or t.state == state)
            and (category is None or t.category == category)
            and _in_range(t.created_at, created_from, created_to)
            and _in_range(t.completed_at, completed_from, completed_to)
        ]

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
        async with self._lock:
            return len(self._select(state, category, created_from, created_to, completed_from, completed_to))

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
        async with self._lock:
            selected = sorted(
                self._select(state, category, created_from, created_to, completed_from, completed_to), key=_fifo_key
            )
            end = None if limit is None else offset + limit
            return [t.model_copy(deep=True) for t in selected[offset:end]]

    async def update_if(
        self,
        code: str,
        expected_state: TokenState,
        changes: dict[str, object],
        expected_counter_id: int | None = None,
    ) -> Token | None:
        async with self._lock:
            current = self._tokens.get(code)
            if current is None or current.state != expected_state:
                return None
            if expected_counter_id is not None and current.counter_id != expected_counter_id:
                return None
            updated = current.model_copy(update=changes, deep=True)
            if updated.state == TokenState.SERVING and updated.counter_id is not None:
                occupant = self._serving_on(updated.counter_id)
                if occupant is not None and occupant.code != code:
                    raise UniqueViolation(f"Counter {updated.counter_id} already serving {occupant.code}")
            self._tokens[code] = updated
            return updated.model_copy(deep=True)


class MemoryCounterRepository(CounterRepository):
    def __init__(self) -> None:
        self._counters: dict[int, Counter] = {}
        self._lock = asyncio.Lock()

    async def insert(self, counter: Counter) -> None:
        async with self._lock:
            if counter.id in self._counters:
                raise UniqueViolation(f"Duplicate counter id: {counter.id}")
            if any(c.number == counter.number for c in self._counters.values()):
                raise UniqueViolation(f"Duplicate counter number: {counter.number}")
            self._counters[counter.id] = counter.model_copy(deep=True)

    async def get(self, counter_id: int) -> Counter | None:
        async with self._lock:
            counter = self._counters.get(counter_id)
            return counter.model_copy(deep=True) if counter else None

    async def get_by_number(self, number: int) -> Counter | None:
        async with self._lock:
            for counter in self._counters.values():
                if counter.number == number:
                    return counter.model_copy(deep=True)
            return None

    async def find(self, status: CounterStatus | None = None) -> list[Counter]:
        async with self._lock:
            selected = [c for c in self._counters.values() if status is None or c.status == status]
            return [c.model_copy(deep=True) for c in sorted(selected, key=lambda c: c.number)]

    async def count(self, status: CounterStatus | None = None) -> int:
        async with self._lock:
            return sum(1 for c in self._counters.values() if status is None or c.status == status)

    async def set_status(self, counter_id: int, status: CounterStatus) -> Counter | None:
        async with self._lock:
            counter = self._counters.get(counter_id)
            if counter is None:
                return None
            counter.status = status
            return counter.model_copy(deep=True)

    async def delete(self, counter_id: int) -> bool:
        async with self._lock:
            return self._counters.pop(counter_id, None) is not None


class MemorySequenceRepository(SequenceRepository):
    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def next(self, name: str) -> int:
        async with self._lock:
            self._values[name] = self._values.get(name, 0) + 1
            return self._values[name]


class MemoryStorage(Storage):
    def __init__(self) -> None:
        self.tokens = MemoryTokenRepository()
        self.counters = MemoryCounterRepository()
        self.sequences = MemorySequenceRepository()
