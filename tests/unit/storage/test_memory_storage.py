"""Tests for the in-memory storage backend."""

from datetime import timedelta

import pytest

from swiftqueue.core.modules.counter.models import Counter, CounterStatus
from swiftqueue.core.modules.token.models import ServiceCategory, TokenState
from swiftqueue.core.storage.base import UniqueViolation
from swiftqueue.core.storage.memory import MemoryStorage
from swiftqueue.utils import now


@pytest.fixture
def storage():
    return MemoryStorage()


class TestTokenRepository:
    async def test_duplicate_code(self, storage, build_token):
        await storage.tokens.insert(build_token("P-001", now()))
        with pytest.raises(UniqueViolation):
            await storage.tokens.insert(build_token("P-001", now()))

    async def test_reads_return_copies(self, storage, build_token):
        await storage.tokens.insert(build_token("P-001", now()))

        token = await storage.tokens.get_by_code("P-001")
        assert token is not None
        token.state = TokenState.COMPLETED

        stored = await storage.tokens.get_by_code("P-001")
        assert stored is not None
        assert stored.state == TokenState.WAITING

    async def test_update_if_checks_expected_state(self, storage, build_token):
        await storage.tokens.insert(build_token("B-001", now()))

        assert await storage.tokens.update_if("B-001", TokenState.SERVING, {"state": TokenState.COMPLETED}) is None
        assert await storage.tokens.update_if("X-001", TokenState.WAITING, {"state": TokenState.SERVING}) is None

        updated = await storage.tokens.update_if("B-001", TokenState.WAITING, {"state": TokenState.SERVING, "counter_id": 2})
        assert updated is not None
        assert updated.counter_id == 2

    async def test_update_if_checks_expected_counter(self, storage, build_token):
        await storage.tokens.insert(build_token("B-001", now(), state=TokenState.SERVING, counter_id=1))

        changes = {"state": TokenState.WAITING, "counter_id": None}
        assert await storage.tokens.update_if("B-001", TokenState.SERVING, changes, expected_counter_id=2) is None
        assert await storage.tokens.update_if("B-001", TokenState.SERVING, changes, expected_counter_id=1) is not None

    async def test_one_serving_token_per_counter(self, storage, build_token):
        await storage.tokens.insert(build_token("P-001", now(), state=TokenState.SERVING, counter_id=1))
        await storage.tokens.insert(build_token("P-002", now()))

        with pytest.raises(UniqueViolation):
            await storage.tokens.update_if("P-002", TokenState.WAITING, {"state": TokenState.SERVING, "counter_id": 1})

        occupant = await storage.tokens.find_serving(1)
        assert occupant is not None
        assert occupant.code == "P-001"

    async def test_count_ahead_is_per_category(self, storage, build_token):
        start = now() - timedelta(minutes=10)
        await storage.tokens.insert(build_token("P-001", start, seq=1))
        await storage.tokens.insert(build_token("B-001", start + timedelta(minutes=1), seq=2))
        await storage.tokens.insert(build_token("P-002", start + timedelta(minutes=2), seq=3, state=TokenState.COMPLETED))
        target = build_token("P-003", start + timedelta(minutes=3), seq=4)
        await storage.tokens.insert(target)

        assert await storage.tokens.count_ahead(target) == 1

    async def test_find_filters_and_pages(self, storage, build_token):
        start = now() - timedelta(hours=1)
        for i in range(5):
            await storage.tokens.insert(build_token(f"G-00{i + 1}", start + timedelta(minutes=i), seq=i))

        page = await storage.tokens.find(category=ServiceCategory.GENERAL, offset=1, limit=2)
        recent = await storage.tokens.count(created_from=start + timedelta(minutes=3))

        assert [t.code for t in page] == ["G-002", "G-003"]
        assert recent == 2
        assert await storage.tokens.count(completed_from=start) == 0


class TestCounterRepository:
    async def test_duplicate_number(self, storage):
        await storage.counters.insert(Counter(id=1, number=5))
        with pytest.raises(UniqueViolation):
            await storage.counters.insert(Counter(id=2, number=5))

    async def test_find_orders_by_number(self, storage):
        await storage.counters.insert(Counter(id=1, number=7))
        await storage.counters.insert(Counter(id=2, number=3, status=CounterStatus.INACTIVE))

        assert [c.number for c in await storage.counters.find()] == [3, 7]
        assert [c.id for c in await storage.counters.find(CounterStatus.ACTIVE)] == [1]
        assert await storage.counters.count(CounterStatus.INACTIVE) == 1

    async def test_set_status_and_delete(self, storage):
        await storage.counters.insert(Counter(id=1, number=1))

        updated = await storage.counters.set_status(1, CounterStatus.INACTIVE)
        assert updated is not None
        assert updated.status == CounterStatus.INACTIVE
        assert await storage.counters.set_status(9, CounterStatus.ACTIVE) is None

        assert await storage.counters.delete(1) is True
        assert await storage.counters.delete(1) is False


class TestSequenceRepository:
    async def test_independent_named_sequences(self, storage):
        assert await storage.sequences.next("token") == 1
        assert await storage.sequences.next("token") == 2
        assert await storage.sequences.next("counter") == 1
        assert await storage.sequences.next("token") == 3
