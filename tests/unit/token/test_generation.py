"""Tests for token issuance: codes, numbering, uniqueness under concurrency."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import pytest

from swiftqueue.core.modules.event.models import EventType
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenState
from swiftqueue.core.storage.base import UniqueViolation
from swiftqueue.core.storage.memory import MemoryTokenRepository
from swiftqueue.errors import GenerationExhaustedError, InvalidCategoryError
from swiftqueue.utils import now


class UnserializedTokenRepository(MemoryTokenRepository):
    """Lets creations overlap the way the Mongo backend does; only the unique code rule separates them."""

    def __init__(self) -> None:
        super().__init__()
        self.collisions = 0

    @asynccontextmanager
    async def creation_scope(self) -> AsyncGenerator[None]:
        yield

    async def count(self, **filters: Any) -> int:
        result = await super().count(**filters)
        await asyncio.sleep(0)  # every pending creation reads the same count
        return result

    async def insert(self, token: Token) -> None:
        try:
            await super().insert(token)
        except UniqueViolation:
            self.collisions += 1
            raise


class TestGenerateToken:
    async def test_first_token_of_category(self, core):
        """First Parcel token is P-001 at the head of the queue."""
        view = await core.services.token.generate_token("Parcel")

        assert view.code == "P-001"
        assert view.category == ServiceCategory.PARCEL
        assert view.state == TokenState.WAITING
        assert view.queue_position == 1
        assert view.estimated_wait_minutes == 0
        assert view.counter_id is None

    async def test_numbering_is_per_category(self, core):
        tokens = core.services.token
        codes = [
            (await tokens.generate_token("Parcel")).code,
            (await tokens.generate_token("Parcel")).code,
            (await tokens.generate_token("Banking")).code,
        ]

        assert codes == ["P-001", "P-002", "B-001"]
        pending = await tokens.get_next_pending()
        assert pending is not None
        assert pending.code == "P-001"

    async def test_sequential_numbering(self, core):
        codes = [(await core.services.token.generate_token(ServiceCategory.GENERAL)).code for _ in range(5)]
        assert codes == ["G-001", "G-002", "G-003", "G-004", "G-005"]

    async def test_position_counts_only_same_category(self, core):
        tokens = core.services.token
        await tokens.generate_token("Parcel")
        await tokens.generate_token("Banking")
        second_parcel = await tokens.generate_token("Parcel")

        assert second_parcel.queue_position == 2
        assert second_parcel.estimated_wait_minutes == core.config.default_service_minutes

    async def test_concurrent_generation_yields_distinct_codes(self, core):
        views = await asyncio.gather(*(core.services.token.generate_token("Banking") for _ in range(8)))

        codes = [view.code for view in views]
        assert len(set(codes)) == 8
        assert set(codes) == {f"B-{n:03d}" for n in range(1, 9)}

    async def test_overlapping_creations_retry_into_distinct_codes(self, core):
        repository = UnserializedTokenRepository()
        core.storage.tokens = repository

        views = await asyncio.gather(*(core.services.token.generate_token("Parcel") for _ in range(6)))

        assert sorted(view.code for view in views) == [f"P-{n:03d}" for n in range(1, 7)]
        assert repository.collisions > 0
        assert await repository.count(state=TokenState.WAITING) == 6

    async def test_concurrent_generation_across_categories(self, core):
        categories = ["Parcel", "Banking", "Parcel", "Documents", "Banking", "Parcel"]
        views = await asyncio.gather(*(core.services.token.generate_token(c) for c in categories))

        codes = sorted(view.code for view in views)
        assert codes == ["B-001", "B-002", "D-001", "P-001", "P-002", "P-003"]

    async def test_code_left_from_earlier_day_is_skipped(self, core, build_token):
        """Numbering restarts daily, but an older token still holding the code forces the next number."""
        earlier = now() - timedelta(days=2)
        await core.storage.tokens.insert(build_token("P-001", earlier, state=TokenState.COMPLETED))

        view = await core.services.token.generate_token("Parcel")

        assert view.code == "P-002"

    async def test_exhausted_attempts(self, make_core, build_token):
        earlier = now() - timedelta(days=2)
        async with make_core(token_code_max_attempts=2) as core:
            for code in ("D-001", "D-002"):
                await core.storage.tokens.insert(build_token(code, earlier, state=TokenState.COMPLETED))

            with pytest.raises(GenerationExhaustedError):
                await core.services.token.generate_token("Documents")

            assert await core.storage.tokens.count(state=TokenState.WAITING) == 0

    async def test_invalid_category(self, core, sink):
        with pytest.raises(InvalidCategoryError):
            await core.services.token.generate_token("Lost Property")

        assert sink.events == []
        assert await core.storage.tokens.count() == 0

    async def test_stored_token_has_creation_details(self, core):
        view = await core.services.token.generate_token("General Inquiry")

        stored = await core.storage.tokens.get_by_code(view.code)
        assert stored is not None
        assert stored.id == view.id
        assert stored.queue_position == 1
        assert stored.called_at is None
        assert stored.completed_at is None


class TestGenerationEvents:
    async def test_event_carries_token_and_statistics(self, core, sink):
        await core.services.token.generate_token("Parcel")

        assert sink.types() == [EventType.TOKEN_GENERATED]
        event = sink.events[0]
        assert event.token is not None
        assert event.token.code == "P-001"
        assert event.statistics is not None
        assert event.statistics.total_tokens_today == 1
        assert event.statistics.tokens_in_queue == 1

    async def test_auto_assign_on_creation(self, make_core):
        async with make_core(auto_assign_on_token_created=True) as core:
            counter = await core.services.counter.register_counter(1)

            view = await core.services.token.generate_token("Parcel")

            assert view.state == TokenState.SERVING
            assert view.counter_id == counter.id
            assert view.counter_number == 1
            assert view.queue_position == 0
