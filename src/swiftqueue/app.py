from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from swiftqueue.config import Config
from swiftqueue.core.core import Core
from swiftqueue.core.modules.counter.models import Counter, CounterStatus, CounterView
from swiftqueue.core.modules.event.sink import EventHub, NotificationSink, Subscription
from swiftqueue.core.modules.statistics.models import (
    CategoryStatistics,
    CounterUtilization,
    HourlyStatistics,
    QueueStatistics,
    QueueSummary,
)
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenView
from swiftqueue.core.pagination import PaginationResult


class App:
    """Facade for all queue operations used by the HTTP layer."""

    def __init__(self, config: Config, sink: NotificationSink | None = None) -> None:
        self._core = Core(config, sink)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Tokens ===
    async def generate_token(self, category: ServiceCategory | str) -> TokenView:
        """Issue a token for a service category."""
        return await self._core.services.token.generate_token(category)

    async def get_token_details(self, code: str) -> TokenView | None:
        """Get token with live queue position and wait estimate."""
        return await self._core.services.token.get_token_details(code)

    async def get_waiting_tokens(self, limit: int | None = None, offset: int = 0) -> PaginationResult[TokenView]:
        """Get waiting tokens in serving order."""
        page_size = limit if limit is not None else self._core.config.waiting_list_limit
        return await self._core.services.token.list_waiting(page_size, offset)

    async def get_next_pending(self) -> TokenView | None:
        """Peek at the token that will be served next."""
        token = await self._core.services.token.get_next_pending()
        if token is None:
            return None
        return await self._core.services.token.get_token_details(token.code)

    async def call_next(self, counter_id: int) -> TokenView:
        """Assign the next waiting token to a counter."""
        token = await self._core.services.token.call_next(counter_id)
        return await self._resolve_view(token)

    async def assign_token(self, code: str, counter_id: int) -> TokenView:
        """Assign a specific waiting token to a counter."""
        token = await self._core.services.token.assign_to_counter(code, counter_id)
        return await self._resolve_view(token)

    async def complete_token(self, code: str) -> TokenView:
        """Mark a serving token as completed."""
        token = await self._core.services.token.complete_token(code)
        return await self._resolve_view(token)

    # === Counters ===
    async def get_counters(self) -> list[CounterView]:
        return await self._core.services.counter.list_counters()

    async def get_available_counters(self) -> list[Counter]:
        return await self._core.services.counter.list_available_counters()

    async def register_counter(self, number: int) -> Counter:
        return await self._core.services.counter.register_counter(number)

    async def set_counter_status(self, counter_id: int, status: CounterStatus) -> Counter:
        return await self._core.services.counter.set_counter_status(counter_id, status)

    async def delete_counter(self, counter_id: int) -> None:
        await self._core.services.counter.delete_counter(counter_id)

    async def auto_assign(self, counter_id: int | None = None) -> bool:
        """Pair the next waiting token with an idle counter if possible."""
        return await self._core.services.counter.try_auto_assign(counter_id)

    # === Statistics ===
    async def get_queue_statistics(self) -> QueueStatistics:
        return await self._core.services.statistics.get_queue_statistics()

    async def get_category_statistics(self) -> list[CategoryStatistics]:
        return await self._core.services.statistics.get_category_statistics()

    async def get_hourly_statistics(self) -> list[HourlyStatistics]:
        return await self._core.services.statistics.get_hourly_statistics()

    async def get_counter_utilization(self) -> CounterUtilization:
        return await self._core.services.statistics.get_counter_utilization()

    async def get_queue_summary(self) -> QueueSummary:
        return await self._core.services.statistics.get_queue_summary()

    # === Real-time events ===
    def subscribe_events(self) -> Subscription:
        """Open a real-time event stream. Requires the built-in EventHub sink."""
        return self._event_hub().subscribe()

    def unsubscribe_events(self, subscription: Subscription) -> None:
        self._event_hub().unsubscribe(subscription)

    def _event_hub(self) -> EventHub:
        sink = self._core.sink
        if not isinstance(sink, EventHub):
            raise RuntimeError("Real-time events require the EventHub sink")
        return sink

    # === Private resolver methods ===
    async def _resolve_view(self, token: Token) -> TokenView:
        """Re-read a token as its API view. Falls back to the given state if it vanished."""
        view = await self._core.services.token.get_token_details(token.code)
        return view if view is not None else TokenView.from_domain(token)
