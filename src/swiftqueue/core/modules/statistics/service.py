import asyncio
from zoneinfo import ZoneInfo

from swiftqueue.core.core import Service
from swiftqueue.core.modules.counter.models import CounterStatus
from swiftqueue.core.modules.statistics.models import (
    CategoryStatistics,
    CounterUtilization,
    HourlyStatistics,
    QueueStatistics,
    QueueSummary,
)
from swiftqueue.core.modules.token.models import ServiceCategory, TokenState
from swiftqueue.utils import day_bounds, minutes_between, now, round_half_up


class StatisticsService(Service):
    """Read-only aggregates for dashboards and event snapshots."""

    async def get_queue_statistics(self) -> QueueStatistics:
        start, end = day_bounds(self.config.timezone)
        tokens = self.storage.tokens
        counters = self.storage.counters

        total_today, waiting, serving, active, inactive, completed_today = await asyncio.gather(
            tokens.count(created_from=start, created_to=end),
            tokens.count(state=TokenState.WAITING),
            tokens.count(state=TokenState.SERVING),
            counters.count(CounterStatus.ACTIVE),
            counters.count(CounterStatus.INACTIVE),
            tokens.find(state=TokenState.COMPLETED, created_from=start, created_to=end),
        )

        waits = [minutes_between(t.created_at, t.called_at) for t in completed_today if t.called_at is not None]
        average_wait = round(sum(waits) / len(waits), 1) if waits else 0.0

        return QueueStatistics(
            total_tokens_today=total_today,
            tokens_in_queue=waiting,
            tokens_serving=serving,
            average_wait_time=average_wait,
            active_counters=active,
            inactive_counters=inactive,
        )

    async def get_category_statistics(self) -> list[CategoryStatistics]:
        start, end = day_bounds(self.config.timezone)
        tokens = self.storage.tokens
        result = []
        for category in ServiceCategory:
            total, waiting, serving, completed = await asyncio.gather(
                tokens.count(category=category, created_from=start, created_to=end),
                tokens.count(category=category, state=TokenState.WAITING),
                tokens.count(category=category, state=TokenState.SERVING),
                tokens.count(category=category, state=TokenState.COMPLETED, created_from=start, created_to=end),
            )
            result.append(
                CategoryStatistics(category=category, total_today=total, waiting=waiting, serving=serving, completed=completed)
            )
        return result

    async def get_hourly_statistics(self) -> list[HourlyStatistics]:
        """Tokens created and completed today, bucketed by local hour."""
        zone = ZoneInfo(self.config.timezone)
        start, end = day_bounds(self.config.timezone)
        created = await self.storage.tokens.find(created_from=start, created_to=end)
        completed = await self.storage.tokens.find(completed_from=start, completed_to=end)

        generated_by_hour = [0] * 24
        completed_by_hour = [0] * 24
        for token in created:
            generated_by_hour[token.created_at.astimezone(zone).hour] += 1
        for token in completed:
            if token.completed_at is not None:
                completed_by_hour[token.completed_at.astimezone(zone).hour] += 1

        return [
            HourlyStatistics(hour=hour, tokens_generated=generated_by_hour[hour], tokens_completed=completed_by_hour[hour])
            for hour in range(24)
        ]

    async def get_counter_utilization(self) -> CounterUtilization:
        counters = await self.storage.counters.find()
        serving = await self.storage.tokens.find(state=TokenState.SERVING)
        busy_ids = {t.counter_id for t in serving if t.counter_id is not None}

        active = [c for c in counters if c.status == CounterStatus.ACTIVE]
        busy = sum(1 for c in active if c.id in busy_ids)
        rate = busy / len(active) * 100 if active else 0.0

        return CounterUtilization(
            total_counters=len(counters),
            active_counters=len(active),
            busy_counters=busy,
            utilization_rate=round(rate, 2),
        )

    async def get_queue_summary(self) -> QueueSummary:
        oldest = await self.storage.tokens.find_first_waiting()
        total_waiting, total_serving = await asyncio.gather(
            self.storage.tokens.count(state=TokenState.WAITING),
            self.storage.tokens.count(state=TokenState.SERVING),
        )
        longest = round_half_up(minutes_between(oldest.created_at, now())) if oldest else 0
        average_position = (total_waiting + 1) / 2 if total_waiting else 0.0

        return QueueSummary(
            total_waiting=total_waiting,
            total_serving=total_serving,
            longest_wait_time=max(longest, 0),
            average_queue_position=round(average_position, 2),
        )
