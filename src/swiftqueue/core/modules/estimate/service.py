from datetime import timedelta

import structlog

from swiftqueue.core.core import Service
from swiftqueue.core.modules.token.models import Token, TokenState
from swiftqueue.utils import minutes_between, now, round_half_up

logger = structlog.get_logger(__name__)


def average_service_minutes(tokens: list[Token], default: int, floor: int) -> int:
    """Mean called->completed duration in whole minutes.

    Falls back to `default` without history and never returns less than `floor`.
    """
    durations = [
        minutes_between(token.called_at, token.completed_at)
        for token in tokens
        if token.called_at is not None and token.completed_at is not None
    ]
    if not durations:
        return default
    return max(round_half_up(sum(durations) / len(durations)), floor)


def estimate_wait_minutes(position: int, service_minutes: int) -> int:
    """Minutes until a token at `position` is called; the head of the queue waits 0."""
    return max(0, (position - 1) * service_minutes)


class WaitTimeService(Service):
    """Estimates waiting time from recent service durations."""

    async def get_average_service_minutes(self) -> int:
        since = now() - timedelta(hours=self.config.service_time_window_hours)
        completed = await self.storage.tokens.find(state=TokenState.COMPLETED, completed_from=since)
        average = average_service_minutes(completed, self.config.default_service_minutes, self.config.min_service_minutes)
        logger.debug("average_service_minutes", samples=len(completed), minutes=average)
        return average

    async def estimate(self, position: int) -> int:
        if position <= 1:
            return 0
        return estimate_wait_minutes(position, await self.get_average_service_minutes())
