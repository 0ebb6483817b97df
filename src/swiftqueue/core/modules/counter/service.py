import structlog

from swiftqueue.core.core import Service
from swiftqueue.core.modules.counter.models import Counter, CounterStatus, CounterView
from swiftqueue.core.modules.event.models import EventType
from swiftqueue.core.modules.sequence.models import SequenceKind
from swiftqueue.core.modules.token.models import TokenState
from swiftqueue.core.storage.base import UniqueViolation
from swiftqueue.errors import (
    CounterBusyError,
    CounterUnavailableError,
    DuplicateCounterError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

AUTO_ASSIGN_ATTEMPTS = 3


class CounterService(Service):
    """Registers counters, tracks availability, and pairs idle counters with pending tokens."""

    async def get_counter(self, counter_id: int) -> Counter:
        counter = await self.storage.counters.get(counter_id)
        if counter is None:
            raise NotFoundError(f"Counter not found: {counter_id}")
        return counter

    async def register_counter(self, number: int) -> Counter:
        """Create an active counter with a unique visible number."""
        if number < 1:
            raise ValidationError("Counter number must be a positive integer")
        number = await self._resolve_free_number(number)

        counter_id = await self.core.services.sequence.get_next_sequence(SequenceKind.COUNTER)
        counter = Counter(id=counter_id, number=number, status=CounterStatus.ACTIVE)
        try:
            await self.storage.counters.insert(counter)
        except UniqueViolation as e:
            raise DuplicateCounterError(f"Counter {number} already exists") from e

        logger.info("counter_registered", counter_id=counter.id, number=number)
        await self.core.services.event.publish(EventType.COUNTER_ADDED, counter=counter)
        if self.config.auto_assign_on_counter_available:
            await self.try_auto_assign(counter.id)
        return counter

    async def _resolve_free_number(self, number: int) -> int:
        if await self.storage.counters.get_by_number(number) is None:
            return number
        if not self.config.counter_number_probe:
            raise DuplicateCounterError(f"Counter {number} already exists")

        for candidate in range(number + 1, number + 1 + self.config.counter_number_probe_limit):
            if await self.storage.counters.get_by_number(candidate) is None:
                logger.debug("counter_number_probed", requested=number, assigned=candidate)
                return candidate
        raise DuplicateCounterError(f"No free counter number found from {number}")

    async def set_counter_active(self, counter_id: int) -> Counter:
        await self.get_counter(counter_id)
        counter = await self.storage.counters.set_status(counter_id, CounterStatus.ACTIVE)
        if counter is None:
            raise NotFoundError(f"Counter not found: {counter_id}")

        logger.info("counter_activated", counter_id=counter_id, number=counter.number)
        await self.core.services.event.publish(EventType.COUNTER_STATUS_CHANGED, counter=counter)
        if self.config.auto_assign_on_counter_available:
            await self.try_auto_assign(counter_id)
        return counter

    async def set_counter_inactive(self, counter_id: int) -> Counter:
        """Take a counter out of service; rejected while it serves a token.

        The serving check runs again after the status write so an assignment
        racing with this call cannot leave a serving token on an inactive counter.
        """
        counter = await self.get_counter(counter_id)
        await self._ensure_idle(counter)

        updated = await self.storage.counters.set_status(counter_id, CounterStatus.INACTIVE)
        if updated is None:
            raise NotFoundError(f"Counter not found: {counter_id}")

        occupant = await self.storage.tokens.find_serving(counter_id)
        if occupant is not None:
            await self.storage.counters.set_status(counter_id, counter.status)
            raise CounterBusyError(f"Counter {counter.number} is serving {occupant.code}")

        logger.info("counter_deactivated", counter_id=counter_id, number=updated.number)
        await self.core.services.event.publish(EventType.COUNTER_STATUS_CHANGED, counter=updated)
        return updated

    async def set_counter_status(self, counter_id: int, status: CounterStatus) -> Counter:
        if status == CounterStatus.INACTIVE:
            return await self.set_counter_inactive(counter_id)
        return await self.set_counter_active(counter_id)

    async def delete_counter(self, counter_id: int) -> None:
        counter = await self.get_counter(counter_id)
        await self._ensure_idle(counter)
        if not await self.storage.counters.delete(counter_id):
            raise NotFoundError(f"Counter not found: {counter_id}")

        logger.info("counter_deleted", counter_id=counter_id, number=counter.number)
        await self.core.services.event.publish(EventType.COUNTER_DELETED, counter_id=counter_id)

    async def _ensure_idle(self, counter: Counter) -> None:
        occupant = await self.storage.tokens.find_serving(counter.id)
        if occupant is not None:
            raise CounterBusyError(f"Counter {counter.number} is serving {occupant.code}")

    async def list_counters(self) -> list[CounterView]:
        """All counters by number, each with the token it is serving."""
        counters = await self.storage.counters.find()
        serving = await self.storage.tokens.find(state=TokenState.SERVING)
        by_counter = {t.counter_id: t.code for t in serving if t.counter_id is not None}
        return [CounterView.from_domain(c, by_counter.get(c.id)) for c in counters]

    async def list_available_counters(self) -> list[Counter]:
        """Active counters with no serving token, ordered by number."""
        active = await self.storage.counters.find(CounterStatus.ACTIVE)
        serving = await self.storage.tokens.find(state=TokenState.SERVING)
        busy = {t.counter_id for t in serving}
        return [c for c in active if c.id not in busy]

    async def _is_available(self, counter_id: int) -> bool:
        counter = await self.storage.counters.get(counter_id)
        if counter is None or counter.status != CounterStatus.ACTIVE:
            return False
        return await self.storage.tokens.find_serving(counter_id) is None

    async def try_auto_assign(self, counter_id: int | None = None) -> bool:
        """Pair the earliest pending token with an idle counter.

        Uses `counter_id` when it is available, otherwise the lowest numbered
        available counter. Returns False when there is nothing to pair, including
        when a concurrent caller took the token or counter first.
        """
        for _ in range(AUTO_ASSIGN_ATTEMPTS):
            token = await self.core.services.token.get_next_pending()
            if token is None:
                logger.debug("auto_assign_skipped", reason="no_pending_token")
                return False

            target = counter_id if counter_id is not None and await self._is_available(counter_id) else None
            if target is None:
                available = await self.list_available_counters()
                if not available:
                    logger.debug("auto_assign_skipped", reason="no_available_counter")
                    return False
                target = available[0].id

            try:
                await self.core.services.token.assign_to_counter(token.code, target)
            except InvalidTransitionError:
                logger.debug("auto_assign_retry", reason="token_taken", code=token.code)
                continue
            except CounterUnavailableError:
                logger.debug("auto_assign_retry", reason="counter_taken", counter_id=target)
                continue
            logger.info("auto_assigned", code=token.code, counter_id=target)
            return True
        return False
