import structlog

from swiftqueue.core.core import Service
from swiftqueue.core.modules.counter.models import CounterStatus
from swiftqueue.core.modules.estimate.service import estimate_wait_minutes
from swiftqueue.core.modules.event.models import EventType
from swiftqueue.core.modules.sequence.models import SequenceKind
from swiftqueue.core.modules.token.codes import format_display_code, parse_display_code
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenState, TokenView
from swiftqueue.core.pagination import PaginationResult
from swiftqueue.core.storage.base import UniqueViolation
from swiftqueue.errors import (
    CounterUnavailableError,
    GenerationExhaustedError,
    InvalidTransitionError,
    NotFoundError,
)
from swiftqueue.utils import day_bounds, now

logger = structlog.get_logger(__name__)

CALL_NEXT_ATTEMPTS = 3


class TokenService(Service):
    """Issues tokens, keeps FIFO order, and drives Waiting -> Serving -> Completed."""

    # === Identity and insertion ===

    async def generate_token(self, category: ServiceCategory | str) -> TokenView:
        """Issue the next display code for `category` and append the token to the queue.

        The code number is today's count for the category plus one. If that
        code already exists (a concurrent creation won it, or an earlier day
        used it) the next number is tried, up to `token_code_max_attempts`.
        """
        category = ServiceCategory.parse(category)
        tokens = self.storage.tokens

        async with tokens.creation_scope():
            start, end = day_bounds(self.config.timezone)
            issued_today = await tokens.count(category=category, created_from=start, created_to=end)
            seq = await self.core.services.sequence.get_next_sequence(SequenceKind.TOKEN)
            token = await self._insert_with_unique_code(category, seq, issued_today)

        position = token.queue_position or 1
        estimate = await self.core.services.estimate.estimate(position)
        logger.info("token_generated", code=token.code, category=category, position=position, estimate=estimate)

        await self.core.services.event.publish(EventType.TOKEN_GENERATED, token=token)

        if self.config.auto_assign_on_token_created and await self.core.services.counter.try_auto_assign():
            details = await self.get_token_details(token.code)
            if details is not None:
                return details

        return TokenView.from_domain(token, position=position, estimate=estimate)

    async def _insert_with_unique_code(self, category: ServiceCategory, seq: int, issued_today: int) -> Token:
        attempts = self.config.token_code_max_attempts
        for attempt in range(attempts):
            code = format_display_code(category, issued_today + attempt + 1)
            candidate = Token(seq=seq, code=code, category=category, created_at=now())
            candidate.queue_position = await self.storage.tokens.count_ahead(candidate) + 1
            try:
                await self.storage.tokens.insert(candidate)
            except UniqueViolation:
                logger.debug("token_code_collision", code=code, attempt=attempt + 1)
                continue
            return candidate

        logger.error("token_code_exhausted", category=category, attempts=attempts, issued_today=issued_today)
        raise GenerationExhaustedError(f"Unable to generate a unique token code for {category} after {attempts} attempts")

    # === Ordering queries ===

    async def get_token(self, code: str) -> Token:
        token = await self.storage.tokens.get_by_code(code)
        if token is None:
            raise NotFoundError(f"Token not found: {code}")
        return token

    async def get_next_pending(self) -> Token | None:
        """Earliest waiting token across all categories."""
        return await self.storage.tokens.find_first_waiting()

    async def position_of(self, code: str) -> int:
        """Live 1-based position within the token's category, 0 unless waiting."""
        token = await self.storage.tokens.get_by_code(code)
        if token is None or token.state != TokenState.WAITING:
            return 0
        return await self.storage.tokens.count_ahead(token) + 1

    async def get_token_details(self, code: str) -> TokenView | None:
        """Token with live position and estimate; None for unknown or malformed codes."""
        if parse_display_code(code) is None:
            return None
        token = await self.storage.tokens.get_by_code(code)
        if token is None:
            return None
        return await self._view(token)

    async def list_waiting(self, limit: int, offset: int = 0) -> PaginationResult[TokenView]:
        total = await self.storage.tokens.count(state=TokenState.WAITING)
        page = await self.storage.tokens.find(state=TokenState.WAITING, offset=offset, limit=limit)
        service_minutes = await self.core.services.estimate.get_average_service_minutes()
        items = [await self._view(token, service_minutes) for token in page]
        return PaginationResult(items=items, total=total, limit=limit, offset=offset)

    async def _view(self, token: Token, service_minutes: int | None = None) -> TokenView:
        """Build the API view. Pass `service_minutes` to reuse one history read across a page."""
        position = 0
        estimate = 0
        if token.state == TokenState.WAITING:
            position = await self.storage.tokens.count_ahead(token) + 1
            if service_minutes is None:
                estimate = await self.core.services.estimate.estimate(position)
            else:
                estimate = estimate_wait_minutes(position, service_minutes)

        counter_number = None
        if token.counter_id is not None:
            counter = await self.storage.counters.get(token.counter_id)
            counter_number = counter.number if counter else None

        return TokenView.from_domain(token, position=position, estimate=estimate, counter_number=counter_number)

    # === Lifecycle ===

    async def assign_to_counter(self, code: str, counter_id: int) -> Token:
        """Move a waiting token to Serving at an idle active counter.

        The serving-counter unique constraint decides races for the same
        counter. The counter status is checked again after the write so a
        concurrent deactivation never ends up holding a serving token.
        """
        token = await self.get_token(code)
        counter = await self.core.services.counter.get_counter(counter_id)

        if token.state != TokenState.WAITING:
            raise InvalidTransitionError(f"Token {code} is {token.state}, expected {TokenState.WAITING}")
        if counter.status != CounterStatus.ACTIVE:
            raise CounterUnavailableError(f"Counter {counter.number} is inactive")
        occupant = await self.storage.tokens.find_serving(counter_id)
        if occupant is not None:
            raise CounterUnavailableError(f"Counter {counter.number} is already serving {occupant.code}")

        try:
            updated = await self.storage.tokens.update_if(
                code,
                TokenState.WAITING,
                {"state": TokenState.SERVING, "counter_id": counter_id, "called_at": now()},
            )
        except UniqueViolation as e:
            raise CounterUnavailableError(f"Counter {counter.number} is already serving another token") from e
        if updated is None:
            raise InvalidTransitionError(f"Token {code} is no longer waiting")

        current = await self.storage.counters.get(counter_id)
        if current is None or current.status != CounterStatus.ACTIVE:
            await self._release(updated)
            raise CounterUnavailableError(f"Counter {counter.number} became unavailable")

        logger.info("token_assigned", code=code, counter_id=counter_id, counter_number=counter.number)
        await self.core.services.event.publish(EventType.TOKEN_CALLED, token=updated, counter=current)
        return updated

    async def call_next(self, counter_id: int) -> Token:
        """Assign the earliest pending token to the given counter."""
        for _ in range(CALL_NEXT_ATTEMPTS):
            token = await self.get_next_pending()
            if token is None:
                raise NotFoundError("No tokens in queue")
            try:
                return await self.assign_to_counter(token.code, counter_id)
            except InvalidTransitionError:
                # Another caller took this token first
                logger.debug("call_next_token_taken", code=token.code, counter_id=counter_id)
        raise InvalidTransitionError("Queue head kept changing, try again")

    async def complete_token(self, code: str) -> Token:
        """Finish service: Serving -> Completed, freeing the counter."""
        token = await self.get_token(code)
        if token.state != TokenState.SERVING:
            raise InvalidTransitionError(f"Token {code} is {token.state}, expected {TokenState.SERVING}")

        updated = await self.storage.tokens.update_if(
            code,
            TokenState.SERVING,
            {"state": TokenState.COMPLETED, "completed_at": now(), "counter_id": None},
        )
        if updated is None:
            raise InvalidTransitionError(f"Token {code} is no longer serving")

        logger.info("token_completed", code=code, counter_id=token.counter_id)
        await self.core.services.event.publish(EventType.TOKEN_COMPLETED, token=updated)
        return updated

    async def _release(self, token: Token) -> None:
        """Undo an assignment that lost a race with counter deactivation (never published)."""
        await self.storage.tokens.update_if(
            token.code,
            TokenState.SERVING,
            {"state": TokenState.WAITING, "counter_id": None, "called_at": None},
            expected_counter_id=token.counter_id,
        )
        logger.warning("token_assignment_reverted", code=token.code, counter_id=token.counter_id)
