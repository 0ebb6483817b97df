"""Storage contract for tokens, counters and sequences.

Every method is a single atomic step against the backing store. Services
compose these steps; anything spanning several steps relies on unique
constraints and conditional updates rather than in-process locks.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from swiftqueue.core.modules.counter.models import Counter, CounterStatus
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenState


class UniqueViolation(Exception):
    """Raised when a write would break a unique constraint."""


class TokenRepository(ABC):
    @abstractmethod
    def creation_scope(self) -> AbstractAsyncContextManager[None]:
        """Scope wrapping a whole token creation (count, pick code, insert).

        Backends able to serialize creations do so here. Others yield
        immediately and rely on the unique code constraint plus retry.
        """

    @abstractmethod
    async def insert(self, token: Token) -> None:
        """Insert a token. Raises UniqueViolation if the code is taken."""

    @abstractmethod
    async def get_by_code(self, code: str) -> Token | None: ...

    @abstractmethod
    async def find_first_waiting(self) -> Token | None:
        """Earliest waiting token by (created_at, seq) across all categories."""

    @abstractmethod
    async def find_serving(self, counter_id: int) -> Token | None: ...

    @abstractmethod
    async def count_ahead(self, token: Token) -> int:
        """Waiting tokens of the same category ordered strictly before `token`."""

    @abstractmethod
    async def count(
        self,
        *,
        state: TokenState | None = None,
        category: ServiceCategory | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        completed_from: datetime | None = None,
        completed_to: datetime | None = None,
    ) -> int: ...

    @abstractmethod
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
        """Tokens matching all given filters in FIFO order. Ranges are [from, to)."""

    @abstractmethod
    async def update_if(
        self,
        code: str,
        expected_state: TokenState,
        changes: dict[str, object],
        expected_counter_id: int | None = None,
    ) -> Token | None:
        """Apply `changes` only if the token is still in `expected_state`.

        Returns the updated token, or None when the precondition no longer
        holds. Raises UniqueViolation when the change would put a second
        serving token on the same counter.
        """


class CounterRepository(ABC):
    @abstractmethod
    async def insert(self, counter: Counter) -> None:
        """Insert a counter. Raises UniqueViolation if the number is taken."""

    @abstractmethod
    async def get(self, counter_id: int) -> Counter | None: ...

    @abstractmethod
    async def get_by_number(self, number: int) -> Counter | None: ...

    @abstractmethod
    async def find(self, status: CounterStatus | None = None) -> list[Counter]:
        """Counters ordered by number ascending."""

    @abstractmethod
    async def count(self, status: CounterStatus | None = None) -> int: ...

    @abstractmethod
    async def set_status(self, counter_id: int, status: CounterStatus) -> Counter | None: ...

    @abstractmethod
    async def delete(self, counter_id: int) -> bool: ...


class SequenceRepository(ABC):
    @abstractmethod
    async def next(self, name: str) -> int:
        """Atomically increment and return the sequence; the first value is 1."""


class Storage(ABC):
    """Bundle of repositories sharing one backend."""

    tokens: TokenRepository
    counters: CounterRepository
    sequences: SequenceRepository

    async def open(self) -> None:
        """Prepare the backend (indexes, connections)."""

    async def close(self) -> None:
        """Release backend resources."""
