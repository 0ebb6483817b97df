"""Shared pytest fixtures."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import Any

import pytest

from swiftqueue.app import App
from swiftqueue.config import Config
from swiftqueue.core.core import Core
from swiftqueue.core.modules.event.models import EventType, QueueEvent
from swiftqueue.core.modules.event.sink import NotificationSink
from swiftqueue.core.modules.token.models import ServiceCategory, Token, TokenState


class RecordingSink(NotificationSink):
    """Keeps every published event for assertions."""

    def __init__(self) -> None:
        self.events: list[QueueEvent] = []

    def notify(self, event: QueueEvent) -> None:
        self.events.append(event)

    def types(self) -> list[EventType]:
        return [event.type for event in self.events]


def make_token(
    code: str,
    created_at: datetime,
    *,
    seq: int = 0,
    state: TokenState = TokenState.WAITING,
    called_at: datetime | None = None,
    completed_at: datetime | None = None,
    counter_id: int | None = None,
) -> Token:
    """Build a token directly, bypassing generation."""
    prefixes = {category.prefix: category for category in ServiceCategory}
    return Token(
        seq=seq,
        code=code,
        category=prefixes[code[0]],
        state=state,
        created_at=created_at,
        called_at=called_at,
        completed_at=completed_at,
        counter_id=counter_id,
    )


@pytest.fixture
def config() -> Config:
    """In-memory configuration; counters do not pull tokens on their own."""
    return Config(
        _env_file=None,  # type: ignore[call-arg]
        storage="memory",
        auto_assign_on_counter_available=False,
        auto_assign_on_token_created=False,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
async def core(config: Config, sink: RecordingSink) -> AsyncIterator[Core]:
    core = Core(config, sink)
    async with core.lifespan():
        yield core


@pytest.fixture
def make_core(config: Config, sink: RecordingSink) -> Callable[..., AbstractAsyncContextManager[Core]]:
    """Start a core with config overrides: `async with make_core(debug=True) as core`."""

    @asynccontextmanager
    async def factory(**overrides: Any) -> AsyncIterator[Core]:
        instance = Core(config.model_copy(update=overrides), sink)
        async with instance.lifespan():
            yield instance

    return factory


@pytest.fixture
def app(config: Config) -> App:
    return App(config)


@pytest.fixture
def build_token() -> Callable[..., Token]:
    return make_token
