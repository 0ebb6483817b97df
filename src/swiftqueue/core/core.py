from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import cast

import structlog

from swiftqueue.config import Config
from swiftqueue.core.modules.event.sink import EventHub, NotificationSink
from swiftqueue.core.storage.base import Storage

logger = structlog.get_logger(__name__)


class Service:
    """Base class for services with direct storage access."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    @property
    def config(self) -> Config:
        return self.core.config

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from swiftqueue.core.modules.counter.service import CounterService  # noqa: PLC0415
    from swiftqueue.core.modules.estimate.service import WaitTimeService  # noqa: PLC0415
    from swiftqueue.core.modules.event.service import EventService  # noqa: PLC0415
    from swiftqueue.core.modules.sequence.service import SequenceService  # noqa: PLC0415
    from swiftqueue.core.modules.statistics.service import StatisticsService  # noqa: PLC0415
    from swiftqueue.core.modules.token.service import TokenService  # noqa: PLC0415

    sequence: SequenceService
    event: EventService
    statistics: StatisticsService
    estimate: WaitTimeService
    token: TokenService
    counter: CounterService

    def __init__(self, storage: Storage) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []

        # Service configuration: (attribute_name, module_path, class_name)
        service_configs = [
            ("sequence", "swiftqueue.core.modules.sequence.service", "SequenceService"),
            ("event", "swiftqueue.core.modules.event.service", "EventService"),
            ("statistics", "swiftqueue.core.modules.statistics.service", "StatisticsService"),
            ("estimate", "swiftqueue.core.modules.estimate.service", "WaitTimeService"),
            ("token", "swiftqueue.core.modules.token.service", "TokenService"),
            ("counter", "swiftqueue.core.modules.counter.service", "CounterService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(storage)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in reversed(self._services):
            await service.on_stop()


def create_storage(config: Config) -> Storage:
    """Build the storage backend selected by configuration."""
    if config.storage == "memory":
        from swiftqueue.core.storage.memory import MemoryStorage  # noqa: PLC0415

        return MemoryStorage()

    from swiftqueue.core.storage.mongo import MongoStorage  # noqa: PLC0415

    return MongoStorage(config.database_url)


class Core:
    """Container providing config, storage, the notification sink, and all service instances."""

    config: Config
    storage: Storage
    sink: NotificationSink
    services: Services

    def __init__(self, config: Config, sink: NotificationSink | None = None) -> None:
        self.config = config
        self.storage = create_storage(config)
        self.sink = sink if sink is not None else EventHub(config.event_queue_size)
        self.services = Services(self.storage)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.storage.open()
        await self.services.start_all()
        logger.info("core_started", storage=self.config.storage)

    async def on_stop(self) -> None:
        await self.services.stop_all()
        await self.storage.close()
