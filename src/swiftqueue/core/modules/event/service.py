import structlog

from swiftqueue.core.core import Service
from swiftqueue.core.modules.counter.models import Counter
from swiftqueue.core.modules.event.models import EventType, QueueEvent
from swiftqueue.core.modules.token.models import Token

logger = structlog.get_logger(__name__)

TOKEN_EVENTS = {EventType.TOKEN_GENERATED, EventType.TOKEN_CALLED, EventType.TOKEN_COMPLETED}


class EventService(Service):
    """Hands committed state changes to the notification sink."""

    async def publish(
        self,
        event_type: EventType,
        token: Token | None = None,
        counter: Counter | None = None,
        counter_id: int | None = None,
    ) -> None:
        """Publish one event. Failures are logged; the state change stays committed."""
        try:
            statistics = None
            if event_type in TOKEN_EVENTS:
                statistics = await self.core.services.statistics.get_queue_statistics()
            event = QueueEvent(
                type=event_type,
                token=token,
                counter=counter,
                counter_id=counter_id if counter_id is not None else (counter.id if counter else None),
                statistics=statistics,
            )
            self.core.sink.notify(event)
        except Exception as e:
            logger.exception(
                "event_publish_failed",
                event_type=event_type,
                token=token.code if token else None,
                counter_id=counter_id,
                error=str(e),
            )
        else:
            logger.debug("event_published", event_type=event_type, token=token.code if token else None)
