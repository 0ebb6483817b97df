"""Notifications emitted after queue state changes."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from swiftqueue.core.modules.counter.models import Counter
from swiftqueue.core.modules.statistics.models import QueueStatistics
from swiftqueue.core.modules.token.models import Token
from swiftqueue.utils import now


class EventType(StrEnum):
    TOKEN_GENERATED = "token_generated"
    TOKEN_CALLED = "token_called"
    TOKEN_COMPLETED = "token_completed"
    COUNTER_ADDED = "counter_added"
    COUNTER_STATUS_CHANGED = "counter_status_changed"
    COUNTER_DELETED = "counter_deleted"


class QueueEvent(BaseModel):
    """One committed state change, with a fresh statistics snapshot for token events."""

    type: EventType
    token: Token | None = None
    counter: Counter | None = None
    counter_id: int | None = None
    statistics: QueueStatistics | None = None
    timestamp: datetime = Field(default_factory=now)
