"""Service counters staffed to serve tokens."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from swiftqueue.core.db import MongoModel
from swiftqueue.utils import now


class CounterStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Counter(MongoModel):
    """A staffed service position.

    Occupancy is not stored here: a counter is busy when a serving token
    references it. Indexed on number - unique.
    """

    id: int = Field(alias="_id", serialization_alias="id")  # type: ignore[assignment]
    number: int  # Externally visible label
    status: CounterStatus = CounterStatus.ACTIVE
    created_at: datetime = Field(default_factory=now)


class CounterView(BaseModel):
    """Counter with the token it is currently serving (API representation)."""

    id: int = Field(..., description="Counter ID")
    number: int = Field(..., description="Counter number shown to customers")
    status: CounterStatus = Field(..., description="Whether staff are at the counter")
    serving_token: str | None = Field(None, description="Display code of the token being served")
    created_at: datetime

    @classmethod
    def from_domain(cls, counter: Counter, serving_token: str | None = None) -> "CounterView":
        return cls(
            id=counter.id,
            number=counter.number,
            status=counter.status,
            serving_token=serving_token,
            created_at=counter.created_at,
        )
