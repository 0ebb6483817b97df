"""Queue tokens and their lifecycle states."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from swiftqueue.core.db import MongoModel
from swiftqueue.errors import InvalidCategoryError
from swiftqueue.utils import now


class ServiceCategory(StrEnum):
    """Fixed set of services offered at the center. Each maps to a code prefix."""

    PARCEL = "Parcel Drop-off"
    BANKING = "Banking Services"
    GENERAL = "General Inquiry"
    DOCUMENTS = "Document Verification"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]

    @classmethod
    def parse(cls, raw: "str | ServiceCategory") -> "ServiceCategory":
        """Resolve a category from its label ("Parcel Drop-off") or name ("parcel").

        Unknown values are rejected; there is no fallback prefix.
        """
        if isinstance(raw, ServiceCategory):
            return raw
        value = raw.strip()
        for category in cls:
            if value == category.value or value.upper() == category.name:
                return category
        raise InvalidCategoryError(f"Invalid service category: {raw!r}")


_PREFIXES: dict[ServiceCategory, str] = {
    ServiceCategory.PARCEL: "P",
    ServiceCategory.BANKING: "B",
    ServiceCategory.GENERAL: "G",
    ServiceCategory.DOCUMENTS: "D",
}


class TokenState(StrEnum):
    WAITING = "waiting"
    SERVING = "serving"
    COMPLETED = "completed"


class Token(MongoModel):
    """One customer's place in the queue.

    Indexed on code - unique, (created_at, seq) for FIFO scans, and
    counter_id - unique among serving tokens.
    """

    seq: int  # Monotonic insertion order; breaks created_at ties
    code: str  # Display code, e.g. P-001
    category: ServiceCategory
    state: TokenState = TokenState.WAITING
    queue_position: int | None = None  # Position at creation time; advisory only
    counter_id: int | None = None  # Set only while serving
    created_at: datetime = Field(default_factory=now)
    called_at: datetime | None = None
    completed_at: datetime | None = None


class TokenView(BaseModel):
    """Token with live queue position and wait estimate (API representation)."""

    id: UUID = Field(..., description="Token ID")
    code: str = Field(..., description="Display code, e.g. P-001")
    category: ServiceCategory = Field(..., description="Service category")
    state: TokenState = Field(..., description="Lifecycle state")
    queue_position: int = Field(..., description="1-based position among waiting tokens of the category, 0 if not waiting")
    estimated_wait_minutes: int = Field(..., description="Estimated minutes until called, 0 if not waiting")
    counter_id: int | None = Field(None, description="Counter serving this token")
    counter_number: int | None = Field(None, description="Visible number of the serving counter")
    created_at: datetime
    called_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_domain(
        cls, token: Token, position: int = 0, estimate: int = 0, counter_number: int | None = None
    ) -> "TokenView":
        return cls(
            id=token.id,
            code=token.code,
            category=token.category,
            state=token.state,
            queue_position=position,
            estimated_wait_minutes=estimate,
            counter_id=token.counter_id,
            counter_number=counter_number,
            created_at=token.created_at,
            called_at=token.called_at,
            completed_at=token.completed_at,
        )
