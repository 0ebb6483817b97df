from swiftqueue.core.core import Service
from swiftqueue.core.modules.sequence.models import SequenceKind


class SequenceService(Service):
    """Service for allocating monotonically increasing numbers."""

    async def get_next_sequence(self, kind: SequenceKind) -> int:
        """Atomically increment and return the next number for `kind`."""
        return await self.storage.sequences.next(kind)
