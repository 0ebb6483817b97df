"""Auto-incrementing sequences for insertion order and surrogate ids."""

from enum import StrEnum


class SequenceKind(StrEnum):
    """Entities that draw numbers from a shared sequence."""

    TOKEN = "token"
    COUNTER = "counter"
