from abc import ABC


class UserError(ABC, Exception):
    """Base class for errors caused by the request.

    All errors that inherit from UserError will have their messages
    displayed to the caller. They are deterministic for a given state
    and must not be retried without changing the request.
    """


class NotFoundError(UserError):
    """Raised when a requested token or counter is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class InvalidCategoryError(ValidationError):
    """Raised when a service category is not one of the known categories."""


class InvalidTransitionError(UserError):
    """Raised when a token state change violates Waiting -> Serving -> Completed."""


class CounterUnavailableError(UserError):
    """Raised when a counter is inactive or already serving another token."""


class CounterBusyError(UserError):
    """Raised when a counter cannot be deactivated or removed while it serves a token."""


class DuplicateCounterError(UserError):
    """Raised when a counter number is already registered."""


class TransientError(Exception):
    """Base class for server-side faults that are safe to retry."""


class GenerationExhaustedError(TransientError):
    """Raised when no unique display code could be found within the retry bound."""
