import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from swiftqueue.errors import (
    CounterBusyError,
    CounterUnavailableError,
    DuplicateCounterError,
    GenerationExhaustedError,
    InvalidCategoryError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def create_json_error_response(
    status_code: int, message: str, error_type: str | None = None, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    if isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, InvalidCategoryError):
        status_code = 400
        error_type = "invalid_category"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    elif isinstance(exc, InvalidTransitionError):
        status_code = 409
        error_type = "invalid_transition"
    elif isinstance(exc, CounterUnavailableError):
        status_code = 409
        error_type = "counter_unavailable"
    elif isinstance(exc, CounterBusyError):
        status_code = 409
        error_type = "counter_busy"
    elif isinstance(exc, DuplicateCounterError):
        status_code = 409
        error_type = "duplicate_counter"
    else:
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def transient_error_handler(_: Request, exc: Exception) -> Response:
    """Handle retryable server faults (503)."""
    error_type = "generation_exhausted" if isinstance(exc, GenerationExhaustedError) else "transient_error"
    logger.warning("transient_error", error_type=error_type, error=str(exc))
    return create_json_error_response(
        status_code=503, message=str(exc), error_type=error_type, headers={"Retry-After": "1"}
    )


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("unexpected_error", error=str(exc))
    return create_json_error_response(
        status_code=500, message="An unexpected error occurred.", error_type="internal_server_error"
    )
