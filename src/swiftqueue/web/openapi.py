from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="SwiftQueue API",
            version="0.1.0",
            summary="Token queue for walk-in customers: issue tokens, call them to counters, monitor throughput",
            routes=app.routes,
        )

        openapi_schema["tags"] = [
            {"name": "tokens", "description": "Issue tokens and move them through Waiting, Serving, Completed"},
            {"name": "counters", "description": "Register counters and manage their availability"},
            {"name": "stats", "description": "Queue statistics derived from live state"},
            {"name": "events", "description": "WebSocket stream of queue events"},
        ]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class ErrorResponse(BaseModel):
    """Standard error response format."""

    message: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"message": "Token not found: P-999", "type": "not_found"},
                {"message": "Token P-001 is completed, expected serving", "type": "invalid_transition"},
                {"message": "Counter 1 is already serving P-002", "type": "counter_unavailable"},
            ]
        }
    }
