"""Token-related API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from swiftqueue.core.modules.token.models import TokenView
from swiftqueue.core.pagination import PaginationResult
from swiftqueue.errors import NotFoundError
from swiftqueue.web.deps import AppDep
from swiftqueue.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["tokens"])


class GenerateTokenRequest(BaseModel):
    """Request to issue a new token."""

    category: str = Field(..., description="Service label (\"Parcel Drop-off\") or name (\"parcel\")")

    model_config = {"json_schema_extra": {"examples": [{"category": "Parcel Drop-off"}]}}


class CounterRequest(BaseModel):
    """Request naming the counter that should serve a token."""

    counter_id: int = Field(..., description="Counter ID", ge=1)


@router.post(
    "/tokens",
    summary="Generate token",
    description="Issue the next sequential token for a service category and place it at the end of the queue.",
    operation_id="generateToken",
    status_code=201,
    responses={
        201: {"description": "Token issued with its queue position and wait estimate"},
        400: {"model": ErrorResponse, "description": "Unknown service category"},
        503: {"model": ErrorResponse, "description": "No unique code available right now, retry"},
    },
)
async def generate_token(request: GenerateTokenRequest, app: AppDep) -> TokenView:
    return await app.generate_token(request.category)


@router.get(
    "/tokens/queue/waiting",
    summary="List waiting tokens",
    description="Waiting tokens in serving order, with live positions and estimates.",
    operation_id="listWaitingTokens",
)
async def list_waiting_tokens(
    app: AppDep,
    limit: Annotated[int | None, Query(ge=1, description="Maximum items to return")] = None,
    offset: Annotated[int, Query(ge=0, description="Number of items to skip")] = 0,
) -> PaginationResult[TokenView]:
    return await app.get_waiting_tokens(limit, offset)


@router.get(
    "/tokens/queue/next",
    summary="Peek next token",
    description="The waiting token that will be served next across all categories, or null.",
    operation_id="getNextPending",
)
async def get_next_pending(app: AppDep) -> TokenView | None:
    return await app.get_next_pending()


@router.post(
    "/tokens/call-next",
    summary="Call next token",
    description="Assign the earliest waiting token to the given counter.",
    operation_id="callNextToken",
    responses={
        404: {"model": ErrorResponse, "description": "Counter not found or queue empty"},
        409: {"model": ErrorResponse, "description": "Counter inactive or busy"},
    },
)
async def call_next(request: CounterRequest, app: AppDep) -> TokenView:
    return await app.call_next(request.counter_id)


@router.get(
    "/tokens/{code}",
    summary="Get token status",
    description="Token state with live queue position and estimated wait.",
    operation_id="getTokenDetails",
    responses={404: {"model": ErrorResponse, "description": "Token not found"}},
)
async def get_token(code: str, app: AppDep) -> TokenView:
    details = await app.get_token_details(code)
    if details is None:
        raise NotFoundError(f"Token not found: {code}")
    return details


@router.post(
    "/tokens/{code}/assign",
    summary="Assign token to counter",
    description="Move a waiting token to a specific idle counter.",
    operation_id="assignToken",
    responses={
        404: {"model": ErrorResponse, "description": "Token or counter not found"},
        409: {"model": ErrorResponse, "description": "Token not waiting, or counter inactive or busy"},
    },
)
async def assign_token(code: str, request: CounterRequest, app: AppDep) -> TokenView:
    return await app.assign_token(code, request.counter_id)


@router.post(
    "/tokens/{code}/complete",
    summary="Complete token",
    description="Finish serving a token and free its counter.",
    operation_id="completeToken",
    responses={
        404: {"model": ErrorResponse, "description": "Token not found"},
        409: {"model": ErrorResponse, "description": "Token is not being served"},
    },
)
async def complete_token(code: str, app: AppDep) -> TokenView:
    return await app.complete_token(code)
