"""Counter management endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from swiftqueue.core.modules.counter.models import Counter, CounterStatus, CounterView
from swiftqueue.web.deps import AppDep
from swiftqueue.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["counters"])


class RegisterCounterRequest(BaseModel):
    number: int = Field(..., description="Counter number shown to customers", ge=1)


class CounterStatusRequest(BaseModel):
    status: CounterStatus = Field(..., description="New counter status")


class AutoAssignRequest(BaseModel):
    counter_id: int | None = Field(None, description="Preferred counter; any idle counter is used otherwise")


class AutoAssignResponse(BaseModel):
    assigned: bool = Field(..., description="Whether a waiting token was assigned")


@router.get("/counters", summary="List counters", operation_id="listCounters")
async def list_counters(app: AppDep) -> list[CounterView]:
    return await app.get_counters()


@router.get(
    "/counters/available",
    summary="List available counters",
    description="Active counters that are not serving anyone, by number.",
    operation_id="listAvailableCounters",
)
async def list_available_counters(app: AppDep) -> list[Counter]:
    return await app.get_available_counters()


@router.post(
    "/counters",
    summary="Register counter",
    operation_id="registerCounter",
    status_code=201,
    responses={409: {"model": ErrorResponse, "description": "Counter number already in use"}},
)
async def register_counter(request: RegisterCounterRequest, app: AppDep) -> Counter:
    return await app.register_counter(request.number)


@router.patch(
    "/counters/{counter_id}/status",
    summary="Change counter status",
    description="Activate or deactivate a counter. Deactivation is rejected while it serves a token.",
    operation_id="setCounterStatus",
    responses={
        404: {"model": ErrorResponse, "description": "Counter not found"},
        409: {"model": ErrorResponse, "description": "Counter is serving a token"},
    },
)
async def set_counter_status(counter_id: int, request: CounterStatusRequest, app: AppDep) -> Counter:
    return await app.set_counter_status(counter_id, request.status)


@router.delete(
    "/counters/{counter_id}",
    summary="Delete counter",
    operation_id="deleteCounter",
    status_code=204,
    responses={
        404: {"model": ErrorResponse, "description": "Counter not found"},
        409: {"model": ErrorResponse, "description": "Counter is serving a token"},
    },
)
async def delete_counter(counter_id: int, app: AppDep) -> None:
    await app.delete_counter(counter_id)


@router.post(
    "/counters/auto-assign",
    summary="Auto-assign waiting token",
    description="Pair the earliest waiting token with an idle counter. Not an error when nothing can be paired.",
    operation_id="autoAssign",
)
async def auto_assign(request: AutoAssignRequest, app: AppDep) -> AutoAssignResponse:
    return AutoAssignResponse(assigned=await app.auto_assign(request.counter_id))
