"""Queue statistics endpoints."""

from fastapi import APIRouter

from swiftqueue.core.modules.statistics.models import (
    CategoryStatistics,
    CounterUtilization,
    HourlyStatistics,
    QueueStatistics,
    QueueSummary,
)
from swiftqueue.web.deps import AppDep

router: APIRouter = APIRouter(tags=["stats"])


@router.get("/stats", summary="Queue statistics", operation_id="getQueueStatistics")
async def get_queue_statistics(app: AppDep) -> QueueStatistics:
    return await app.get_queue_statistics()


@router.get("/stats/categories", summary="Per-category statistics", operation_id="getCategoryStatistics")
async def get_category_statistics(app: AppDep) -> list[CategoryStatistics]:
    return await app.get_category_statistics()


@router.get("/stats/hourly", summary="Hourly statistics for today", operation_id="getHourlyStatistics")
async def get_hourly_statistics(app: AppDep) -> list[HourlyStatistics]:
    return await app.get_hourly_statistics()


@router.get("/stats/counters", summary="Counter utilization", operation_id="getCounterUtilization")
async def get_counter_utilization(app: AppDep) -> CounterUtilization:
    return await app.get_counter_utilization()


@router.get("/stats/queue", summary="Live queue summary", operation_id="getQueueSummary")
async def get_queue_summary(app: AppDep) -> QueueSummary:
    return await app.get_queue_summary()
