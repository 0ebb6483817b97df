"""Aggregate views over tokens and counters. All values are derived on demand."""

from pydantic import BaseModel, Field

from swiftqueue.core.modules.token.models import ServiceCategory


class QueueStatistics(BaseModel):
    total_tokens_today: int = Field(..., description="Tokens issued since local midnight")
    tokens_in_queue: int = Field(..., description="Tokens currently waiting")
    tokens_serving: int = Field(..., description="Tokens currently at a counter")
    average_wait_time: float = Field(..., description="Mean minutes from creation to call, for tokens completed today")
    active_counters: int
    inactive_counters: int


class CategoryStatistics(BaseModel):
    category: ServiceCategory
    total_today: int
    waiting: int
    serving: int
    completed: int = Field(..., description="Completed today")


class HourlyStatistics(BaseModel):
    hour: int = Field(..., ge=0, le=23, description="Local hour of day")
    tokens_generated: int
    tokens_completed: int


class CounterUtilization(BaseModel):
    total_counters: int
    active_counters: int
    busy_counters: int
    utilization_rate: float = Field(..., description="Busy share of active counters, in percent")


class QueueSummary(BaseModel):
    total_waiting: int
    total_serving: int
    longest_wait_time: int = Field(..., description="Minutes the oldest waiting token has waited")
    average_queue_position: float
