from swiftqueue.web.routers.counters import router as counters_router
from swiftqueue.web.routers.events import router as events_router
from swiftqueue.web.routers.stats import router as stats_router
from swiftqueue.web.routers.tokens import router as tokens_router

__all__ = [
    "counters_router",
    "events_router",
    "stats_router",
    "tokens_router",
]
