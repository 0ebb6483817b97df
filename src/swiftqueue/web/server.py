from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swiftqueue.app import App
from swiftqueue.config import Config
from swiftqueue.errors import TransientError, UserError
from swiftqueue.web.error_handlers import general_exception_handler, transient_error_handler, user_error_handler
from swiftqueue.web.openapi import set_custom_openapi
from swiftqueue.web.routers import counters_router, events_router, stats_router, tokens_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        app.state.app = app_instance
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(title="SwiftQueue API", lifespan=lifespan)

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(tokens_router, prefix="/api/v1")
    app.include_router(counters_router, prefix="/api/v1")
    app.include_router(stats_router, prefix="/api/v1")
    app.include_router(events_router)

    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(TransientError, transient_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
