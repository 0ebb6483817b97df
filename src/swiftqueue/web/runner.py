"""Uvicorn runner serving the queue API and the event stream."""

import copy
from typing import Any

import structlog
import uvicorn
from uvicorn.config import LOGGING_CONFIG

from swiftqueue.app import App
from swiftqueue.config import Config
from swiftqueue.web.server import create_fastapi_app

logger = structlog.get_logger(__name__)


def build_log_config(debug: bool) -> dict[str, Any]:
    log_config = copy.deepcopy(LOGGING_CONFIG)
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - %(client_addr)s "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"
    if not debug:
        # Request lines are noise at kiosk polling rates
        log_config["loggers"]["uvicorn.access"]["level"] = "WARNING"
    return log_config


def run_server(app: App, config: Config) -> None:
    fastapi_app = create_fastapi_app(app, config)
    logger.info("server_starting", host=config.host, port=config.port, storage=config.storage, timezone=config.timezone)
    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=build_log_config(config.debug),
        access_log=True,
        ws_ping_interval=20.0,
    )
