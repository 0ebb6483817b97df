"""Real-time event stream over WebSocket.

Clients receive every queue event. Sending {"action": "subscribe", "token": "P-001"}
additionally delivers a targeted message when that token is called.
"""

import asyncio
from typing import cast

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from swiftqueue.app import App
from swiftqueue.core.modules.event.sink import Subscription

logger = structlog.get_logger(__name__)

router: APIRouter = APIRouter(tags=["events"])


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        message = await subscription.get()
        await websocket.send_json(message)


async def _handle_commands(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        command = await websocket.receive_json()
        if not isinstance(command, dict):
            continue
        code = command.get("token")
        if not isinstance(code, str):
            continue
        if command.get("action") == "subscribe":
            subscription.codes.add(code)
        elif command.get("action") == "unsubscribe":
            subscription.codes.discard(code)


@router.websocket("/events")
async def event_stream(websocket: WebSocket) -> None:
    app = cast(App, websocket.app.state.app)
    await websocket.accept()
    subscription = app.subscribe_events()
    tasks = [
        asyncio.create_task(_forward_events(websocket, subscription)),
        asyncio.create_task(_handle_commands(websocket, subscription)),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("event_stream_error", error=str(exc))
    finally:
        app.unsubscribe_events(subscription)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("event_stream_closed")
