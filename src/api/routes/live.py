"""
Live-update WebSocket.

The admin panel keeps one socket open and re-renders its video list
whenever a videos_updated event arrives. The channel is push-only;
anything the client sends is read and ignored to keep the connection
alive.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketSubscriber:
    """Adapts a Starlette WebSocket to the broadcaster's Subscriber protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, message: str) -> None:
        await self._websocket.send_text(message)


@router.websocket("/ws")
async def live_updates(websocket: WebSocket) -> None:
    """Subscribe a logged-in admin to registry change events."""
    if not websocket.session.get("authenticated"):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    broadcaster = websocket.app.state.broadcaster

    # subscribe first so no update falls between accept and subscribe
    subscriber = WebSocketSubscriber(websocket)
    broadcaster.subscribe(subscriber)

    try:
        await websocket.accept()
        logger.info("WebSocket connected", extra={"subscribers": broadcaster.subscriber_count})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        broadcaster.unsubscribe(subscriber)
