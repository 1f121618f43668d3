"""WebSocket endpoint for live token updates."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .hub import BroadcastHub

logger = logging.getLogger(__name__)


def create_stream_router(hub: BroadcastHub, path: str = "/ws") -> APIRouter:
    """Create the WebSocket router with a reference to the broadcast hub.

    This factory pattern lets us inject the hub without globals.
    """
    router = APIRouter(tags=["streaming"])

    @router.websocket(path)
    async def stream_tokens(websocket: WebSocket) -> None:
        """Real-time channel.

        Clients send JSON frames to filter what they receive:

            {"type": "subscribe", "tokens": ["<address>", ...]}
            {"type": "unsubscribe", "tokens": ["<address>", ...]}

        With no subscriptions the client receives every price_update and
        volume_spike event.
        """
        await websocket.accept()
        client = websocket.client.host if websocket.client else "unknown"
        connection = hub.connect(websocket.send_text)
        logger.info("WebSocket client %s attached as connection %d", client, connection.id)

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.info("WebSocket client disconnected: %s", client)
                    break
                # Either key may be present; the hub parses text and bytes alike
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes")
                if frame is None:
                    continue
                hub.handle_message(connection, frame)
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected: %s", client)
        finally:
            hub.disconnect(connection)

    return router
