"""Subscription gateway — bridges WebSocket connections to the event bus.

Learn: One WebSocket can carry many subscriptions, each named by a
client-chosen id. For every subscription the gateway runs a forwarder
task that drains the bus subscription and sends "next" frames. The
connection's receive loop handles subscribe/unsubscribe/ping frames.

When the client disconnects, every subscription of that connection is
closed (unregistered from the bus) and its forwarder cancelled. A send
that fails only ends the subscription it belonged to; the publisher and
other subscribers never notice.
"""

import asyncio
import json
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError as FrameValidationError
from starlette.websockets import WebSocketState

from msgboard.errors import BusClosedError, TransportError
from msgboard.realtime.bus import EventBus, Subscription
from msgboard.schemas.frames import (
    PONG_FRAME,
    PingFrame,
    SubscribeFrame,
    UnsubscribeFrame,
    client_frame_adapter,
    complete_frame,
    error_frame,
    next_frame,
    subscribed_frame,
)

logger = structlog.get_logger()


class Connection:
    """State for one open WebSocket."""

    def __init__(self, websocket: WebSocket, bus: EventBus):
        self.websocket = websocket
        self.bus = bus
        self.active: dict[str, tuple[Subscription, asyncio.Task]] = {}
        self._send_lock = asyncio.Lock()

    async def send(self, frame: dict[str, Any]) -> None:
        """Send one frame. Raises TransportError if the socket is gone."""
        try:
            async with self._send_lock:
                await self.websocket.send_json(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise TransportError(str(e)) from e

    async def receive_loop(self) -> None:
        """Handle client frames until the client disconnects."""
        while True:
            try:
                message = await self.websocket.receive()
            except WebSocketDisconnect:
                return
            if message["type"] == "websocket.disconnect":
                return
            raw = message.get("text")
            if raw is None:
                await self.send(error_frame("invalid frame: expected text"))
                continue
            try:
                frame = client_frame_adapter.validate_python(json.loads(raw))
            except (json.JSONDecodeError, FrameValidationError) as e:
                await self.send(error_frame(f"invalid frame: {e}"))
                continue

            if isinstance(frame, SubscribeFrame):
                await self.subscribe(frame)
            elif isinstance(frame, UnsubscribeFrame):
                await self.unsubscribe(frame.id)
            elif isinstance(frame, PingFrame):
                await self.send(PONG_FRAME)

    async def subscribe(self, frame: SubscribeFrame) -> None:
        if frame.id in self.active:
            await self.send(error_frame("subscription id already in use", frame.id))
            return
        try:
            subscription = self.bus.subscribe(frame.topic)
        except BusClosedError as e:
            await self.send(error_frame(str(e), frame.id))
            return

        # Registered before the ack, so anything published after the
        # client sees "subscribed" is already queued for it.
        task = asyncio.create_task(self._forward(frame.id, subscription))
        self.active[frame.id] = (subscription, task)
        logger.info(
            "gateway.subscribed",
            id=frame.id,
            topic=frame.topic.value,
            subscription=subscription.id,
        )
        await self.send(subscribed_frame(frame.id))

    async def unsubscribe(self, sub_id: str) -> None:
        entry = self.active.pop(sub_id, None)
        if entry is None:
            await self.send(error_frame("unknown subscription id", sub_id))
            return
        subscription, task = entry
        subscription.close()
        task.cancel()
        logger.info("gateway.unsubscribed", id=sub_id, subscription=subscription.id)
        await self.send(complete_frame(sub_id))

    async def _forward(self, sub_id: str, subscription: Subscription) -> None:
        """Stream bus payloads for one subscription to the client."""
        try:
            async for payload in subscription:
                await self.send(next_frame(sub_id, jsonable_encoder(payload)))
            # Iteration only ends on its own when the bus shuts down
            if self._discard(sub_id, subscription):
                await self.send(complete_frame(sub_id))
        except TransportError as e:
            logger.warning(
                "gateway.delivery_failed",
                id=sub_id,
                subscription=subscription.id,
                error=str(e),
            )
            subscription.close()
            self._discard(sub_id, subscription)

    def _discard(self, sub_id: str, subscription: Subscription) -> bool:
        entry = self.active.get(sub_id)
        if entry is None or entry[0] is not subscription:
            return False  # unsubscribed, or the id was reused
        del self.active[sub_id]
        return True

    async def close(self) -> None:
        """Unregister every subscription and stop its forwarder.

        Unregistering happens before the first await, so it completes even
        when the connection handler itself is being cancelled.
        """
        entries = list(self.active.values())
        self.active.clear()
        for subscription, task in entries:
            subscription.close()
            task.cancel()
        await asyncio.gather(*(task for _, task in entries), return_exceptions=True)


class SubscriptionGateway:
    """Accepts subscription WebSockets and ties them to the event bus."""

    def __init__(self, bus: EventBus):
        self.bus = bus
        self.connections: set[Connection] = set()

    async def serve(self, websocket: WebSocket) -> None:
        """Run one connection from accept to disconnect."""
        await websocket.accept()
        connection = Connection(websocket, self.bus)
        self.connections.add(connection)
        logger.info("gateway.connected", connections=len(self.connections))
        try:
            await connection.receive_loop()
        except TransportError as e:
            logger.warning("gateway.connection_lost", error=str(e))
        finally:
            self.connections.discard(connection)
            await connection.close()
            logger.info("gateway.disconnected", connections=len(self.connections))
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.close()
