"""WebSocket endpoint — real-time message events for clients.

Learn: Each client opens one long-lived connection and multiplexes as many
subscriptions over it as it likes:

    → {"type": "subscribe", "id": "a", "topic": "messageAdded"}
    ← {"type": "subscribed", "id": "a"}
    ← {"type": "next", "id": "a", "payload": {...message...}}
    → {"type": "unsubscribe", "id": "a"}
    ← {"type": "complete", "id": "a"}

The path is configurable, so the route is registered by add_websocket_route()
rather than a decorator.
"""

from fastapi import FastAPI, WebSocket


async def subscriptions_websocket(websocket: WebSocket):
    """Hand the connection to the app's subscription gateway."""
    await websocket.app.state.gateway.serve(websocket)


def add_websocket_route(app: FastAPI, path: str) -> None:
    app.add_api_websocket_route(path, subscriptions_websocket, name="subscriptions")
