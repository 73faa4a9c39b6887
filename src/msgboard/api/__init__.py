"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.
The subscription WebSocket lives outside this prefix (see realtime.websocket).
"""

from fastapi import APIRouter

from msgboard.api.health import router as health_router
from msgboard.api.messages import router as messages_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(messages_router, tags=["messages"])
