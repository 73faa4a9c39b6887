"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running,
the database is reachable and the event bus is accepting subscribers.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from msgboard import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    # Check database
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    # Check event bus
    bus = request.app.state.bus
    checks["bus"] = "closed" if bus.closed else "ok"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {
        "status": status,
        **checks,
        "subscribers": bus.subscriber_count(),
        "connections": len(request.app.state.gateway.connections),
    }
