"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance with its own engine, session factory, event bus and subscription
gateway on app.state. Nothing is a module-level singleton, so tests can
build as many isolated apps as they like.

Lifespan manages startup (schema creation) and shutdown (closing every
subscription, disposing of the engine).
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from msgboard import __version__
from msgboard.api import api_router
from msgboard.config import Settings, settings as default_settings
from msgboard.db.engine import create_schema, make_engine, make_session_factory
from msgboard.middleware.request_id import RequestIdMiddleware
from msgboard.realtime.bus import EventBus
from msgboard.realtime.gateway import SubscriptionGateway
from msgboard.realtime.websocket import add_websocket_route

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "msgboard.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        subscriptions_path=settings.subscriptions_path,
    )

    if settings.create_schema:
        await create_schema(app.state.engine)
        logger.info("msgboard.schema_ready")

    yield

    # Shutdown
    logger.info("msgboard.shutdown")

    # Ends every open subscription stream
    app.state.bus.close()

    await app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings

    app = FastAPI(
        title="msgboard",
        description="Real-time message board: CRUD over messages, every change pushed to subscribers",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Process-scoped state ─────────────────────────────────
    engine = make_engine(settings.database_url, echo=settings.debug)
    bus = EventBus(queue_size=settings.subscriber_queue_size)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.bus = bus
    app.state.gateway = SubscriptionGateway(bus)

    # ── Middleware stack ─────────────────────────────────────
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    add_websocket_route(app, settings.subscriptions_path)

    return app


# Default app instance (used by uvicorn: msgboard.main:app)
app = create_app()
