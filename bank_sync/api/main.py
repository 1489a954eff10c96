"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from bank_sync.api.middleware import RequestIDMiddleware, MetricsMiddleware
from bank_sync.api.v1 import connection, transactions, webhooks
from bank_sync.config import Settings, settings
from bank_sync.infrastructure.cache.store import SqlCacheStore
from bank_sync.infrastructure.clients.aggregator import HttpAggregatorClient
from bank_sync.infrastructure.clients.credentials import InMemoryCredentialStore
from bank_sync.infrastructure.clients.notifications import LocalNotificationSource
from bank_sync.infrastructure.database.session import create_session_factory
from bank_sync.infrastructure.observability.logging import setup_logging
from bank_sync.services.registry import OrchestratorRegistry

# Setup structured logging
setup_logging(settings.log_level)


def build_registry(
    config: Settings,
    notifications: LocalNotificationSource,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OrchestratorRegistry:
    """Default wiring: SQL cache, HTTP aggregator, in-process credentials"""
    return OrchestratorRegistry(
        cache=SqlCacheStore(create_session_factory(config.database_url)),
        credentials=InMemoryCredentialStore(),
        notifications=notifications,
        aggregator_factory=lambda user_id: HttpAggregatorClient(
            user_id,
            base_url=config.aggregator_api_base,
            timeout=config.http_timeout_seconds,
            transport=transport,
        ),
        config=config,
    )


def create_app(
    registry: Optional[OrchestratorRegistry] = None,
    notifications: Optional[LocalNotificationSource] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    config = config or settings
    notifications = notifications or LocalNotificationSource()
    registry = registry or build_registry(config, notifications)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Cancel pending debounce timers before the loop goes away
        await app.state.registry.shutdown()

    app = FastAPI(
        title="Bank Sync Engine",
        description="Bank-data synchronization, caching, and recurring detection",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.notifications = notifications

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": config.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(transactions.router, prefix="/v1", tags=["bank-data"])
    app.include_router(connection.router, prefix="/v1", tags=["connection"])
    app.include_router(webhooks.router, prefix="/v1", tags=["webhooks"])

    return app
