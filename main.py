"""
Agent Connections — application entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_exception_handlers, register_middleware
from config.settings import config
from connectors.coordinator import AuthCoordinator
from connectors.credential_store import CredentialStore
from connectors.encryption import CredentialCipher
from connectors.events import EventDispatcher
from connectors.host import InMemoryHost, SettingsInjector
from connectors.registry import ConnectorRegistry
from connectors.routes import router as connections_router
from connectors.session_cache import SessionCache
from database.session import build_engine, build_session_factory, init_db

logging.basicConfig(
    level=(config.log_level or ("DEBUG" if config.debug else "INFO")).upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3", "authlib"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def build_coordinator(session_factory, host: Optional[InMemoryHost] = None) -> AuthCoordinator:
    """Wire the connection lifecycle with the configured secret and host."""
    host = host or InMemoryHost()
    events = EventDispatcher(max_failed=config.event_retry_queue_size)
    events.subscribe(SettingsInjector(host, host))
    return AuthCoordinator(
        registry=ConnectorRegistry(),
        store=CredentialStore(
            session_factory,
            CredentialCipher(config.secret_salt, iterations=config.credential_kdf_iterations),
        ),
        sessions=SessionCache(
            maxsize=config.oauth_session_max_entries,
            ttl=config.oauth_session_ttl_seconds,
        ),
        settings_oracle=host,
        integrations=host,
        events=events,
    )


def create_app(coordinator: Optional[AuthCoordinator] = None) -> FastAPI:
    app = FastAPI(
        title="Agent Connections",
        version="1.0.0",
        description="OAuth connection brokering for agents.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(connections_router, prefix="/api/v1/connections")

    app.state.coordinator = coordinator

    @app.on_event("startup")
    async def on_startup():
        if app.state.coordinator is not None:
            return
        logger.info("Initialising credential store…")
        engine = build_engine()
        await init_db(engine)
        app.state.engine = engine
        app.state.coordinator = build_coordinator(build_session_factory(engine))
        logger.info("Connection services ready: %s", ", ".join(s.value for s in app.state.coordinator.supported_services()))

    @app.on_event("shutdown")
    async def on_shutdown():
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
