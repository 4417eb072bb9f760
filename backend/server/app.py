"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (config, recent log, connector factory)
- Register routes
"""

from __future__ import annotations

from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from observability.logger import set_enabled
from session.connector import SessionCallbacks, SessionConnector
from session.message_log import RecentLog
from transport.gemini_live import GeminiLiveTransport

from server.routes import register_routes


ConnectorFactory = Callable[[SessionCallbacks], SessionConnector]


def create_app(
    config: AppConfig | None = None,
    *,
    connector_factory: ConnectorFactory | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with a fake transport / fake devices (connector_factory)
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    set_enabled(config.enable_json_logs)

    app = FastAPI(title="Live Voice HUD Bridge")

    app.state.config = config
    app.state.recent_log = RecentLog()
    app.state.connector_factory = connector_factory or build_connector_factory(config)

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # HUD is served locally
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_connector_factory(config: AppConfig) -> ConnectorFactory:
    """One Gemini Live connector (with sounddevice devices) per HUD connection."""

    def _factory(callbacks: SessionCallbacks) -> SessionConnector:
        return SessionConnector.from_config(
            config,
            transport=GeminiLiveTransport(api_key=config.gemini_api_key),
            callbacks=callbacks,
        )

    return _factory
