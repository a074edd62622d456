"""
FastAPI backend server for the stamp card.

This module builds the FastAPI application:
- CORS middleware for the counter and dashboard frontends
- The shared services (document store, ledger, notifier, operators)
- Error handlers mapping ledger errors to JSON responses
- All API routes, then the optional static frontend
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stamp_server import __version__
from stamp_server.api.error_handlers import register_error_handlers
from stamp_server.api.routes import register_routes
from stamp_server.config import ServerConfig, config, configure_logging
from stamp_server.core.ledger import Clock
from stamp_server.services import build_services
from stamp_server.store import utc_now
from stamp_server.web.routes import mount_static

logger = logging.getLogger(__name__)


def create_app(cfg: ServerConfig | None = None, clock: Clock = utc_now) -> FastAPI:
    """
    Build a fully wired application.

    Args:
        cfg: Configuration to use; defaults to the module-level ``config``.
        clock: Reference clock for the ledger, replaceable in tests.
    """
    cfg = cfg or config
    app = FastAPI(title="Stamp Server", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.security.cors_origins,
        allow_credentials=cfg.security.cors_allow_credentials,
        allow_methods=cfg.security.cors_allow_methods,
        allow_headers=cfg.security.cors_allow_headers,
    )

    services = build_services(cfg, clock=clock)
    app.state.services = services

    register_error_handlers(app)
    register_routes(app, services)
    mount_static(app, cfg.web.static_dir)

    if not services.operators.has_api_keys():
        logger.warning("No API keys configured; admin endpoints will refuse every request")
    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Configure logging and serve the app with uvicorn."""
    import uvicorn

    configure_logging()
    host = host or config.server.host
    port = port or config.server.port
    logger.info("Stamp server starting on %s:%d (store: %s)", host, port, config.store.absolute_path)
    uvicorn.run(create_app(), host=host, port=port, log_config=None)
