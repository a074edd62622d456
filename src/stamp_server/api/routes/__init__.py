"""
Route registration entry point for the FastAPI application.

Each module builds one focused router with access to the shared services.
"""

from fastapi import FastAPI

from stamp_server.api.routes import customers, events, health, operators, stamps, stats
from stamp_server.services import StampServices


def register_routes(app: FastAPI, services: StampServices) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router())
    app.include_router(operators.router(services))
    app.include_router(customers.router(services))
    app.include_router(stamps.router(services))
    app.include_router(stats.router(services))
    app.include_router(events.router(services))
