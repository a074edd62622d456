"""Health endpoint: liveness check with server time and version."""

from datetime import UTC, datetime

from fastapi import APIRouter

from stamp_server import __version__


def router() -> APIRouter:
    api = APIRouter()

    @api.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"ok": True, "now": datetime.now(UTC).isoformat(), "version": __version__}

    return api
