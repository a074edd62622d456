"""Operator management and PIN login endpoints."""

import logging

from fastapi import APIRouter, Depends

from stamp_server.api.auth import admin_dependency
from stamp_server.api.models import CreateOperatorRequest, OperatorLoginRequest
from stamp_server.services import StampServices

logger = logging.getLogger(__name__)


def _pin(value: str | int | None) -> str:
    return "" if value is None else str(value)


def router(services: StampServices) -> APIRouter:
    """Build the operator router."""
    api = APIRouter()
    require_admin = admin_dependency(services)

    @api.post("/api/operators")
    def create_operator(request: CreateOperatorRequest, performed_by: str = Depends(require_admin)):
        """Create an operator (admin API key only)."""
        operator = services.operators.create_operator(
            request.name or "", _pin(request.pin), performed_by=performed_by
        )
        return {"operator": {"id": operator.id, "name": operator.name}}

    @api.post("/api/operators/login")
    def login(request: OperatorLoginRequest):
        """
        Exchange an operator PIN for a short-lived token.

        The token goes into ``Authorization: Bearer`` on stamp and redeem calls.
        """
        issued = services.operators.login(
            _pin(request.pin), operator_id=request.operator_id, name=request.name
        )
        return {
            "token": issued.token,
            "expiresAt": issued.expires_at.isoformat(),
            "operator": {"id": issued.operator.id, "name": issued.operator.name},
        }

    return api
