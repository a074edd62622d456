"""Customer registration, lookup, balance and wallet pass endpoints."""

import json

from fastapi import APIRouter, Depends, Response

from stamp_server.api.auth import admin_dependency
from stamp_server.api.models import CreateCustomerRequest
from stamp_server.services import StampServices


def router(services: StampServices) -> APIRouter:
    """Build the customer router."""
    api = APIRouter()
    require_admin = admin_dependency(services)

    @api.post("/api/customers")
    def create_customer(request: CreateCustomerRequest, operator: str = Depends(require_admin)):
        """
        Register a customer.

        Registering a phone number that already exists returns the existing
        customer with ``existing: true`` instead of failing.
        """
        result = services.ledger.register_customer(
            request.name or "", request.phone or "", email=request.email, operator=operator
        )
        if not result.created:
            return {"existing": True, "customer": result.customer.to_dict()}
        return {"customer": result.customer.to_dict()}

    @api.get("/api/customers")
    def get_customer(phone: str | None = None, id: str | None = None):
        """Look a customer up by ``phone`` or ``id``."""
        view = services.ledger.find_customer(customer_id=id, phone=phone)
        return {
            "customer": view.customer.to_dict(),
            "stampsTotal": view.balance.total,
            "stampsToday": view.stamps_today,
            "redemptions": view.redemptions,
            "rewardThreshold": services.config.loyalty.reward_threshold,
        }

    @api.get("/api/customers/{customer_id}/balance")
    def get_balance(customer_id: str):
        balance = services.ledger.compute_balance(customer_id)
        return {"customerId": customer_id, "total": balance.total, "today": balance.today}

    @api.get("/wallet/{customer_id}")
    def wallet_pass(customer_id: str):
        """Download the customer's stamp card as a JSON file."""
        card = services.ledger.wallet_pass(customer_id)
        return Response(
            content=json.dumps(card, indent=2),
            media_type="application/json",
            headers={
                "Content-Disposition": f"attachment; filename=stamp-card-{customer_id}.json"
            },
        )

    return api
