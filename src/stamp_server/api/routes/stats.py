"""Dashboard statistics and audit log endpoints."""

from fastapi import APIRouter, Depends

from stamp_server.api.auth import admin_dependency
from stamp_server.services import StampServices


def router(services: StampServices) -> APIRouter:
    """Build the stats router."""
    api = APIRouter()
    require_admin = admin_dependency(services)

    @api.get("/api/stats/overview")
    def overview():
        stats = services.ledger.stats()
        return {
            "totalCustomers": stats.total_customers,
            "stampsToday": stats.stamps_today,
            "redeemedCount": stats.total_redemptions,
            "top": [
                {
                    "customerId": entry.customer_id,
                    "name": entry.name,
                    "phone": entry.phone,
                    "count": entry.balance,
                }
                for entry in stats.top
            ],
        }

    @api.get("/api/logs")
    def logs(limit: int = 200, _: str = Depends(require_admin)):
        """Most recent audit log entries, newest first (admin API key only)."""
        return {"logs": [entry.to_dict() for entry in services.ledger.recent_logs(limit)]}

    return api
