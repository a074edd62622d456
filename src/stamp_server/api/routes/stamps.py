"""Stamp issuance and redemption endpoints (operator token or API key)."""

from fastapi import APIRouter, Depends

from stamp_server.api.auth import operator_dependency
from stamp_server.api.models import RedeemRequest, StampRequest
from stamp_server.services import StampServices


def router(services: StampServices) -> APIRouter:
    """Build the stamp router."""
    api = APIRouter()
    require_operator = operator_dependency(services)

    @api.post("/api/stamps")
    def add_stamp(request: StampRequest, operator: str = Depends(require_operator)):
        """
        Issue one stamp.

        Answers 429 with ``todayCount`` once the daily cap is reached.
        """
        result = services.ledger.issue_stamp(
            operator=operator, customer_id=request.customer_id, phone=request.phone
        )
        return {
            "ok": True,
            "stamp": result.stamp.to_dict(),
            "stampsTotal": result.balance,
            "todayCount": result.today_count,
        }

    @api.post("/api/redeem")
    def redeem(request: RedeemRequest, operator: str = Depends(require_operator)):
        """
        Redeem a reward against the oldest stamps.

        Answers 400 with ``current`` and ``required`` when the balance is short.
        """
        result = services.ledger.redeem_stamps(
            operator=operator,
            customer_id=request.customer_id,
            phone=request.phone,
            note=request.note,
        )
        return {
            "ok": True,
            "redemption": result.redemption.to_dict(),
            "stampsTotal": result.balance,
        }

    return api
