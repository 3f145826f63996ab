"""
ExploreValley API - Customer refund requests

A request is recorded as a REFUND_REQUESTED audit entry against the order;
settling it is an ops action outside this service.
"""
import logging

from fastapi import APIRouter

from explorevalley.api.delivery import assert_owner, find_order
from explorevalley.db.jsondb import mutate_data
from explorevalley.models.document import Database, make_id, utc_now
from explorevalley.schemas.compat import RefundRequestCreate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/refunds", tags=["refunds"])


@router.post("/request")
async def request_refund(payload: RefundRequestCreate):
    refund_id = make_id("ref")
    result: dict = {}

    def mutator(db: Database) -> None:
        kind, order = find_order(db, payload.order_id)
        assert_owner(order, payload.phone, payload.email)
        amount = order.pricing.total_amount
        db.audit(
            "REFUND_REQUESTED", "refund", refund_id, utc_now(),
            {"orderId": order.id, "kind": kind, "reason": payload.reason, "amount": amount},
        )
        result.update(amount=amount, method=db.payments.refund_method)

    await mutate_data(mutator, label="refund_request")
    logger.info("Refund %s requested for order %s (%.2f)", refund_id, payload.order_id, result["amount"])
    return {
        "ok": True,
        "refundId": refund_id,
        "orderId": payload.order_id,
        "amount": result["amount"],
        "refundMethod": result["method"],
        "status": "requested",
    }
