"""
ExploreValley API - Order status updates from the delivery/ops side

One endpoint moves any order (booking, food order or cab booking) to a new
status. A food order moving into or out of `confirmed` has its stock effect
applied by the operational rules engine on commit. Customers track an order
by id, proving ownership with the phone or email it was placed with.
"""
import logging
from typing import get_args

from fastapi import APIRouter, Query

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import mutate_data, read_data
from explorevalley.models.document import Database, Status, utc_now
from explorevalley.schemas.compat import StatusUpdateRequest
from explorevalley.services.user_profiles import normalize_phone

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/delivery", tags=["delivery"])

ORDER_STATUSES = frozenset(get_args(Status))


def find_order(db: Database, order_id: str):
    """(kind, record) searching bookings, then food orders, then cab bookings."""
    for kind, records in (("booking", db.bookings), ("food", db.food_orders), ("cab", db.cab_bookings)):
        for record in records:
            if record.id == order_id:
                return kind, record
    raise BookingRequestError("ORDER_NOT_FOUND", order_id)


def assert_owner(record, phone: str | None, email: str | None) -> None:
    """Phone match, or email match as fallback; no credentials means no check."""
    phone, email = normalize_phone(phone), (email or "").strip().lower()
    if not phone and not email:
        return
    if phone and normalize_phone(record.phone) == phone:
        return
    record_email = (getattr(record, "email", "") or "").strip().lower()
    if email and record_email == email:
        return
    raise BookingRequestError("NOT_YOUR_ORDER", record.id)


@router.post("/update-status")
async def update_status(payload: StatusUpdateRequest):
    new_status = payload.status.strip().lower()
    if new_status not in ORDER_STATUSES:
        raise BookingRequestError("INVALID_STATUS", f"expected one of {sorted(ORDER_STATUSES)}")
    result: dict = {}

    def mutator(db: Database) -> None:
        kind, record = find_order(db, payload.order_id)
        previous = record.status
        record.status = new_status
        db.audit(
            "UPDATE_DELIVERY_STATUS", kind, record.id, utc_now(),
            {"from": previous, "to": new_status, "notes": payload.notes},
        )
        result.update(kind=kind, previous=previous)

    await mutate_data(mutator, label="delivery_update")
    logger.info("Order %s (%s): %s -> %s", payload.order_id, result["kind"], result["previous"], new_status)
    return {"success": True, "orderId": payload.order_id, "kind": result["kind"], "status": new_status}


@router.get("/track/{order_id}")
async def track_order(
    order_id: str,
    phone: str | None = Query(None),
    email: str | None = Query(None),
):
    db = await read_data()
    kind, record = find_order(db, order_id)
    assert_owner(record, phone, email)
    doc = record.model_dump(mode="json", by_alias=True)
    return {
        "ok": True,
        "order": {
            "id": record.id,
            "kind": kind,
            "type": doc.get("type", kind),
            "status": record.status,
            "userName": record.user_name,
            "pricing": doc["pricing"],
            "items": doc.get("items"),
            "deliveryAddress": doc.get("deliveryAddress"),
            "checkIn": doc.get("checkIn"),
            "checkOut": doc.get("checkOut"),
            "tourDate": doc.get("tourDate"),
            "date": doc.get("bookingDate") or doc.get("orderTime") or doc.get("createdAt"),
        },
    }
