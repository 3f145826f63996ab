"""
ExploreValley API - Cancellation refunds

Outcome of cancelling an order, decided from the cancellation policies in the
document and, where the client supplies one, the moment of cancellation:

  FULL          inside the free-cancellation window
  PARTIAL       late, but before the service starts (policy fee deducted)
  POLICY_BASED  after the service started or the order was dispatched;
                nothing is refunded automatically, ops settle it by policy
"""
from datetime import datetime, timezone
from typing import Literal

from explorevalley.models.document import Booking, CabBooking, Database, FoodOrder
from explorevalley.services.pricing import round2

RefundOutcome = Literal["FULL", "PARTIAL", "POLICY_BASED"]


def parse_timestamp(value: str | None) -> datetime | None:
    """ISO date or datetime ("Z" accepted); naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def stage_hint(stage: str | None) -> RefundOutcome | None:
    text = (stage or "").strip().lower()
    if not text:
        return None
    if "post" in text or "after" in text:
        return "POLICY_BASED"
    if "late" in text:
        return "PARTIAL"
    return None


def refund_amount(total: float, outcome: RefundOutcome, fee_fraction: float = 0.0, flat_fee: float = 0.0) -> float:
    if outcome == "FULL":
        return round2(total)
    if outcome == "PARTIAL":
        return round2(max(0.0, total * (1 - fee_fraction) - flat_fee))
    return 0.0


def _result(db: Database, outcome: RefundOutcome, amount: float) -> dict:
    return {"refund": outcome, "refundAmount": amount, "refundMethod": db.payments.refund_method}


def booking_refund(db: Database, booking: Booking, cancel_at: str | None = None, stage: str | None = None) -> dict:
    """Tour and hotel bookings: hours left before the tour date / check-in."""
    policy = db.policies.tour if booking.type == "tour" else db.policies.hotel
    outcome = stage_hint(stage)
    cancelled = parse_timestamp(cancel_at)
    starts = parse_timestamp(booking.tour_date if booking.type == "tour" else booking.check_in)
    if cancelled is not None and starts is not None:
        hours_left = (starts - cancelled).total_seconds() / 3600
        if hours_left <= 0:
            outcome = "POLICY_BASED"
        elif hours_left < policy.free_cancel_hours:
            outcome = "PARTIAL"
        elif outcome is None:
            outcome = "FULL"
    outcome = outcome or "FULL"
    return _result(db, outcome, refund_amount(booking.pricing.total_amount, outcome, fee_fraction=policy.fee_after))


def food_refund(db: Database, order: FoodOrder, cancel_at: str | None = None, stage: str | None = None) -> dict:
    """Food orders: minutes since the order was placed, flat fee after the window."""
    policy = db.policies.food
    outcome = stage_hint(stage)
    if outcome is None:
        cancelled, placed = parse_timestamp(cancel_at), parse_timestamp(order.order_time)
        late = (
            cancelled is not None and placed is not None
            and (cancelled - placed).total_seconds() > policy.allow_cancel_minutes * 60
        )
        outcome = "PARTIAL" if late else "FULL"
    return _result(db, outcome, refund_amount(order.pricing.total_amount, outcome, flat_fee=policy.fee_after))


def cab_refund(db: Database, cab: CabBooking, cancel_at: str | None = None, stage: str | None = None) -> dict:
    """Cab bookings: minutes since booking, flat fee after the free window."""
    policy = db.policies.cab
    outcome = stage_hint(stage)
    if outcome is None:
        cancelled, booked = parse_timestamp(cancel_at), parse_timestamp(cab.created_at)
        late = (
            cancelled is not None and booked is not None
            and (cancelled - booked).total_seconds() > policy.free_cancel_minutes * 60
        )
        outcome = "PARTIAL" if late else "FULL"
    return _result(db, outcome, refund_amount(cab.pricing.total_amount, outcome, flat_fee=policy.fee_after))
