"""
Cancellation refund outcomes against the document's policies.
"""
from explorevalley.models.document import CabBooking, FoodOrder, FoodOrderItem, Pricing
from explorevalley.services.pricing import compute_gst
from explorevalley.services.refunds import (
    booking_refund,
    cab_refund,
    food_refund,
    parse_timestamp,
    stage_hint,
)


def _booking(db, booking_id):
    return next(b for b in db.bookings if b.id == booking_id)


def _food_order() -> FoodOrder:
    return FoodOrder(
        id="food_1", restaurant_id="rest_r1", user_name="Ravi Kumar", phone="9123456780",
        items=[FoodOrderItem(menu_item_id="menu_m1", name="Momos", quantity=2, price=120)],
        delivery_address="Mall Road, Manali",
        pricing=Pricing(base_amount=240, tax=compute_gst(240, 0.05), total_amount=252),
        status="confirmed", order_time="2026-02-01T12:00:00Z",
    )


def _cab() -> CabBooking:
    return CabBooking(
        id="cab_1", user_name="Ravi Kumar", phone="9123456780", pickup_location="Mall Road",
        drop_location="Solang Valley", datetime="2026-02-01T15:00:00Z", passengers=2,
        vehicle_type="sedan", estimated_fare=800,
        pricing=Pricing(base_amount=800, tax=compute_gst(800, 0.05), total_amount=840),
        created_at="2026-02-01T12:00:00Z",
    )


def test_parse_timestamp_accepts_dates_and_zulu_times():
    assert parse_timestamp("2026-06-10").hour == 0
    assert parse_timestamp("2026-06-09T12:00:00Z").utcoffset().total_seconds() == 0
    assert parse_timestamp("someday") is None
    assert parse_timestamp(None) is None


def test_stage_hints():
    assert stage_hint("after dispatch") == "POLICY_BASED"
    assert stage_hint("post-trip") == "POLICY_BASED"
    assert stage_hint("LATE") == "PARTIAL"
    assert stage_hint("early") is None
    assert stage_hint("") is None


class TestBookingRefund:
    def test_no_timing_is_a_full_refund(self, db):
        refund = booking_refund(db, _booking(db, "book_tour_1"))
        assert refund == {"refund": "FULL", "refundAmount": 3150, "refundMethod": "original"}

    def test_inside_free_window_is_partial(self, db):
        refund = booking_refund(db, _booking(db, "book_tour_1"), cancel_at="2026-06-09T12:00:00Z")
        assert refund["refund"] == "PARTIAL"
        assert refund["refundAmount"] == 1575

    def test_after_start_is_policy_based(self, db):
        refund = booking_refund(db, _booking(db, "book_tour_1"), cancel_at="2026-06-10T08:00:00Z")
        assert refund["refund"] == "POLICY_BASED"
        assert refund["refundAmount"] == 0

    def test_stage_hint_without_timing(self, db):
        refund = booking_refund(db, _booking(db, "book_tour_1"), stage="late cancellation")
        assert refund["refund"] == "PARTIAL"

    def test_hotel_uses_hotel_policy_and_payment_method(self, db):
        db.policies.hotel.free_cancel_hours = 72
        db.payments.refund_method = "wallet"
        refund = booking_refund(db, _booking(db, "book_hotel_1"), cancel_at="2026-06-29T00:00:00Z")
        assert refund == {"refund": "PARTIAL", "refundAmount": 2240, "refundMethod": "wallet"}


def test_food_refund_window(db):
    order = _food_order()
    assert food_refund(db, order, cancel_at="2026-02-01T12:03:00Z")["refund"] == "FULL"
    late = food_refund(db, order, cancel_at="2026-02-01T12:10:00Z")
    assert late["refund"] == "PARTIAL"
    assert late["refundAmount"] == 232
    assert food_refund(db, order, stage="after dispatch")["refundAmount"] == 0


def test_cab_refund_window(db):
    cab = _cab()
    assert cab_refund(db, cab, cancel_at="2026-02-01T12:10:00Z")["refundAmount"] == 840
    late = cab_refund(db, cab, cancel_at="2026-02-01T13:00:00Z")
    assert late == {"refund": "PARTIAL", "refundAmount": 790, "refundMethod": "original"}
