"""
Availability validators: tour occupancy per date, hotel room-nights per type.
"""
from datetime import date

import pytest

from explorevalley.core.errors import OperationalRuleError
from explorevalley.models.document import Booking, Pricing
from explorevalley.services.availability import (
    each_date,
    hotel_rooms_used,
    is_booking_active,
    ranges_overlap,
    tour_occupancy,
    validate_hotel_booking_capacity,
    validate_tour_booking_capacity,
)
from explorevalley.services.pricing import compute_gst


def _booking(**fields) -> Booking:
    base = {
        "id": "book_new", "type": "tour", "item_id": "tour_t1", "user_name": "Ravi Kumar",
        "email": "ravi@example.com", "phone": "9123456780", "guests": 1,
        "pricing": Pricing(base_amount=1000, tax=compute_gst(1000, 0.05), total_amount=1050),
        "status": "pending", "booking_date": "2026-02-01T00:00:00Z",
    }
    base.update(fields)
    return Booking(**base)


def test_each_date_is_half_open():
    assert each_date("2026-07-01", "2026-07-03") == ["2026-07-01", "2026-07-02"]
    assert each_date("2026-07-03", "2026-07-01") == []
    assert each_date(None, "2026-07-01") == []


def test_ranges_overlap_touching_ranges_do_not_overlap():
    assert not ranges_overlap(date(2026, 7, 1), date(2026, 7, 3), date(2026, 7, 3), date(2026, 7, 5))
    assert ranges_overlap(date(2026, 7, 1), date(2026, 7, 3), date(2026, 7, 2), date(2026, 7, 5))


def test_ranges_overlap_is_symmetric():
    days = [date(2026, 7, d) for d in range(1, 8)]
    ranges = [(a, b) for a in days for b in days if a < b]
    for a_start, a_end in ranges:
        for b_start, b_end in ranges:
            assert ranges_overlap(a_start, a_end, b_start, b_end) == ranges_overlap(b_start, b_end, a_start, a_end)


def test_cancelled_bookings_are_inactive():
    assert is_booking_active("pending")
    assert is_booking_active("completed")
    assert not is_booking_active("cancelled")


class TestTourCapacity:
    def test_fits_remaining_capacity(self, db):
        booking = _booking(guests=1, tour_date="2026-06-10")
        db.bookings.append(booking)
        validate_tour_booking_capacity(db, booking)
        assert tour_occupancy(db, "tour_t1", "2026-06-10") == 4

    def test_date_override_caps_occupancy(self, db):
        booking = _booking(guests=2, tour_date="2026-06-10")
        db.bookings.append(booking)
        with pytest.raises(OperationalRuleError) as exc:
            validate_tour_booking_capacity(db, booking)
        assert exc.value.code == "TOUR_OCCUPANCY_FULL"

    def test_falls_back_to_max_guests(self, db):
        booking = _booking(guests=10, tour_date="2026-06-11")
        db.bookings.append(booking)
        validate_tour_booking_capacity(db, booking)

    def test_closed_date(self, db):
        booking = _booking(tour_date="2026-06-15")
        with pytest.raises(OperationalRuleError) as exc:
            validate_tour_booking_capacity(db, booking)
        assert exc.value.code == "TOUR_DATE_CLOSED"

    def test_missing_date_is_invalid(self, db):
        with pytest.raises(OperationalRuleError) as exc:
            validate_tour_booking_capacity(db, _booking(tour_date=None))
        assert exc.value.code == "INVALID_TOUR_BOOKING_DATA"

    def test_cancelled_booking_is_not_validated(self, db):
        validate_tour_booking_capacity(db, _booking(tour_date="2026-06-15", status="cancelled"))


def _stay(**fields) -> Booking:
    base = {"type": "hotel", "item_id": "hotel_h1", "room_type": "deluxe", "guests": 2,
            "check_in": "2026-07-02", "check_out": "2026-07-04"}
    base.update(fields)
    return _booking(**base)


class TestHotelCapacity:
    def test_room_nights_are_counted_per_night(self, db):
        assert hotel_rooms_used(db, "hotel_h1", "deluxe", "2026-07-01") == 1
        assert hotel_rooms_used(db, "hotel_h1", "deluxe", "2026-07-03") == 0

    def test_fits_when_one_room_left(self, db):
        booking = _stay()
        db.bookings.append(booking)
        validate_hotel_booking_capacity(db, booking)

    def test_overlapping_night_over_capacity(self, db):
        booking = _stay(num_rooms=2, guests=3)
        db.bookings.append(booking)
        with pytest.raises(OperationalRuleError) as exc:
            validate_hotel_booking_capacity(db, booking)
        assert exc.value.code == "HOTEL_OCCUPANCY_FULL"

    def test_checkout_day_is_free(self, db):
        booking = _stay(num_rooms=1, check_in="2026-07-03", check_out="2026-07-05")
        db.bookings.append(booking)
        db.bookings.append(_stay(id="book_other", check_in="2026-07-03", check_out="2026-07-04"))
        validate_hotel_booking_capacity(db, booking)

    def test_uncapped_room_type(self, db):
        booking = _stay(room_type="suite", num_rooms=5, guests=4, check_in="2026-07-01", check_out="2026-07-02")
        db.bookings.append(booking)
        validate_hotel_booking_capacity(db, booking)

    @pytest.mark.parametrize("fields, code", [
        ({"check_in": "2026-07-09", "check_out": "2026-07-11"}, "HOTEL_DATE_CLOSED"),
        ({"room_type": "penthouse"}, "ROOM_TYPE_UNAVAILABLE"),
        ({"guests": 5}, "HOTEL_ROOM_CAPACITY_EXCEEDED"),
        ({"check_out": "2026-07-02"}, "INVALID_STAY_RANGE"),
        ({"room_type": None}, "INVALID_HOTEL_BOOKING_DATA"),
        ({"item_id": "hotel_gone"}, "HOTEL_UNAVAILABLE"),
    ])
    def test_rejections(self, db, fields, code):
        with pytest.raises(OperationalRuleError) as exc:
            validate_hotel_booking_capacity(db, _stay(**fields))
        assert exc.value.code == code
