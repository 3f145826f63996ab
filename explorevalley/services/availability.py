"""
ExploreValley API - Availability / capacity validators

Occupancy is always recomputed from the full booking list of the document
passed in, never from a counter, so batched writes and historical data are
both covered.
"""
from datetime import date, timedelta

from explorevalley.core.errors import OperationalRuleError
from explorevalley.models.document import Booking, Database
from explorevalley.services.pricing import parse_date

ACTIVE_STATUSES = frozenset({"pending", "confirmed", "completed"})
CONSUMING_STATUSES = frozenset({"confirmed", "completed"})


def is_booking_active(status: str | None) -> bool:
    return (status or "").strip().lower() in ACTIVE_STATUSES


def is_consuming(status: str | None) -> bool:
    return (status or "").strip().lower() in CONSUMING_STATUSES


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open [start, end) overlap."""
    return a_start < b_end and b_start < a_end


def each_date(start: str | None, end: str | None) -> list[str]:
    """ISO dates in [start, end); empty when either bound is missing or end <= start."""
    s, e = parse_date(start), parse_date(end)
    if s is None or e is None or e <= s:
        return []
    return [(s + timedelta(days=i)).isoformat() for i in range((e - s).days)]


def _active(db: Database, kind: str) -> list[Booking]:
    return [b for b in db.bookings if b.type == kind and is_booking_active(b.status)]


def tour_occupancy(db: Database, tour_id: str, tour_date: str) -> int:
    return sum(
        max(0, b.guests) for b in _active(db, "tour")
        if b.item_id == tour_id and b.tour_date == tour_date
    )


def hotel_rooms_used(db: Database, hotel_id: str, room_type: str, night: str) -> int:
    return sum(
        max(1, b.num_rooms) for b in _active(db, "hotel")
        if b.item_id == hotel_id and b.room_type == room_type and night in each_date(b.check_in, b.check_out)
    )


def validate_tour_booking_capacity(db: Database, booking: Booking) -> None:
    if booking.type != "tour" or not is_booking_active(booking.status):
        return
    item_id = (booking.item_id or "").strip()
    tour_date = (booking.tour_date or "").strip()
    if not item_id or not tour_date or booking.guests <= 0:
        raise OperationalRuleError("INVALID_TOUR_BOOKING_DATA", booking.id)

    tour = next((t for t in db.tours if t.id == item_id and t.available), None)
    if tour is None:
        raise OperationalRuleError("TOUR_UNAVAILABLE", item_id)
    if tour_date in tour.availability.closed_dates:
        raise OperationalRuleError("TOUR_DATE_CLOSED", f"{item_id} is closed on {tour_date}")

    capacity = tour.availability.capacity_by_date.get(tour_date, tour.max_guests or 0)
    booked = tour_occupancy(db, item_id, tour_date)
    if booked > capacity:
        raise OperationalRuleError(
            "TOUR_OCCUPANCY_FULL", f"{item_id} on {tour_date}: {booked} guests > capacity {capacity}",
        )


def validate_hotel_booking_capacity(db: Database, booking: Booking) -> None:
    if booking.type != "hotel" or not is_booking_active(booking.status):
        return
    item_id = (booking.item_id or "").strip()
    room_type = (booking.room_type or "").strip()
    num_rooms = max(1, booking.num_rooms)
    if not item_id or not room_type or not booking.check_in or not booking.check_out or booking.guests <= 0:
        raise OperationalRuleError("INVALID_HOTEL_BOOKING_DATA", booking.id)

    hotel = next((h for h in db.hotels if h.id == item_id and h.available), None)
    if hotel is None:
        raise OperationalRuleError("HOTEL_UNAVAILABLE", item_id)
    rt = next((r for r in hotel.room_types if r.type == room_type), None)
    if rt is None:
        raise OperationalRuleError("ROOM_TYPE_UNAVAILABLE", f"{item_id}/{room_type}")
    if booking.guests > rt.capacity * num_rooms:
        raise OperationalRuleError(
            "HOTEL_ROOM_CAPACITY_EXCEEDED", f"{booking.guests} guests > {rt.capacity} x {num_rooms} rooms",
        )

    nights = each_date(booking.check_in, booking.check_out)
    if not nights:
        raise OperationalRuleError("INVALID_STAY_RANGE", f"{booking.check_in} -> {booking.check_out}")
    closed = set(hotel.availability.closed_dates)
    if any(n in closed for n in nights):
        raise OperationalRuleError("HOTEL_DATE_CLOSED", item_id)

    # Room types without a configured count are uncapped.
    cap = hotel.availability.rooms_by_type.get(room_type)
    if cap is None:
        return
    for night in nights:
        used = hotel_rooms_used(db, item_id, room_type, night)
        if used > cap:
            raise OperationalRuleError(
                "HOTEL_OCCUPANCY_FULL", f"{item_id}/{room_type} on {night}: {used} rooms > {cap}",
            )
