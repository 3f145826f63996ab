"""
ExploreValley API - Compatibility endpoints for the mobile and web clients

Read-only availability views, quotes, and the cancel/reschedule actions. Every
write goes through mutate_data(), so a reschedule onto a full date fails with
the same capacity error as a fresh booking. Cancellations answer with the
refund outcome derived from the document's policies.
"""
import logging

from fastapi import APIRouter, Query

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import mutate_data, read_data
from explorevalley.models.document import Database, utc_now
from explorevalley.schemas.compat import CancelRequest, HotelQuoteRequest, RescheduleRequest, TourQuoteRequest
from explorevalley.schemas.food import FoodQuoteRequest
from explorevalley.services.availability import each_date, hotel_rooms_used, tour_occupancy
from explorevalley.services.pricing import parse_date, quote_food, quote_hotel, quote_tour
from explorevalley.services.refunds import booking_refund, cab_refund, food_refund

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/compat", tags=["compat"])


# ── Availability views ─────────────────────────────────────────────────────────

@router.get("/hotels/{hotel_id}/availability")
async def hotel_availability(
    hotel_id: str,
    check_in: str | None = Query(None, alias="checkIn"),
    check_out: str | None = Query(None, alias="checkOut"),
):
    db = await read_data()
    hotel = next((h for h in db.hotels if h.id == hotel_id), None)
    if hotel is None:
        raise BookingRequestError("HOTEL_UNAVAILABLE", hotel_id)

    view = {
        "hotelId": hotel.id,
        "available": hotel.available,
        "closedDates": hotel.availability.closed_dates,
        "roomsByType": hotel.availability.rooms_by_type,
        "minNights": hotel.min_nights,
        "maxNights": hotel.max_nights,
    }
    nights = each_date(check_in, check_out)
    if nights:
        view["remainingByNight"] = {
            night: {
                rt: max(0, cap - hotel_rooms_used(db, hotel.id, rt, night))
                for rt, cap in hotel.availability.rooms_by_type.items()
            }
            for night in nights
        }
    return view


@router.get("/tours/{tour_id}/availability")
async def tour_availability(tour_id: str, tour_date: str | None = Query(None, alias="date")):
    db = await read_data()
    tour = next((t for t in db.tours if t.id == tour_id), None)
    if tour is None:
        raise BookingRequestError("TOUR_UNAVAILABLE", tour_id)

    view = {
        "tourId": tour.id,
        "available": tour.available,
        "closedDates": tour.availability.closed_dates,
        "capacityByDate": tour.availability.capacity_by_date,
        "maxGuests": tour.max_guests,
    }
    if parse_date(tour_date) is not None:
        capacity = tour.availability.capacity_by_date.get(tour_date, tour.max_guests)
        booked = tour_occupancy(db, tour.id, tour_date)
        view["date"] = {
            "date": tour_date,
            "closed": tour_date in tour.availability.closed_dates,
            "capacity": capacity,
            "booked": booked,
            "remaining": max(0, capacity - booked),
        }
    return view


@router.get("/restaurants/{restaurant_id}/menu")
async def restaurant_menu(restaurant_id: str):
    db = await read_data()
    restaurant = next((r for r in db.restaurants if r.id == restaurant_id), None)
    if restaurant is None or not restaurant.available:
        raise BookingRequestError("RESTAURANT_UNAVAILABLE", restaurant_id)
    return [
        m.model_dump(mode="json", by_alias=True)
        for m in db.menu_items
        if m.restaurant_id == restaurant_id
    ]


# ── Quotes ─────────────────────────────────────────────────────────────────────

@router.post("/hotels/quote")
async def hotel_quote(payload: HotelQuoteRequest):
    db = await read_data()
    return quote_hotel(
        db, payload.hotel_id, payload.room_type, payload.check_in, payload.check_out,
        payload.guests, payload.num_rooms, payload.pricing_tier, payload.coupon,
    )


@router.post("/tours/quote")
async def tour_quote(payload: TourQuoteRequest):
    db = await read_data()
    return quote_tour(db, payload.tour_id, payload.tour_date, payload.guests, payload.pricing_tier, payload.coupon)


@router.post("/food/quote")
async def food_quote(payload: FoodQuoteRequest):
    db = await read_data()
    return quote_food(db, payload.restaurant_id, payload.items, payload.coupon)


# ── Cancel / reschedule ────────────────────────────────────────────────────────

def _tour_booking(db: Database, booking_id: str):
    booking = next((b for b in db.bookings if b.id == booking_id and b.type == "tour"), None)
    if booking is None:
        raise BookingRequestError("BOOKING_NOT_FOUND", booking_id)
    return booking


@router.post("/bookings/tour/{booking_id}/reschedule")
async def reschedule_tour(booking_id: str, payload: RescheduleRequest):
    if parse_date(payload.to_date) is None:
        raise BookingRequestError("INVALID_TOUR_BOOKING_DATA", f"bad date {payload.to_date!r}")

    def mutator(db: Database) -> None:
        booking = _tour_booking(db, booking_id)
        previous = booking.tour_date
        booking.tour_date = payload.to_date
        db.audit("RESCHEDULE_TOUR", "booking", booking.id, utc_now(), {"from": previous, "to": payload.to_date})

    await mutate_data(mutator, label="tour_reschedule")
    return {"success": True, "id": booking_id, "tourDate": payload.to_date}


@router.post("/bookings/tour/{booking_id}/cancel")
async def cancel_tour(booking_id: str, payload: CancelRequest | None = None):
    payload = payload or CancelRequest()
    refund: dict = {}

    def mutator(db: Database) -> None:
        booking = _tour_booking(db, booking_id)
        refund.update(booking_refund(db, booking, payload.cancel_at, payload.cancel_stage))
        booking.status = "cancelled"
        db.audit("CANCEL_TOUR", "booking", booking.id, utc_now(), refund)

    await mutate_data(mutator, label="tour_cancel")
    return {"success": True, "id": booking_id, "status": "cancelled", **refund}


@router.post("/food/orders/{order_id}/cancel")
async def cancel_food_order(order_id: str, payload: CancelRequest | None = None):
    payload = payload or CancelRequest()
    refund: dict = {}

    def mutator(db: Database) -> None:
        order = next((o for o in db.food_orders if o.id == order_id), None)
        if order is None:
            raise BookingRequestError("ORDER_NOT_FOUND", order_id)
        refund.update(food_refund(db, order, payload.cancel_at, payload.cancel_stage))
        order.status = "cancelled"
        db.audit("CANCEL_FOOD", "food", order.id, utc_now(), refund)

    await mutate_data(mutator, label="food_cancel")
    return {"success": True, "id": order_id, "status": "cancelled", **refund}


@router.post("/cab/{cab_id}/cancel")
async def cancel_cab(cab_id: str, payload: CancelRequest | None = None):
    payload = payload or CancelRequest()
    refund: dict = {}

    def mutator(db: Database) -> None:
        cab = next((c for c in db.cab_bookings if c.id == cab_id), None)
        if cab is None:
            raise BookingRequestError("CAB_BOOKING_NOT_FOUND", cab_id)
        refund.update(cab_refund(db, cab, payload.cancel_at, payload.cancel_stage))
        cab.status = "cancelled"
        db.audit("CANCEL_CAB", "cab", cab.id, utc_now(), refund)

    await mutate_data(mutator, label="cab_cancel")
    return {"success": True, "id": cab_id, "status": "cancelled", **refund}
