"""
ExploreValley API - Hotel/tour bookings, cab bookings and customer queries

Handlers only build the new record and append it inside mutate_data(). Occupancy
across bookings is enforced by the operational rules engine on commit.
"""
import logging

from fastapi import APIRouter, status

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import mutate_data
from explorevalley.models.document import (
    Booking,
    CabBooking,
    Database,
    Pricing,
    Query,
    make_id,
    utc_now,
)
from explorevalley.schemas.booking import BookingCreate, CabBookingCreate, CreatedResponse, QueryCreate
from explorevalley.services.pricing import compute_gst, quote_hotel, quote_tour, round2

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["bookings"])


def _pricing_from_quote(quoted: dict) -> Pricing:
    q = quoted["quote"]
    return Pricing(
        base_amount=q["baseAmount"],
        tax=compute_gst(q["baseAmount"], quoted["gstRate"]),
        total_amount=q["totalAmount"],
    )


def build_booking(db: Database, payload: BookingCreate, now: str) -> Booking:
    if payload.type == "hotel":
        if not (payload.check_in and payload.check_out and payload.room_type):
            raise BookingRequestError("INVALID_HOTEL_BOOKING_DATA", "checkIn, checkOut and roomType are required")
        quoted = quote_hotel(
            db, payload.item_id, payload.room_type, payload.check_in, payload.check_out,
            payload.guests, payload.num_rooms, payload.pricing_tier, payload.coupon,
        )
    else:
        if not payload.tour_date:
            raise BookingRequestError("INVALID_TOUR_BOOKING_DATA", "tourDate is required")
        quoted = quote_tour(
            db, payload.item_id, payload.tour_date, payload.guests, payload.pricing_tier, payload.coupon,
        )

    return Booking(
        id=make_id("book"),
        type=payload.type,
        item_id=payload.item_id,
        user_name=payload.user_name,
        email=payload.email,
        phone=payload.phone,
        country_code=payload.country_code,
        guests=payload.guests,
        check_in=payload.check_in if payload.type == "hotel" else None,
        check_out=payload.check_out if payload.type == "hotel" else None,
        room_type=payload.room_type if payload.type == "hotel" else None,
        num_rooms=payload.num_rooms,
        tour_date=payload.tour_date if payload.type == "tour" else None,
        special_requests=payload.special_requests,
        pricing=_pricing_from_quote(quoted),
        status="pending",
        booking_date=now,
    )


@router.post("/bookings", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(payload: BookingCreate):
    created: list[Booking] = []

    def mutator(db: Database) -> None:
        now = utc_now()
        booking = build_booking(db, payload, now)
        db.bookings.append(booking)
        db.audit("CREATE_BOOKING", "booking", booking.id, now, {"type": booking.type, "itemId": booking.item_id})
        created.append(booking)

    await mutate_data(mutator, label="booking")
    booking = created[0]
    logger.info("Booking %s created (%s %s)", booking.id, booking.type, booking.item_id)
    return CreatedResponse(id=booking.id, status=booking.status, total_amount=booking.pricing.total_amount)


@router.post("/cab-bookings", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_cab_booking(payload: CabBookingCreate):
    created: list[CabBooking] = []

    def mutator(db: Database) -> None:
        if payload.service_area_id:
            area = next((a for a in db.service_areas if a.id == payload.service_area_id), None)
            if area is None or not area.enabled:
                raise BookingRequestError("INVALID_INPUT", f"service area {payload.service_area_id} is not served")
        now = utc_now()
        tax = compute_gst(payload.estimated_fare, db.settings.tax_rules.cab.gst)
        cab = CabBooking(
            id=make_id("cab"),
            **payload.model_dump(),
            pricing=Pricing(
                base_amount=tax.taxable_value, tax=tax,
                total_amount=round2(tax.taxable_value + tax.gst_amount),
            ),
            status="pending",
            created_at=now,
        )
        db.cab_bookings.append(cab)
        db.audit("CREATE_CAB", "cab", cab.id, now)
        created.append(cab)

    await mutate_data(mutator, label="cab")
    cab = created[0]
    return CreatedResponse(id=cab.id, status=cab.status, total_amount=cab.pricing.total_amount)


@router.post("/queries", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_query(payload: QueryCreate):
    created: list[Query] = []

    def mutator(db: Database) -> None:
        now = utc_now()
        query = Query(id=make_id("query"), **payload.model_dump(), status="pending", submitted_at=now)
        db.queries.append(query)
        db.audit("CREATE_QUERY", "query", query.id, now)
        created.append(query)

    await mutate_data(mutator, label="query")
    return CreatedResponse(id=created[0].id, status=created[0].status)
