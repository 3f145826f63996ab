"""
ExploreValley API - Bike rentals
"""
import logging

from fastapi import APIRouter, Query, status

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import mutate_data, read_data
from explorevalley.models.document import BikeBooking, Database, make_id, utc_now
from explorevalley.schemas.booking import CreatedResponse
from explorevalley.schemas.transport import BikeBookRequest
from explorevalley.services.pricing import round2

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/bikes", tags=["bikes"])


@router.get("")
async def list_bikes(location: str | None = Query(None)):
    db = await read_data()
    wanted = (location or "").strip().lower()
    return [
        b.model_dump(mode="json", by_alias=True)
        for b in db.bike_rentals
        if b.active and (not wanted or b.location.lower() == wanted)
    ]


@router.post("/book", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def book_bike(payload: BikeBookRequest):
    created: list[BikeBooking] = []

    def mutator(db: Database) -> None:
        bike = next((b for b in db.bike_rentals if b.id == payload.bike_rental_id and b.active), None)
        if bike is None:
            raise BookingRequestError("BIKE_NOT_FOUND", payload.bike_rental_id)
        if bike.available_qty < payload.qty:
            raise BookingRequestError("INSUFFICIENT_BIKE_STOCK", f"{bike.available_qty} left")
        if bike.max_days > 0 and payload.days > bike.max_days:
            raise BookingRequestError("MAX_DAYS_EXCEEDED", f"max {bike.max_days} days")

        bike.available_qty -= payload.qty
        now = utc_now()
        booking = BikeBooking(
            id=make_id("bike"),
            bike_rental_id=bike.id,
            user_name=payload.user_name,
            phone=payload.phone,
            start_date_time=payload.start_date_time,
            days=payload.days,
            hours=payload.days * 24,
            qty=payload.qty,
            total_fare=round2(payload.days * bike.price_per_day * payload.qty),
            status="pending",
            created_at=now,
        )
        db.bike_bookings.insert(0, booking)
        db.audit("CREATE_BIKE_BOOKING", "bike", booking.id, now)
        created.append(booking)

    await mutate_data(mutator, label="bike_booking")
    booking = created[0]
    return CreatedResponse(id=booking.id, status=booking.status, total_amount=booking.total_fare)
