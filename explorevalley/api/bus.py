"""
ExploreValley API - Bus search, seat map and seat booking
"""
import logging
import math

from fastapi import APIRouter, Query, status

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import mutate_data, read_data
from explorevalley.models.document import BusBooking, BusRoute, Database, make_id, utc_now
from explorevalley.schemas.booking import CreatedResponse
from explorevalley.schemas.transport import BusBookRequest
from explorevalley.services.pricing import parse_date, round2

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/bus", tags=["bus"])

SEAT_COLUMNS = "ABCD"


def seat_codes(route: BusRoute) -> list[str]:
    """Configured layout, else rows of A-D seats cut to totalSeats."""
    if route.seat_layout:
        return [s.code for s in route.seat_layout]
    rows = math.ceil(route.total_seats / len(SEAT_COLUMNS))
    codes = [f"{row}{col}" for row in range(1, rows + 1) for col in SEAT_COLUMNS]
    return codes[: route.total_seats]


def booked_seats(route: BusRoute, journey_date: str) -> set[str]:
    return set(route.seats_booked_by_date.get(journey_date, []))


def runs_on(route: BusRoute, journey_date: str) -> bool:
    return not route.service_dates or journey_date in route.service_dates


def _find_route(db: Database, route_id: str) -> BusRoute:
    route = next((r for r in db.bus_routes if r.id == route_id), None)
    if route is None or not route.active:
        raise BookingRequestError("ROUTE_NOT_FOUND", route_id)
    return route


@router.get("/search")
async def search_routes(
    from_city: str = Query(..., alias="from", min_length=2),
    to_city: str = Query(..., alias="to", min_length=2),
    journey_date: str = Query(..., alias="date"),
    passengers: int = Query(1, ge=1, le=10),
):
    if from_city.strip().lower() == to_city.strip().lower():
        raise BookingRequestError("INVALID_TRIP", "origin and destination are the same")
    if parse_date(journey_date) is None:
        raise BookingRequestError("INVALID_INPUT", f"bad date {journey_date!r}")

    db = await read_data()
    results = []
    for route in db.bus_routes:
        if not route.active or not runs_on(route, journey_date):
            continue
        if route.from_city.lower() != from_city.strip().lower() or route.to_city.lower() != to_city.strip().lower():
            continue
        available = len(seat_codes(route)) - len(booked_seats(route, journey_date))
        results.append({
            **route.model_dump(mode="json", by_alias=True, exclude={"seats_booked_by_date"}),
            "availableSeats": available,
            "canBook": available >= passengers,
        })
    results.sort(key=lambda r: r["fare"])
    return {"date": journey_date, "passengers": passengers, "routes": results}


@router.get("/{route_id}/seats")
async def seat_map(route_id: str, journey_date: str = Query(..., alias="date")):
    db = await read_data()
    route = _find_route(db, route_id)
    taken = booked_seats(route, journey_date)
    return {
        "routeId": route.id,
        "date": journey_date,
        "fare": route.fare,
        "seats": [{"code": code, "booked": code in taken} for code in seat_codes(route)],
    }


@router.post("/book", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def book_seats(payload: BusBookRequest):
    wanted = [s.strip().upper() for s in payload.seats if s.strip()]
    if not wanted or len(set(wanted)) != len(wanted):
        raise BookingRequestError("INVALID_SEAT_SELECTION", "seats must be unique")
    if parse_date(payload.journey_date) is None:
        raise BookingRequestError("INVALID_INPUT", f"bad date {payload.journey_date!r}")
    created: list[BusBooking] = []

    def mutator(db: Database) -> None:
        route = _find_route(db, payload.route_id)
        if not runs_on(route, payload.journey_date):
            raise BookingRequestError("INVALID_TRIP", f"no service on {payload.journey_date}")
        valid = set(seat_codes(route))
        unknown = [s for s in wanted if s not in valid]
        if unknown:
            raise BookingRequestError("INVALID_SEAT_SELECTION", ", ".join(unknown))
        taken = booked_seats(route, payload.journey_date) & set(wanted)
        if taken:
            raise BookingRequestError("SEAT_ALREADY_BOOKED", ", ".join(sorted(taken)))

        route.seats_booked_by_date.setdefault(payload.journey_date, []).extend(wanted)
        now = utc_now()
        booking = BusBooking(
            id=make_id("bus"),
            route_id=route.id,
            user_name=payload.user_name,
            phone=payload.phone,
            from_city=route.from_city,
            to_city=route.to_city,
            travel_date=payload.journey_date,
            seats=wanted,
            fare_per_seat=route.fare,
            total_fare=round2(route.fare * len(wanted)),
            status="pending",
            created_at=now,
        )
        db.bus_bookings.append(booking)
        db.audit("CREATE_BUS_BOOKING", "bus_booking", booking.id, now, {"seats": wanted})
        created.append(booking)

    await mutate_data(mutator, label="bus_booking")
    booking = created[0]
    logger.info("Bus booking %s holds %s on %s", booking.id, booking.seats, booking.travel_date)
    return CreatedResponse(id=booking.id, status=booking.status, total_amount=booking.total_fare)
