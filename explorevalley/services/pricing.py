"""
ExploreValley API - Pricing engine

Pure functions: GST breakup, slab lookup, stay length, pricing tiers, coupons
and the hotel/tour/food quotes built from them. Nothing here touches I/O.
"""
import math
from datetime import date, datetime, timezone
from typing import Any, Iterable

from explorevalley.core.errors import BookingRequestError
from explorevalley.models.document import Database, MenuItem, Settings, TaxBreakup


def round2(value: float) -> float:
    """Half-up rounding to 2 decimals (0.125 -> 0.13, not banker's 0.12)."""
    return math.floor(value * 100 + 0.5) / 100


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def compute_gst(taxable_value: float, gst_rate: float, interstate: bool = False) -> TaxBreakup:
    """
    GST on a taxable value, split into CGST/SGST halves or charged whole as IGST.

    The split is done in whole paise, so cgst + sgst equals gst_amount to the
    cent. Compare the float sum through round2(): 0.08 + 0.07 is not 0.15.
    """
    gst_paise = math.floor(taxable_value * gst_rate * 100 + 0.5)
    gst_amount = gst_paise / 100
    if interstate:
        return TaxBreakup(
            gst_rate=gst_rate, taxable_value=round2(taxable_value),
            gst_amount=gst_amount, cgst=0, sgst=0, igst=gst_amount,
        )
    cgst_paise = (gst_paise + 1) // 2
    return TaxBreakup(
        gst_rate=gst_rate, taxable_value=round2(taxable_value),
        gst_amount=gst_amount, cgst=cgst_paise / 100, sgst=(gst_paise - cgst_paise) / 100, igst=0,
    )


def hotel_gst_rate(per_night: float, settings: Settings) -> float:
    for slab in settings.tax_rules.hotel.slabs:
        if per_night >= slab.min and (slab.max is None or per_night <= slab.max):
            return slab.gst
    return 0.0


def days_between(check_in: str, check_out: str) -> int:
    """Whole UTC days between two ISO dates, never less than 1."""
    start, end = parse_date(check_in), parse_date(check_out)
    if start is None or end is None:
        raise BookingRequestError("INVALID_DATE_RANGE", f"{check_in!r} -> {check_out!r}")
    return max(1, (end - start).days)


def tier_multiplier(settings: Settings, tier: str | None) -> float:
    if not tier:
        return 1.0
    for t in settings.pricing_tiers:
        if t.name.lower() == tier.lower():
            return t.multiplier
    return 1.0


def apply_coupon(
    db: Database,
    code: str | None,
    category: str,
    subtotal: float,
    today: date | None = None,
) -> float:
    """
    Returns the discount a coupon grants on `subtotal`.

    No code means no discount. An unknown code, a coupon for another category,
    an expired coupon or a cart below the coupon's minimum raise COUPON_INVALID.
    The discount never exceeds the subtotal.
    """
    if not code:
        return 0.0
    coupon = next((c for c in db.coupons if c.code.upper() == code.strip().upper()), None)
    if coupon is None:
        raise BookingRequestError("COUPON_INVALID", f"unknown coupon {code}")
    if coupon.category not in ("all", category):
        raise BookingRequestError("COUPON_INVALID", f"{coupon.code} does not apply to {category}")
    expiry = parse_date(coupon.expiry)
    if expiry is not None and expiry < (today or today_utc()):
        raise BookingRequestError("COUPON_INVALID", f"{coupon.code} expired on {coupon.expiry}")
    if subtotal < coupon.min_cart:
        raise BookingRequestError("COUPON_INVALID", f"{coupon.code} needs a cart of {coupon.min_cart}")
    if coupon.type == "flat":
        discount = coupon.amount
    else:
        discount = subtotal * coupon.amount / 100
    return round2(min(max(0.0, discount), subtotal))


def _quote(base: float, discount: float, gst_rate: float) -> dict[str, Any]:
    discounted = round2(max(0.0, base - discount))
    tax = compute_gst(discounted, gst_rate)
    return {
        "baseAmount": discounted,
        "discount": discount,
        "gstAmount": tax.gst_amount,
        "totalAmount": round2(discounted + tax.gst_amount),
    }


# ── Quotes ─────────────────────────────────────────────────────────────────────

def quote_hotel(
    db: Database,
    hotel_id: str,
    room_type: str,
    check_in: str,
    check_out: str,
    guests: int,
    num_rooms: int = 1,
    pricing_tier: str | None = None,
    coupon: str | None = None,
) -> dict[str, Any]:
    start, end = parse_date(check_in), parse_date(check_out)
    if start is None or end is None or end < start:
        raise BookingRequestError("INVALID_DATE_RANGE")
    if end == start:
        raise BookingRequestError("INVALID_STAY_LENGTH", "check-out must be after check-in")
    if guests <= 0:
        raise BookingRequestError("INVALID_HOTEL_BOOKING_DATA", "guests must be positive")
    num_rooms = max(1, num_rooms)

    hotel = next((h for h in db.hotels if h.id == hotel_id), None)
    if hotel is None or not hotel.available:
        raise BookingRequestError("HOTEL_UNAVAILABLE", hotel_id)
    rt = next((r for r in hotel.room_types if r.type == room_type), None)
    if rt is None:
        raise BookingRequestError("ROOM_TYPE_UNAVAILABLE", room_type)
    if guests > rt.capacity * num_rooms:
        raise BookingRequestError("HOTEL_ROOM_CAPACITY_EXCEEDED")

    nights = days_between(check_in, check_out)
    if nights < hotel.min_nights or nights > hotel.max_nights:
        raise BookingRequestError(
            "INVALID_STAY_LENGTH", f"stay must be {hotel.min_nights}-{hotel.max_nights} nights",
        )

    base = round2(rt.price * nights * num_rooms * tier_multiplier(db.settings, pricing_tier))
    discount = apply_coupon(db, coupon, "hotel", base)
    gst_rate = hotel_gst_rate(rt.price, db.settings)
    return {
        "hotelId": hotel.id,
        "nights": nights,
        "gstRate": gst_rate,
        "pricingTier": pricing_tier,
        "quote": _quote(base, discount, gst_rate),
    }


def quote_tour(
    db: Database,
    tour_id: str,
    tour_date: str,
    guests: int,
    pricing_tier: str | None = None,
    coupon: str | None = None,
) -> dict[str, Any]:
    if parse_date(tour_date) is None or guests <= 0:
        raise BookingRequestError("INVALID_TOUR_BOOKING_DATA")
    tour = next((t for t in db.tours if t.id == tour_id), None)
    if tour is None or not tour.available:
        raise BookingRequestError("TOUR_UNAVAILABLE", tour_id)
    if guests > tour.max_guests:
        raise BookingRequestError("MAX_GUESTS_EXCEEDED", f"max {tour.max_guests} guests")
    if tour_date in tour.availability.closed_dates:
        raise BookingRequestError("TOUR_DATE_CLOSED", tour_date)

    base = round2(tour.price * guests * tier_multiplier(db.settings, pricing_tier))
    discount = apply_coupon(db, coupon, "tour", base)
    gst_rate = db.settings.tax_rules.tour.gst
    return {
        "tourId": tour.id,
        "gstRate": gst_rate,
        "pricingTier": pricing_tier,
        "quote": _quote(base, discount, gst_rate),
    }


def find_menu_item(db: Database, restaurant_id: str, menu_item_id: str | None, name: str | None) -> MenuItem | None:
    """Lookup by id, else case-insensitive name within the restaurant."""
    if menu_item_id:
        return next((m for m in db.menu_items if m.id == menu_item_id), None)
    wanted = (name or "").strip().lower()
    return next(
        (m for m in db.menu_items if m.restaurant_id == restaurant_id and m.name.strip().lower() == wanted),
        None,
    )


def price_food_lines(db: Database, restaurant_id: str, lines: Iterable[Any]) -> tuple[float, list[tuple[MenuItem, int]]]:
    """
    Resolves cart lines (objects with menu_item_id/name/quantity) against the
    restaurant's menu items and returns (subtotal, [(item, qty)]).
    """
    restaurant = next((r for r in db.restaurants if r.id == restaurant_id), None)
    if restaurant is None or not restaurant.available:
        raise BookingRequestError("RESTAURANT_UNAVAILABLE", restaurant_id)

    resolved: list[tuple[MenuItem, int]] = []
    subtotal = 0.0
    for line in lines:
        item = find_menu_item(db, restaurant_id, line.menu_item_id, line.name)
        if item is None:
            raise BookingRequestError("MENU_ITEM_NOT_FOUND", line.menu_item_id or line.name)
        if item.restaurant_id != restaurant_id:
            raise BookingRequestError("MIXED_RESTAURANTS_NOT_ALLOWED")
        if not item.available:
            raise BookingRequestError("ITEM_UNAVAILABLE", item.name)
        if line.quantity > item.max_per_order:
            raise BookingRequestError("MAX_PER_ORDER_EXCEEDED", f"{item.name}: max {item.max_per_order}")
        if line.quantity > item.stock:
            raise BookingRequestError("OUT_OF_STOCK", item.name)
        subtotal += item.price * line.quantity
        resolved.append((item, line.quantity))

    subtotal = round2(subtotal)
    if subtotal < restaurant.minimum_order:
        raise BookingRequestError("MIN_ORDER_NOT_MET", f"minimum order is {restaurant.minimum_order}")
    return subtotal, resolved


def quote_food(db: Database, restaurant_id: str, lines: Iterable[Any], coupon: str | None = None) -> dict[str, Any]:
    subtotal, resolved = price_food_lines(db, restaurant_id, lines)
    discount = apply_coupon(db, coupon, "food", subtotal)
    gst_rate = db.settings.tax_rules.food.gst
    return {
        "restaurantId": restaurant_id,
        "gstRate": gst_rate,
        "items": [{"menuItemId": m.id, "name": m.name, "quantity": q, "price": m.price} for m, q in resolved],
        "quote": _quote(subtotal, discount, gst_rate),
    }
