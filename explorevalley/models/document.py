"""
ExploreValley API - Document model

The whole marketplace dataset is one aggregate ("the document"). Field names are
snake_case in Python and camelCase on the wire (JSON columns, API payloads).

[CATALOG DATA]       tours, festivals, hotels, restaurants, menu items, bus routes,
                     bike rentals, cab providers, service areas, coupons
[TRANSACTIONAL DATA] bookings, cab/bus/bike bookings, food orders, queries
[DERIVED DATA]       user profiles, behavior profiles (rebuilt on every write)
[LOG DATA]           audit log, analytics events (append-only)
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError
from pydantic.alias_generators import to_camel

from explorevalley.core.errors import DocumentValidationError

Status = Literal["pending", "confirmed", "cancelled", "completed"]


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DocModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ─── Settings ──────────────────────────────────────────────────────────────────

class TaxRuleSlab(DocModel):
    min: float = Field(..., ge=0)
    max: float | None = None
    gst: float = Field(..., ge=0, le=1)


class HotelTaxRule(DocModel):
    slabs: list[TaxRuleSlab] = Field(..., min_length=1)


class FlatTaxRule(DocModel):
    gst: float = Field(..., ge=0, le=1)
    mode: str = "DEFAULT"


def _default_tax_rules() -> "TaxRules":
    return TaxRules(
        hotel=HotelTaxRule(slabs=[
            TaxRuleSlab(min=0, max=1000, gst=0.0),
            TaxRuleSlab(min=1000.01, max=7500, gst=0.12),
            TaxRuleSlab(min=7500.01, max=None, gst=0.18),
        ]),
        tour=FlatTaxRule(gst=0.05, mode="NO_ITC"),
        food=FlatTaxRule(gst=0.05),
        cab=FlatTaxRule(gst=0.05),
    )


class TaxRules(DocModel):
    hotel: HotelTaxRule
    tour: FlatTaxRule
    food: FlatTaxRule
    cab: FlatTaxRule


class PricingTier(DocModel):
    name: str = Field(..., min_length=1)
    multiplier: float = Field(..., gt=0)


class PageSlugs(DocModel):
    affiliate_program: str = "affiliate-program"
    contact_us: str = "contact-us"
    privacy_policy: str = "privacy-policy"
    refund_policy: str = "refund-policy"
    terms_and_conditions: str = "terms-and-conditions"


class Settings(DocModel):
    currency: Literal["INR"] = "INR"
    page_slugs: PageSlugs = Field(default_factory=PageSlugs)
    tax_rules: TaxRules = Field(default_factory=_default_tax_rules)
    pricing_tiers: list[PricingTier] = Field(default_factory=lambda: [
        PricingTier(name="Economic", multiplier=0.85),
        PricingTier(name="Premium", multiplier=1.15),
        PricingTier(name="Luxury", multiplier=1.4),
    ])


class HotelCancelPolicy(DocModel):
    free_cancel_hours: int = Field(24, ge=0)
    fee_after: float = Field(0.5, ge=0, le=1)


class CabCancelPolicy(DocModel):
    free_cancel_minutes: int = Field(15, ge=0)
    fee_after: float = Field(50, ge=0)


class FoodCancelPolicy(DocModel):
    allow_cancel_minutes: int = Field(5, ge=0)
    fee_after: float = Field(20, ge=0)


class Policies(DocModel):
    hotel: HotelCancelPolicy = Field(default_factory=HotelCancelPolicy)
    tour: HotelCancelPolicy = Field(default_factory=HotelCancelPolicy)
    cab: CabCancelPolicy = Field(default_factory=CabCancelPolicy)
    food: FoodCancelPolicy = Field(default_factory=FoodCancelPolicy)


class Payments(DocModel):
    wallet_enabled: bool = False
    refund_method: Literal["original", "wallet"] = "original"
    refund_window_hours: int = Field(72, ge=0)


class SitePage(DocModel):
    title: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    content: str = ""
    updated_at: str | None = None


SITE_PAGE_DEFAULTS: dict[str, tuple[str, str]] = {
    "affiliateProgram": ("Affiliate Program", "affiliate-program"),
    "contactUs": ("Contact Us", "contact-us"),
    "privacyPolicy": ("Privacy Policy", "privacy-policy"),
    "refundPolicy": ("Refund Policy", "refund-policy"),
    "termsAndConditions": ("Terms and Conditions", "terms-and-conditions"),
}


def _page(key: str) -> SitePage:
    title, slug = SITE_PAGE_DEFAULTS[key]
    return SitePage(title=title, slug=slug)


class SitePages(DocModel):
    affiliate_program: SitePage = Field(default_factory=lambda: _page("affiliateProgram"))
    contact_us: SitePage = Field(default_factory=lambda: _page("contactUs"))
    privacy_policy: SitePage = Field(default_factory=lambda: _page("privacyPolicy"))
    refund_policy: SitePage = Field(default_factory=lambda: _page("refundPolicy"))
    terms_and_conditions: SitePage = Field(default_factory=lambda: _page("termsAndConditions"))


# ─── Catalog ───────────────────────────────────────────────────────────────────

class ImageMeta(DocModel):
    url: str
    title: str = ""
    description: str = ""


class TourAvailability(DocModel):
    closed_dates: list[str] = Field(default_factory=list)
    capacity_by_date: dict[str, int] = Field(default_factory=dict)


class Tour(DocModel):
    id: str
    title: str = Field(..., min_length=2)
    description: str = ""
    price: float = Field(..., ge=0)
    vendor_mobile: str = ""
    price_dropped: bool = False
    price_drop_percent: float = Field(0, ge=0, le=100)
    hero_image: str = ""
    duration: str = Field(..., min_length=1)
    images: list[str] = Field(default_factory=list)
    image_meta: list[ImageMeta] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    itinerary: str = ""
    inclusions: list[str] = Field(default_factory=list)
    exclusions: list[str] = Field(default_factory=list)
    max_guests: int = Field(..., gt=0)
    availability: TourAvailability = Field(default_factory=TourAvailability)
    available: bool = True
    created_at: str = ""
    updated_at: str | None = None


class Festival(DocModel):
    id: str
    title: str = Field(..., min_length=2)
    description: str = ""
    location: str = ""
    price_dropped: bool = False
    price_drop_percent: float = Field(0, ge=0, le=100)
    hero_image: str = ""
    image_meta: list[ImageMeta] = Field(default_factory=list)
    month: str = "All Season"
    date: str | None = None
    vibe: str = ""
    ticket: str = "On request"
    images: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    available: bool = True
    created_at: str | None = None
    updated_at: str | None = None


class HotelRoomType(DocModel):
    type: str
    price: float = Field(..., ge=0)
    capacity: int = Field(..., gt=0)


class HotelAvailability(DocModel):
    closed_dates: list[str] = Field(default_factory=list)
    rooms_by_type: dict[str, int] = Field(default_factory=dict)


class SeasonalPrice(DocModel):
    start: str = Field(..., alias="from")
    to: str
    multiplier: float = Field(..., gt=0)


class Hotel(DocModel):
    id: str
    name: str = Field(..., min_length=2)
    description: str = ""
    location: str = Field(..., min_length=2)
    vendor_mobile: str = ""
    price_per_night: float = Field(..., ge=0)
    price_dropped: bool = False
    price_drop_percent: float = Field(0, ge=0, le=100)
    hero_image: str = ""
    images: list[str] = Field(default_factory=list)
    image_meta: list[ImageMeta] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list)
    room_types: list[HotelRoomType] = Field(..., min_length=1)
    rating: float = Field(0, ge=0, le=5)
    reviews: int = Field(0, ge=0)
    check_in_time: str = "14:00"
    check_out_time: str = "11:00"
    availability: HotelAvailability = Field(default_factory=HotelAvailability)
    seasonal_pricing: list[SeasonalPrice] = Field(default_factory=list)
    date_overrides: dict[str, dict[str, float]] = Field(default_factory=dict)
    min_nights: int = Field(1, gt=0)
    max_nights: int = Field(30, gt=0)
    child_policy: str = "Children allowed with extra bedding charges if required."
    available: bool = True
    created_at: str = ""


class NamedPrice(DocModel):
    name: str
    price: float = Field(0, ge=0)


class RestaurantMenuEntry(DocModel):
    id: str | None = None
    name: str = Field(..., min_length=1)
    category: str = "General"
    description: str = ""
    image: str = ""
    price: float = Field(0, ge=0)
    rating: float = Field(0, ge=0, le=5)
    max_orders: int = Field(10, gt=0)
    addons: list[NamedPrice] = Field(default_factory=list)


class Restaurant(DocModel):
    id: str
    name: str = Field(..., min_length=2)
    description: str = ""
    vendor_mobile: str = ""
    cuisine: list[str] = Field(default_factory=list)
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    delivery_time: str = ""
    minimum_order: float = Field(0, ge=0)
    price_dropped: bool = False
    price_drop_percent: float = Field(0, ge=0, le=100)
    hero_image: str = ""
    images: list[str] = Field(default_factory=list)
    image_meta: list[ImageMeta] = Field(default_factory=list)
    available: bool = True
    is_veg: bool = False
    tags: list[str] = Field(default_factory=list)
    location: str = ""
    service_radius_km: float = Field(0, ge=0)
    delivery_zones: list[str] = Field(default_factory=list)
    open_hours: str = "09:00"
    closing_hours: str = "22:00"
    menu: list[RestaurantMenuEntry] = Field(default_factory=list)


class MenuItem(DocModel):
    id: str
    restaurant_id: str
    category: str = "General"
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    price_dropped: bool = False
    price_drop_percent: float = Field(0, ge=0, le=100)
    hero_image: str = ""
    image: str | None = None
    image_meta: list[ImageMeta] = Field(default_factory=list)
    available: bool = True
    is_veg: bool = False
    tags: list[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    max_per_order: int = Field(10, gt=0)
    addons: list[NamedPrice] = Field(default_factory=list)
    variants: list[NamedPrice] = Field(default_factory=list)


class BusSeat(DocModel):
    code: str = Field(..., min_length=1)
    seat_type: str = "regular"


class BusRoute(DocModel):
    id: str
    operator_name: str = Field(..., min_length=2)
    operator_code: str = ""
    from_city: str = Field(..., min_length=2)
    from_code: str = ""
    to_city: str = Field(..., min_length=2)
    to_code: str = ""
    departure_time: str = ""
    arrival_time: str = ""
    duration_text: str = ""
    bus_type: str = "Non AC"
    fare: float = Field(..., ge=0)
    total_seats: int = Field(20, gt=0)
    seat_layout: list[BusSeat] = Field(default_factory=list)
    service_dates: list[str] = Field(default_factory=list)
    seats_booked_by_date: dict[str, list[str]] = Field(default_factory=dict)
    hero_image: str = ""
    active: bool = True
    created_at: str = ""


class BikeRental(DocModel):
    id: str
    name: str = Field(..., min_length=2)
    location: str = Field(..., min_length=2)
    bike_type: str = "Scooter"
    price_per_hour: float = Field(0, ge=0)
    price_per_day: float = Field(0, ge=0)
    available_qty: int = Field(0, ge=0)
    max_days: int = Field(0, ge=0)
    security_deposit: float = Field(0, ge=0)
    helmet_included: bool = True
    vendor_mobile: str = ""
    image: str = ""
    active: bool = True
    created_at: str = ""


class CabProvider(DocModel):
    id: str
    name: str = Field(..., min_length=2)
    vehicle_type: str = Field(..., min_length=1)
    plate_number: str = Field(..., min_length=4)
    capacity: int = Field(..., gt=0)
    vendor_mobile: str = ""
    price_dropped: bool = False
    price_drop_percent: float = Field(0, ge=0, le=100)
    hero_image: str = ""
    active: bool = True
    service_area_id: str | None = None


class ServiceArea(DocModel):
    id: str
    name: str = Field(..., min_length=2)
    city: str = Field(..., min_length=2)
    enabled: bool = True


class Coupon(DocModel):
    code: str = Field(..., min_length=3)
    type: Literal["flat", "percent"]
    amount: float = Field(..., ge=0)
    min_cart: float = Field(0, ge=0)
    category: Literal["hotel", "tour", "cab", "food", "all"] = "all"
    expiry: str
    max_uses: int | None = Field(None, gt=0)


# ─── Transactions ──────────────────────────────────────────────────────────────

class TaxBreakup(DocModel):
    gst_rate: float = Field(..., ge=0, le=1)
    taxable_value: float = Field(..., ge=0)
    gst_amount: float = Field(..., ge=0)
    cgst: float = Field(..., ge=0)
    sgst: float = Field(..., ge=0)
    igst: float = Field(..., ge=0)


class Pricing(DocModel):
    base_amount: float = Field(..., ge=0)
    tax: TaxBreakup
    total_amount: float = Field(..., ge=0)


class Booking(DocModel):
    id: str
    type: Literal["hotel", "tour"]
    item_id: str
    user_name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=8)
    country_code: str = ""
    paid_amount: float | None = Field(None, ge=0)
    guests: int = Field(..., gt=0)
    check_in: str | None = None
    check_out: str | None = None
    room_type: str | None = None
    num_rooms: int = Field(1, gt=0)
    tour_date: str | None = None
    special_requests: str = ""
    pricing: Pricing
    status: Status = "pending"
    booking_date: str


class CabBooking(DocModel):
    id: str
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    pickup_location: str = Field(..., min_length=2)
    drop_location: str = Field(..., min_length=2)
    datetime: str
    passengers: int = Field(..., gt=0)
    vehicle_type: str = Field(..., min_length=1)
    estimated_fare: float = Field(..., ge=0)
    service_area_id: str | None = None
    pricing: Pricing
    status: Status = "pending"
    created_at: str


class BusBooking(DocModel):
    id: str
    route_id: str
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    from_city: str = Field(..., min_length=2)
    to_city: str = Field(..., min_length=2)
    travel_date: str
    seats: list[str] = Field(..., min_length=1)
    fare_per_seat: float = Field(..., ge=0)
    total_fare: float = Field(..., ge=0)
    status: Status = "pending"
    created_at: str


class BikeBooking(DocModel):
    id: str
    bike_rental_id: str
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    start_date_time: str
    days: int = Field(1, gt=0)
    hours: int = Field(..., gt=0)
    qty: int = Field(1, gt=0)
    total_fare: float = Field(..., ge=0)
    status: Status = "pending"
    created_at: str


class FoodOrderItem(DocModel):
    menu_item_id: str | None = None
    restaurant_id: str | None = None
    name: str
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0)


class FoodOrder(DocModel):
    id: str
    user_id: str = ""
    restaurant_id: str = ""
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    items: list[FoodOrderItem] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=5)
    special_instructions: str = ""
    pricing: Pricing
    status: Status = "pending"
    order_time: str


class CartLineItem(DocModel):
    menu_item_id: str
    restaurant_id: str = ""
    name: str
    price: float = Field(0, ge=0)
    quantity: int = Field(..., ge=0)
    is_veg: bool = False
    added_at: str = ""


class Cart(DocModel):
    id: str
    user_id: str = ""
    phone: str = ""
    email: str = ""
    restaurant_id: str = ""
    items: list[CartLineItem] = Field(default_factory=list)
    updated_at: str


class Query(DocModel):
    id: str
    user_name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=8)
    subject: str = Field(..., min_length=2)
    message: str = Field(..., min_length=5)
    status: Literal["pending", "resolved", "spam"] = "pending"
    submitted_at: str
    responded_at: str | None = None
    response: str | None = None


class AuditLogEntry(DocModel):
    id: str
    at: str
    admin_chat_id: int | None = None
    action: str
    entity: str | None = None
    entity_id: str | None = None
    meta: dict[str, Any] | None = None


# ─── Profiles & analytics ──────────────────────────────────────────────────────

class UserOrderRef(DocModel):
    type: Literal["booking", "cab", "food", "query"]
    id: str
    status: str = "pending"
    at: str = ""
    amount: float = Field(0, ge=0)


class UserProfile(DocModel):
    id: str
    phone: str
    name: str = ""
    email: str = ""
    ip_address: str = ""
    browser: str = ""
    created_at: str
    updated_at: str
    orders: list[UserOrderRef] = Field(default_factory=list)


class UserBehaviorProfile(DocModel):
    """Section payloads keep their stored camelCase keys."""

    id: str
    user_id: str
    phone: str = ""
    name: str = ""
    email: str = ""
    core_identity: dict[str, Any] = Field(default_factory=dict)
    device_fingerprinting: dict[str, Any] = Field(default_factory=dict)
    location_mobility: dict[str, Any] = Field(default_factory=dict)
    behavioral_analytics: dict[str, Any] = Field(default_factory=dict)
    transaction_payment: dict[str, Any] = Field(default_factory=dict)
    preference_personalization: dict[str, Any] = Field(default_factory=dict)
    ratings_reviews_feedback: dict[str, Any] = Field(default_factory=dict)
    marketing_attribution: dict[str, Any] = Field(default_factory=dict)
    trust_safety_fraud: dict[str, Any] = Field(default_factory=dict)
    derived_inferred: dict[str, Any] = Field(default_factory=dict)
    orders: list[UserOrderRef] = Field(default_factory=list)
    created_at: str
    updated_at: str


class AnalyticsEvent(DocModel):
    id: str
    type: str
    category: str = ""
    user_id: str = ""
    phone: str = ""
    email: str = ""
    at: str
    meta: dict[str, Any] = Field(default_factory=dict)


# ─── Aggregate root ────────────────────────────────────────────────────────────

class Database(DocModel):
    settings: Settings = Field(default_factory=Settings)
    tours: list[Tour] = Field(default_factory=list)
    festivals: list[Festival] = Field(default_factory=list)
    hotels: list[Hotel] = Field(default_factory=list)
    restaurants: list[Restaurant] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    cab_bookings: list[CabBooking] = Field(default_factory=list)
    bus_routes: list[BusRoute] = Field(default_factory=list)
    bus_bookings: list[BusBooking] = Field(default_factory=list)
    bike_rentals: list[BikeRental] = Field(default_factory=list)
    bike_bookings: list[BikeBooking] = Field(default_factory=list)
    food_orders: list[FoodOrder] = Field(default_factory=list)
    carts: list[Cart] = Field(default_factory=list)
    queries: list[Query] = Field(default_factory=list)
    menu_items: list[MenuItem] = Field(default_factory=list)
    audit_log: list[AuditLogEntry] = Field(default_factory=list)
    cab_providers: list[CabProvider] = Field(default_factory=list)
    service_areas: list[ServiceArea] = Field(default_factory=list)
    coupons: list[Coupon] = Field(default_factory=list)
    policies: Policies = Field(default_factory=Policies)
    payments: Payments = Field(default_factory=Payments)
    user_profiles: list[UserProfile] = Field(default_factory=list)
    user_behavior_profiles: list[UserBehaviorProfile] = Field(default_factory=list)
    analytics_events: list[AnalyticsEvent] = Field(default_factory=list)
    site_pages: SitePages = Field(default_factory=SitePages)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def clone(self) -> "Database":
        """Structurally independent copy (no shared lists or nested models)."""
        return Database.model_validate(self.to_document())

    def audit(self, action: str, entity: str, entity_id: str, at: str, meta: dict | None = None) -> None:
        self.audit_log.append(AuditLogEntry(
            id=make_id("audit"), at=at, action=action, entity=entity, entity_id=entity_id, meta=meta,
        ))


def validate_document(data: "Database | dict[str, Any]") -> Database:
    """Run the canonical schema over a document; raises DocumentValidationError."""
    raw = data.to_document() if isinstance(data, Database) else data
    try:
        return Database.model_validate(raw)
    except ValidationError as exc:
        raise DocumentValidationError(str(exc)) from exc
