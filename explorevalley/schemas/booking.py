"""
ExploreValley API - Booking, cab and query request schemas
"""
from typing import Literal

from pydantic import EmailStr, Field

from explorevalley.schemas.base import ApiModel


class BookingCreate(ApiModel):
    type: Literal["hotel", "tour"]
    item_id: str = Field(..., min_length=1, examples=["hotel_h1"])
    user_name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=8)
    country_code: str = ""
    guests: int = Field(..., ge=1)
    check_in: str | None = Field(None, examples=["2026-03-10"])
    check_out: str | None = Field(None, examples=["2026-03-12"])
    room_type: str | None = None
    num_rooms: int = Field(1, ge=1)
    tour_date: str | None = None
    special_requests: str = Field("", max_length=1000)
    pricing_tier: str | None = None
    coupon: str | None = None


class CabBookingCreate(ApiModel):
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    pickup_location: str = Field(..., min_length=2)
    drop_location: str = Field(..., min_length=2)
    datetime: str
    passengers: int = Field(..., ge=1)
    vehicle_type: str = Field(..., min_length=1)
    estimated_fare: float = Field(..., ge=0)
    service_area_id: str | None = None


class QueryCreate(ApiModel):
    user_name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=8)
    subject: str = Field(..., min_length=2)
    message: str = Field(..., min_length=5, max_length=5000)


class CreatedResponse(ApiModel):
    success: bool = True
    id: str
    status: str
    total_amount: float | None = None
