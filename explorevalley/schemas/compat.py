"""
ExploreValley API - Quotes, status updates, rescheduling and analytics schemas
"""
from typing import Any

from pydantic import Field

from explorevalley.schemas.base import ApiModel


class HotelQuoteRequest(ApiModel):
    hotel_id: str = Field(..., min_length=1)
    room_type: str = Field(..., min_length=1)
    check_in: str
    check_out: str
    guests: int = Field(..., ge=1)
    num_rooms: int = Field(1, ge=1)
    pricing_tier: str | None = None
    coupon: str | None = None


class TourQuoteRequest(ApiModel):
    tour_id: str = Field(..., min_length=1)
    tour_date: str
    guests: int = Field(..., ge=1)
    pricing_tier: str | None = None
    coupon: str | None = None


class RescheduleRequest(ApiModel):
    to_date: str = Field(..., min_length=10)


class StatusUpdateRequest(ApiModel):
    order_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    notes: str | None = None


class AnalyticsTrackRequest(ApiModel):
    type: str = Field(..., min_length=1, max_length=100)
    category: str = ""
    user_id: str = ""
    phone: str = ""
    email: str = ""
    meta: dict[str, Any] = Field(default_factory=dict)


class CancelRequest(ApiModel):
    """Optional body of the cancel endpoints; both fields steer the refund outcome."""

    cancel_at: str | None = None
    cancel_stage: str | None = None


class RefundRequestCreate(ApiModel):
    order_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=1000)
    phone: str | None = None
    email: str | None = None
