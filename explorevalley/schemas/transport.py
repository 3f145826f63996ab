"""
ExploreValley API - Bus and bike request schemas
"""
from pydantic import Field

from explorevalley.schemas.base import ApiModel


class BusBookRequest(ApiModel):
    route_id: str = Field(..., min_length=1)
    journey_date: str = Field(..., min_length=10, examples=["2026-05-01"])
    seats: list[str] = Field(..., min_length=1, max_length=10)
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)


class BikeBookRequest(ApiModel):
    bike_rental_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    start_date_time: str = Field(..., min_length=10)
    days: int = Field(1, ge=1)
    qty: int = Field(1, ge=1, le=10)
