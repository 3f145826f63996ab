"""
ExploreValley API - Cart schemas
"""
from pydantic import Field

from explorevalley.schemas.base import ApiModel


class CartLine(ApiModel):
    menu_item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=0)


class CartUpdate(ApiModel):
    phone: str | None = None
    email: str | None = None
    restaurant_id: str | None = None
    items: list[CartLine] = Field(default_factory=list)
