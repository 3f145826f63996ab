"""
ExploreValley API - Food order request schemas
"""
from pydantic import Field, model_validator

from explorevalley.schemas.base import ApiModel


class FoodOrderLine(ApiModel):
    menu_item_id: str | None = None
    name: str | None = None
    quantity: int = Field(..., ge=1, le=50)

    @model_validator(mode="after")
    def _needs_reference(self):
        if not self.menu_item_id and not (self.name or "").strip():
            raise ValueError("each item needs menuItemId or name")
        return self


class FoodOrderCreate(ApiModel):
    restaurant_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=8)
    delivery_address: str = Field(..., min_length=5)
    special_instructions: str = Field("", max_length=500)
    items: list[FoodOrderLine] = Field(..., min_length=1, max_length=30)
    coupon: str | None = None
    confirm: bool = False


class FoodQuoteRequest(ApiModel):
    restaurant_id: str = Field(..., min_length=1)
    items: list[FoodOrderLine] = Field(..., min_length=1, max_length=30)
    coupon: str | None = None
