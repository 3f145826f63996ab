"""
ExploreValley API - Food orders

An order is priced against the live menu and stored as `pending`, or as
`confirmed` when the client asks for it. Stock is only consumed by confirmed
orders, and that happens in the operational rules engine, not here.
"""
import logging

from fastapi import APIRouter, status

from explorevalley.db.jsondb import mutate_data
from explorevalley.models.document import Database, FoodOrder, FoodOrderItem, Pricing, make_id, utc_now
from explorevalley.schemas.booking import CreatedResponse
from explorevalley.schemas.food import FoodOrderCreate
from explorevalley.services.pricing import compute_gst, quote_food
from explorevalley.services.user_profiles import user_id_from_phone

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["food"])


def build_food_order(db: Database, payload: FoodOrderCreate, now: str) -> FoodOrder:
    quoted = quote_food(db, payload.restaurant_id, payload.items, payload.coupon)
    q = quoted["quote"]
    return FoodOrder(
        id=make_id("food"),
        user_id=user_id_from_phone(payload.phone),
        restaurant_id=payload.restaurant_id,
        user_name=payload.user_name,
        phone=payload.phone,
        items=[
            FoodOrderItem(
                menu_item_id=line["menuItemId"], restaurant_id=payload.restaurant_id,
                name=line["name"], quantity=line["quantity"], price=line["price"],
            )
            for line in quoted["items"]
        ],
        delivery_address=payload.delivery_address,
        special_instructions=payload.special_instructions,
        pricing=Pricing(
            base_amount=q["baseAmount"],
            tax=compute_gst(q["baseAmount"], quoted["gstRate"]),
            total_amount=q["totalAmount"],
        ),
        status="confirmed" if payload.confirm else "pending",
        order_time=now,
    )


@router.post("/food-orders", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_food_order(payload: FoodOrderCreate):
    created: list[FoodOrder] = []

    def mutator(db: Database) -> None:
        now = utc_now()
        order = build_food_order(db, payload, now)
        db.food_orders.append(order)
        db.audit("CREATE_FOOD", "food", order.id, now, {"restaurantId": order.restaurant_id})
        created.append(order)

    await mutate_data(mutator, label="food")
    order = created[0]
    logger.info("Food order %s stored as %s", order.id, order.status)
    return CreatedResponse(id=order.id, status=order.status, total_amount=order.pricing.total_amount)
