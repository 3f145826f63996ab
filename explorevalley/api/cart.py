"""
ExploreValley API - Food cart

One cart per customer, keyed by phone (or email), holding items of a single
restaurant. Posting the full item list replaces the cart; an empty list or a
DELETE removes it.
"""
from fastapi import APIRouter, Query

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import mutate_data, read_data
from explorevalley.models.document import Cart, CartLineItem, Database, make_id, utc_now
from explorevalley.schemas.cart import CartLine, CartUpdate
from explorevalley.services.pricing import round2
from explorevalley.services.user_profiles import normalize_phone, user_id_from_phone

router = APIRouter(prefix="/api/cart", tags=["cart"])

MAX_CART_ITEMS = 100
MAX_PER_ITEM = 50


def cart_key(phone: str | None, email: str | None) -> tuple[str, str]:
    key = (normalize_phone(phone), (email or "").strip().lower())
    if not any(key):
        raise BookingRequestError("PROFILE_REQUIRED", "phone or email is required")
    return key


def find_cart(db: Database, phone: str, email: str) -> int | None:
    for i, cart in enumerate(db.carts):
        if phone and normalize_phone(cart.phone) == phone:
            return i
        if email and cart.email.strip().lower() == email:
            return i
    return None


def normalize_lines(db: Database, lines: list[CartLine], restaurant_id: str | None, now: str):
    """Merge repeated items (last quantity wins), drop zero quantities, enforce one restaurant."""
    menu = {m.id: m for m in db.menu_items}
    restaurant_id = (restaurant_id or "").strip()
    merged: dict[str, CartLineItem] = {}
    for line in lines:
        item = menu.get(line.menu_item_id.strip())
        if item is None:
            raise BookingRequestError("MENU_ITEM_NOT_FOUND", line.menu_item_id)
        if restaurant_id and item.restaurant_id != restaurant_id:
            raise BookingRequestError("MIXED_RESTAURANTS_NOT_ALLOWED", item.restaurant_id)
        restaurant_id = item.restaurant_id
        quantity = min(line.quantity, MAX_PER_ITEM)
        if not quantity:
            merged.pop(item.id, None)
            continue
        merged[item.id] = CartLineItem(
            menu_item_id=item.id, restaurant_id=item.restaurant_id, name=item.name,
            price=item.price, quantity=quantity, is_veg=item.is_veg, added_at=now,
        )
    if len(merged) > MAX_CART_ITEMS:
        raise BookingRequestError("MAX_CART_ITEMS_EXCEEDED", f"{len(merged)} > {MAX_CART_ITEMS}")
    return restaurant_id, list(merged.values())


def present_cart(db: Database, cart: Cart | None) -> dict:
    if cart is None:
        return {"id": "", "restaurantId": "", "restaurantName": "", "updatedAt": None,
                "items": [], "itemCount": 0, "subtotal": 0}
    menu = {m.id: m for m in db.menu_items}
    restaurant = next((r for r in db.restaurants if r.id == cart.restaurant_id), None)
    items = []
    for line in cart.items:
        current = menu.get(line.menu_item_id)
        price = current.price if current else line.price
        items.append({
            "menuItemId": line.menu_item_id,
            "name": current.name if current else line.name,
            "price": price,
            "quantity": line.quantity,
            "isVeg": current.is_veg if current else line.is_veg,
            "lineTotal": round2(price * line.quantity),
        })
    return {
        "id": cart.id,
        "restaurantId": cart.restaurant_id,
        "restaurantName": restaurant.name if restaurant else cart.restaurant_id,
        "updatedAt": cart.updated_at,
        "items": items,
        "itemCount": sum(i["quantity"] for i in items),
        "subtotal": round2(sum(i["lineTotal"] for i in items)),
    }


@router.get("")
async def get_cart(phone: str | None = Query(None), email: str | None = Query(None)):
    key = cart_key(phone, email)
    db = await read_data()
    index = find_cart(db, *key)
    return {"cart": present_cart(db, db.carts[index] if index is not None else None)}


@router.post("")
async def update_cart(payload: CartUpdate):
    key = cart_key(payload.phone, payload.email)
    saved: dict = {}

    def mutator(db: Database) -> None:
        now = utc_now()
        restaurant_id, items = normalize_lines(db, payload.items, payload.restaurant_id, now)
        index = find_cart(db, *key)
        if not items:
            if index is not None:
                db.carts.pop(index)
            return
        if index is None:
            phone, email = key
            db.carts.append(Cart(
                id=make_id("cart"), user_id=user_id_from_phone(phone) if phone else email,
                phone=phone, email=email, updated_at=now,
            ))
            index = len(db.carts) - 1
        cart = db.carts[index]
        cart.restaurant_id = restaurant_id
        cart.items = items
        cart.updated_at = now
        saved["id"] = cart.id

    db = await mutate_data(mutator, label="cart_update")
    cart = next((c for c in db.carts if c.id == saved.get("id")), None)
    return {"cart": present_cart(db, cart)}


@router.delete("")
async def clear_cart(phone: str | None = Query(None), email: str | None = Query(None)):
    key = cart_key(phone, email)

    def mutator(db: Database) -> None:
        index = find_cart(db, *key)
        if index is not None:
            db.carts.pop(index)

    db = await mutate_data(mutator, label="cart_clear")
    return {"cart": present_cart(db, None)}
