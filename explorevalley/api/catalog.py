"""
ExploreValley API - Public catalog reads

Tours, festivals, hotels, restaurants, menu items and site pages as the web and
mobile clients list them. Unavailable entries are hidden and vendor contact
numbers never leave the service.
"""
from fastapi import APIRouter, Query

from explorevalley.core.errors import BookingRequestError
from explorevalley.db.jsondb import read_data
from explorevalley.models.document import DocModel, Restaurant

router = APIRouter(prefix="/api", tags=["catalog"])

INTERNAL_FIELDS = {"vendor_mobile"}


def public_view(item: DocModel) -> dict:
    return item.model_dump(mode="json", by_alias=True, exclude=INTERNAL_FIELDS)


def restaurant_place(restaurant: Restaurant) -> str:
    return restaurant.location.strip() or "Unknown"


def restaurant_image(restaurant: Restaurant) -> str:
    if restaurant.hero_image:
        return restaurant.hero_image
    return restaurant.images[0] if restaurant.images else ""


@router.get("/tours")
async def list_tours():
    db = await read_data()
    return [public_view(t) for t in db.tours if t.available]


@router.get("/festivals")
async def list_festivals():
    db = await read_data()
    return [public_view(f) for f in db.festivals if f.available]


@router.get("/hotels")
async def list_hotels():
    db = await read_data()
    return [public_view(h) for h in db.hotels if h.available]


@router.get("/places")
async def list_places():
    db = await read_data()
    places = {restaurant_place(r) for r in db.restaurants if r.available}
    return ["All", *sorted(places, key=str.lower)]


@router.get("/restaurants")
async def list_restaurants(place: str | None = Query(None)):
    db = await read_data()
    wanted = (place or "").strip().lower()
    return [
        {**public_view(r), "place": restaurant_place(r), "image": restaurant_image(r)}
        for r in db.restaurants
        if r.available and (wanted in ("", "all") or restaurant_place(r).lower() == wanted)
    ]


@router.get("/menu-items")
async def list_menu_items(restaurant_id: str | None = Query(None, alias="restaurantId")):
    db = await read_data()
    return [
        {**public_view(m), "image": m.image or m.hero_image, "isAvailable": True}
        for m in db.menu_items
        if m.available and (not restaurant_id or m.restaurant_id == restaurant_id)
    ]


@router.get("/pages")
async def list_pages():
    db = await read_data()
    return db.site_pages.model_dump(mode="json", by_alias=True)


@router.get("/pages/{slug}")
async def get_page(slug: str):
    db = await read_data()
    for page in db.site_pages.model_dump(mode="json", by_alias=True).values():
        if page["slug"] == slug.strip():
            return page
    raise BookingRequestError("PAGE_NOT_FOUND", slug)
