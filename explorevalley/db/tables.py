"""
ExploreValley API - Relational table mapping

One TableSpec per persisted table. Rows use snake_case columns; the document
uses camelCase keys. JSON columns keep their camelCase payloads untouched.

WRITE_ORDER is the fixed sequence persistence walks, grouped as
singletons -> catalog -> transactions -> profiles -> logs.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic.alias_generators import to_camel, to_snake

from explorevalley.core.config import get_settings
from explorevalley.models.document import SITE_PAGE_DEFAULTS, Database

settings = get_settings()
logger = logging.getLogger(__name__)

PRICE_DROP_COLUMNS = ("price_dropped", "price_drop_percent", "image_meta", "hero_image", "vendor_mobile")
SINGLETON_ID = "main"


@dataclass(frozen=True)
class TableSpec:
    name: str
    collection: str | None = None
    conflict_key: str = "id"
    order_by: str = "id"  # comma-separated columns, last one unique
    json_columns: dict[str, Callable[[], Any]] = field(default_factory=dict)
    optional_columns: tuple[str, ...] = ()
    optional_table: bool = False
    append_only: bool = False
    replace: bool = False
    singleton: bool = False
    clearable: bool = False  # removed rows are deleted even when none remain

    @property
    def table(self) -> str:
        return f"{settings.TABLE_PREFIX}{self.name}"

    def to_document(self, row: dict[str, Any]) -> dict[str, Any]:
        """Row -> document item: JSON columns decoded, NULLs dropped so model defaults apply."""
        out: dict[str, Any] = {}
        for column, value in row.items():
            if column in self.json_columns:
                value = decode_json(value, self.json_columns[column])
            if value is None:
                continue
            out[to_camel(column)] = value
        if self.singleton:
            out.pop("id", None)
        return out

    def to_row(self, item: dict[str, Any]) -> dict[str, Any]:
        row = {to_snake(key): value for key, value in item.items()}
        if self.singleton:
            row["id"] = SINGLETON_ID
        return row


def decode_json(value: Any, empty: Callable[[], Any]) -> Any:
    """Accepts an already-decoded value or a JSON string; anything else becomes `empty()`."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Undecodable JSON column value %.60r; using empty default", value)
            return empty()
        # Double-encoded payloads ("\"[...]\"") decode once more.
        if isinstance(value, str):
            return decode_json(value, empty)
    expected = type(empty())
    if not isinstance(value, expected):
        return empty()
    return value


# ── Table declarations ─────────────────────────────────────────────────────────

TABLES: dict[str, TableSpec] = {t.name: t for t in (
    # singletons
    TableSpec("settings", "settings", singleton=True,
              json_columns={"tax_rules": dict, "pricing_tiers": list, "page_slugs": dict}),
    TableSpec("policies", "policies", singleton=True,
              json_columns={"hotel": dict, "tour": dict, "cab": dict, "food": dict}),
    TableSpec("payments", "payments", singleton=True),
    TableSpec("site_pages", "site_pages", conflict_key="slug", order_by="slug", optional_table=True),
    # catalog
    TableSpec("tours", "tours", optional_columns=PRICE_DROP_COLUMNS, json_columns={
        "images": list, "image_meta": list, "highlights": list, "inclusions": list,
        "exclusions": list, "availability": dict,
    }),
    TableSpec("festivals", "festivals", optional_columns=PRICE_DROP_COLUMNS, optional_table=True,
              json_columns={"images": list, "image_meta": list, "highlights": list}),
    TableSpec("hotels", "hotels", optional_columns=PRICE_DROP_COLUMNS, json_columns={
        "images": list, "image_meta": list, "amenities": list, "room_types": list,
        "availability": dict, "seasonal_pricing": list, "date_overrides": dict,
    }),
    TableSpec("restaurants", "restaurants", optional_columns=PRICE_DROP_COLUMNS + ("menu",), json_columns={
        "cuisine": list, "images": list, "image_meta": list, "tags": list,
        "delivery_zones": list, "menu": list,
    }),
    TableSpec("vendor_menus", None, conflict_key="restaurant_id", order_by="restaurant_id",
              optional_table=True, replace=True, json_columns={"menu": list}),
    TableSpec("menu_items", "menu_items", optional_columns=PRICE_DROP_COLUMNS, json_columns={
        "image_meta": list, "tags": list, "addons": list, "variants": list,
    }),
    TableSpec("bus_routes", "bus_routes", optional_table=True, json_columns={
        "seat_layout": list, "service_dates": list, "seats_booked_by_date": dict,
    }),
    TableSpec("bike_rentals", "bike_rentals", optional_table=True),
    TableSpec("cab_providers", "cab_providers", optional_columns=PRICE_DROP_COLUMNS),
    TableSpec("service_areas", "service_areas"),
    TableSpec("coupons", "coupons", conflict_key="code", order_by="code"),
    # transactions
    TableSpec("bookings", "bookings", optional_columns=("country_code", "paid_amount"),
              json_columns={"pricing": dict}),
    TableSpec("cab_bookings", "cab_bookings", json_columns={"pricing": dict}),
    TableSpec("bus_bookings", "bus_bookings", optional_table=True, json_columns={"seats": list}),
    TableSpec("bike_bookings", "bike_bookings", optional_table=True),
    TableSpec("food_orders", "food_orders", optional_columns=("user_id", "restaurant_id"),
              json_columns={"items": list, "pricing": dict}),
    TableSpec("carts", "carts", optional_table=True, clearable=True, json_columns={"items": list}),
    TableSpec("queries", "queries"),
    # profiles
    TableSpec("user_profiles", "user_profiles", optional_columns=("ip_address", "browser"),
              json_columns={"orders": list}),
    TableSpec("user_behavior_profiles", "user_behavior_profiles", optional_table=True, json_columns={
        "core_identity": dict, "device_fingerprinting": dict, "location_mobility": dict,
        "behavioral_analytics": dict, "transaction_payment": dict, "preference_personalization": dict,
        "ratings_reviews_feedback": dict, "marketing_attribution": dict, "trust_safety_fraud": dict,
        "derived_inferred": dict, "orders": list,
    }),
    # logs
    TableSpec("analytics_events", "analytics_events", optional_table=True, append_only=True,
              order_by="at,id", json_columns={"meta": dict}),
    TableSpec("audit_log", "audit_log", append_only=True, order_by="at,id", json_columns={"meta": dict}),
)}

WRITE_ORDER: tuple[str, ...] = (
    "settings", "policies", "payments", "site_pages",
    "tours", "festivals", "hotels", "restaurants", "vendor_menus", "menu_items",
    "bus_routes", "bike_rentals", "cab_providers", "service_areas", "coupons",
    "bookings", "cab_bookings", "bus_bookings", "bike_bookings", "food_orders", "carts", "queries",
    "user_profiles", "user_behavior_profiles",
    "analytics_events", "audit_log",
)

# ── Rows -> document ───────────────────────────────────────────────────────────

def _menu_from_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "id": m.get("id"),
            "name": m.get("name") or "",
            "category": m.get("category") or "General",
            "description": m.get("description") or "",
            "image": m.get("image") or m.get("heroImage") or "",
            "price": m.get("price") or 0,
            "maxOrders": m.get("maxPerOrder") or 10,
            "addons": m.get("addons") or [],
        }
        for m in items
    ]


def attach_menus(
    restaurants: list[dict[str, Any]],
    vendor_menus: dict[str, list[dict[str, Any]]],
    menu_items: list[dict[str, Any]],
) -> None:
    """Menu precedence: vendor menu table, then inline column, then flat menu items."""
    by_restaurant: dict[str, list[dict[str, Any]]] = {}
    for item in menu_items:
        by_restaurant.setdefault(item.get("restaurantId", ""), []).append(item)
    for r in restaurants:
        vendor = vendor_menus.get(r.get("id"))
        if vendor:
            r["menu"] = vendor
        elif not r.get("menu"):
            r["menu"] = _menu_from_items(by_restaurant.get(r.get("id"), []))


def _site_pages_document(rows: list[dict[str, Any]]) -> dict[str, Any]:
    by_slug = {slug: key for key, (_, slug) in SITE_PAGE_DEFAULTS.items()}
    pages: dict[str, Any] = {}
    for row in rows:
        key = row.get("page_key") or by_slug.get(row.get("slug", ""))
        if not key:
            logger.warning("Site page row with unknown slug %r ignored", row.get("slug"))
            continue
        pages[key] = {
            "title": row.get("title") or SITE_PAGE_DEFAULTS.get(key, (key, ""))[0],
            "slug": row.get("slug"),
            "content": row.get("content") or "",
            "updatedAt": row.get("updated_at"),
        }
    return pages


def rows_to_document(rows_by_table: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    """Reshape raw rows of every table into the camelCase document."""
    doc: dict[str, Any] = {}
    for name, spec in TABLES.items():
        rows = rows_by_table.get(name, [])
        if name == "site_pages":
            doc["sitePages"] = _site_pages_document(rows)
        elif name == "vendor_menus":
            continue
        elif spec.singleton:
            main = next((r for r in rows if r.get("id") == SINGLETON_ID), rows[0] if rows else None)
            doc[to_camel(spec.collection)] = spec.to_document(main) if main else {}
        else:
            doc[to_camel(spec.collection)] = [spec.to_document(r) for r in rows]

    vendor_menus = {
        r["restaurant_id"]: decode_json(r.get("menu"), list)
        for r in rows_by_table.get("vendor_menus", []) if r.get("restaurant_id")
    }
    attach_menus(doc.get("restaurants", []), vendor_menus, doc.get("menuItems", []))
    return doc


# ── Document -> rows ───────────────────────────────────────────────────────────

def document_to_rows(db: Database) -> dict[str, list[dict[str, Any]]]:
    doc = db.to_document()
    out: dict[str, list[dict[str, Any]]] = {}
    for name in WRITE_ORDER:
        spec = TABLES[name]
        if name == "site_pages":
            out[name] = [
                {"slug": page["slug"], "page_key": key, "title": page["title"],
                 "content": page["content"], "updated_at": page.get("updatedAt")}
                for key, page in doc["sitePages"].items()
            ]
        elif name == "vendor_menus":
            out[name] = [{"restaurant_id": r["id"], "menu": r.get("menu", [])} for r in doc["restaurants"]]
        elif spec.singleton:
            out[name] = [spec.to_row(doc[to_camel(spec.collection)])]
        else:
            out[name] = [spec.to_row(item) for item in doc[to_camel(spec.collection)]]
    return out


def row_key(spec: TableSpec, row: dict[str, Any]) -> str:
    return str(row.get(spec.conflict_key, ""))
