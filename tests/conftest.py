"""
ExploreValley test fixtures

FakePostgrest answers the handful of PostgREST calls the store client makes
(paged select, upsert / insert-ignore, `in.(...)` delete) from in-memory
tables, served through httpx.MockTransport. FakeRedis covers the commands the
backup throttle and idempotency middleware use.
"""
import copy
import json
from typing import Any

import httpx
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from explorevalley.core.redis_client import set_redis
from explorevalley.db.supabase import SupabaseClient, set_store_client
from explorevalley.models.document import Database

REST_URL = "http://store.test/rest/v1"
PREFIX = "ev_"


# ─── Fakes ─────────────────────────────────────────────────────────────────────

class FakePostgrest:
    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.missing_tables: set[str] = set()
        self.missing_columns: dict[str, set[str]] = {}
        self.failing_writes: set[str] = set()
        self.requests: list[tuple[str, str]] = []
        self.orders: dict[str, str] = {}

    def seed(self, rows_by_table: dict[str, list[dict[str, Any]]]) -> None:
        for name, rows in rows_by_table.items():
            self.tables[PREFIX + name] = copy.deepcopy(rows)

    def rows(self, name: str) -> list[dict[str, Any]]:
        return self.tables.get(PREFIX + name, [])

    def writes(self, name: str | None = None) -> list[tuple[str, str]]:
        return [
            (method, table) for method, table in self.requests
            if method in ("POST", "DELETE") and (name is None or table == PREFIX + name)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        table = request.url.path.rsplit("/", 1)[-1]
        self.requests.append((request.method, table))
        if table in self.missing_tables:
            return httpx.Response(404, json={
                "code": "PGRST205",
                "message": f"Could not find the table 'public.{table}' in the schema cache",
            })
        if request.method == "GET":
            return self._select(table, request)
        if table in self.failing_writes:
            return httpx.Response(500, json={"code": "XX000", "message": "write rejected"})
        if request.method == "POST":
            return self._write(table, request)
        if request.method == "DELETE":
            return self._delete(table, request)
        return httpx.Response(405)

    def _select(self, table: str, request: httpx.Request) -> httpx.Response:
        rows = list(self.tables.get(table, []))
        order = request.url.params.get("order")
        if order:
            self.orders[table] = order
            columns = [part.split(".")[0] for part in order.split(",")]
            rows.sort(key=lambda r: tuple(str(r.get(c) or "") for c in columns))
        if "limit" in request.url.params:
            rows = rows[: int(request.url.params["limit"])]
        if "Range" in request.headers:
            start, end = (int(x) for x in request.headers["Range"].split("-"))
            rows = rows[start:end + 1]
        return httpx.Response(200, json=rows)

    def _write(self, table: str, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        missing = self.missing_columns.get(table, set())
        for row in payload:
            for column in row:
                if column in missing:
                    return httpx.Response(400, json={
                        "code": "PGRST204",
                        "message": f"Could not find the '{column}' column of '{table}' in the schema cache",
                    })
        key = request.url.params.get("on_conflict", "id")
        ignore = "ignore-duplicates" in request.headers.get("Prefer", "")
        stored = self.tables.setdefault(table, [])
        for row in payload:
            existing = next((r for r in stored if r.get(key) == row.get(key)), None)
            if existing is None:
                stored.append(row)
            elif not ignore:
                existing.update(row)
        return httpx.Response(201)

    def _delete(self, table: str, request: httpx.Request) -> httpx.Response:
        (column, expr), = request.url.params.multi_items()
        assert expr.startswith("in.("), expr
        keys = {k.strip().strip('"') for k in expr[4:-1].split(",")}
        self.tables[table] = [r for r in self.tables.get(table, []) if str(r.get(column)) not in keys]
        return httpx.Response(204)


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.down = False

    def _check(self):
        if self.down:
            raise RedisConnectionError("redis is down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, nx=False, ex=None):
        self._check()
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


# ─── Seed data ─────────────────────────────────────────────────────────────────

def _pricing(base: float, rate: float) -> dict[str, Any]:
    gst = round(base * rate, 2)
    return {
        "baseAmount": base,
        "tax": {"gstRate": rate, "taxableValue": base, "gstAmount": gst,
                "cgst": round(gst / 2, 2), "sgst": round(gst / 2, 2), "igst": 0},
        "totalAmount": round(base + gst, 2),
    }


def seed_rows() -> dict[str, list[dict[str, Any]]]:
    return {
        "settings": [{"id": "main", "currency": "INR"}],
        "policies": [{"id": "main"}],
        "payments": [{"id": "main"}],
        "tours": [{
            "id": "tour_t1", "title": "Valley Trek", "price": 1000, "duration": "1 day",
            "max_guests": 10, "available": True, "created_at": "2026-01-01T00:00:00Z",
            "availability": {"closedDates": ["2026-06-15"], "capacityByDate": {"2026-06-10": 4}},
        }],
        "hotels": [{
            "id": "hotel_h1", "name": "Pine Lodge", "location": "Manali", "price_per_night": 2000,
            "room_types": [
                {"type": "deluxe", "price": 2000, "capacity": 2},
                {"type": "suite", "price": 8000, "capacity": 4},
            ],
            "availability": {"closedDates": ["2026-07-10"], "roomsByType": {"deluxe": 2}},
            "min_nights": 1, "max_nights": 10, "available": True,
        }],
        "restaurants": [{"id": "rest_r1", "name": "Valley Kitchen", "minimum_order": 100, "available": True}],
        "menu_items": [
            {"id": "menu_m1", "restaurant_id": "rest_r1", "name": "Momos", "price": 120,
             "stock": 5, "max_per_order": 10, "available": True},
            {"id": "menu_m2", "restaurant_id": "rest_r1", "name": "Thukpa", "price": 150,
             "stock": 1, "max_per_order": 10, "available": True},
        ],
        "bus_routes": [{
            "id": "route_1", "operator_name": "Valley Travels", "from_city": "Manali", "to_city": "Kullu",
            "fare": 300, "total_seats": 6, "service_dates": ["2026-05-01"],
            "seats_booked_by_date": {"2026-05-01": ["1A"]},
        }],
        "bike_rentals": [{
            "id": "bike_b1", "name": "Activa", "location": "Manali", "price_per_day": 500,
            "available_qty": 2, "max_days": 5,
        }],
        "service_areas": [
            {"id": "area_1", "name": "Manali Town", "city": "Manali", "enabled": True},
            {"id": "area_2", "name": "Old Manali", "city": "Manali", "enabled": False},
        ],
        "coupons": [{"code": "SAVE10", "type": "percent", "amount": 10, "min_cart": 500,
                     "category": "all", "expiry": "2099-12-31"}],
        "bookings": [
            {"id": "book_tour_1", "type": "tour", "item_id": "tour_t1", "user_name": "Asha Verma",
             "email": "asha@example.com", "phone": "9876543210", "guests": 3, "tour_date": "2026-06-10",
             "pricing": _pricing(3000, 0.05), "status": "confirmed", "booking_date": "2026-01-10T10:00:00Z"},
            {"id": "book_hotel_1", "type": "hotel", "item_id": "hotel_h1", "user_name": "Asha Verma",
             "email": "asha@example.com", "phone": "9876543210", "guests": 2, "room_type": "deluxe",
             "num_rooms": 1, "check_in": "2026-07-01", "check_out": "2026-07-03",
             "pricing": _pricing(4000, 0.12), "status": "confirmed", "booking_date": "2026-01-11T10:00:00Z"},
        ],
        "cab_bookings": [],
        "food_orders": [],
        "queries": [],
        "user_profiles": [],
        "audit_log": [],
    }


def make_db(**overrides) -> Database:
    """Database built from the seed rows' shapes, for pure-function tests."""
    from explorevalley.db.tables import rows_to_document

    rows = seed_rows()
    rows.update(overrides)
    return Database.model_validate(rows_to_document(rows))


# ─── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_store():
    store = FakePostgrest()
    store.seed(seed_rows())
    return store


@pytest_asyncio.fixture
async def store_client(fake_store):
    client = SupabaseClient(REST_URL, "test-key", page_size=50, transport=httpx.MockTransport(fake_store.handler))
    set_store_client(client)
    yield client
    set_store_client(None)
    await client.aclose()


@pytest.fixture
def fake_redis():
    client = FakeRedis()
    set_redis(client)
    yield client
    set_redis(None)


@pytest.fixture
def db():
    return make_db()


@pytest.fixture
def build_db():
    return make_db


@pytest.fixture
def seed():
    return seed_rows()
