"""
Row <-> document reshaping.
"""
import json

from explorevalley.db.tables import (
    TABLES,
    WRITE_ORDER,
    attach_menus,
    decode_json,
    document_to_rows,
    rows_to_document,
)
from explorevalley.models.document import validate_document


def test_decode_json_handles_strings_and_double_encoding():
    assert decode_json('["a"]', list) == ["a"]
    assert decode_json(json.dumps(json.dumps({"k": 1})), dict) == {"k": 1}
    assert decode_json("{broken", list) == []
    assert decode_json({"wrong": "shape"}, list) == []
    assert decode_json(["ok"], list) == ["ok"]


def test_write_order_groups_logs_last():
    assert WRITE_ORDER[0] == "settings"
    assert WRITE_ORDER[-2:] == ("analytics_events", "audit_log")
    assert WRITE_ORDER.index("bookings") > WRITE_ORDER.index("tours")


def test_rows_become_camel_case_document(seed):
    seed["tours"][0]["availability"] = json.dumps(seed["tours"][0]["availability"])
    seed["tours"][0]["hero_image"] = None
    doc = rows_to_document(seed)
    tour = doc["tours"][0]
    assert tour["maxGuests"] == 10
    assert tour["availability"]["capacityByDate"] == {"2026-06-10": 4}
    assert "heroImage" not in tour
    assert doc["settings"] == {"currency": "INR"}
    assert doc["festivals"] == []


def test_singleton_rows_are_written_as_main(db):
    rows = document_to_rows(db)
    assert [r["id"] for r in rows["settings"]] == ["main"]
    assert rows["settings"][0]["tax_rules"]["hotel"]["slabs"][1]["gst"] == 0.12
    assert rows["bookings"][0]["item_id"] == "tour_t1"
    assert rows["bookings"][0]["pricing"]["totalAmount"] == 3150


def test_site_pages_round_trip_by_slug(db):
    db.site_pages.contact_us.content = "Call us"
    rows = document_to_rows(db)
    by_slug = {r["slug"]: r for r in rows["site_pages"]}
    assert by_slug["contact-us"]["page_key"] == "contactUs"
    doc = rows_to_document({**{n: [] for n in TABLES}, "site_pages": rows["site_pages"]})
    assert doc["sitePages"]["contactUs"]["content"] == "Call us"


def test_menu_precedence(seed):
    restaurants = [{"id": "r1", "menu": [{"name": "Inline"}]}, {"id": "r2"}, {"id": "r3"}]
    vendor = {"r1": [{"name": "Vendor"}], "r3": []}
    items = [{"id": "m9", "restaurantId": "r2", "name": "Reconstructed", "price": 80, "maxPerOrder": 4}]
    attach_menus(restaurants, vendor, items)
    assert restaurants[0]["menu"] == [{"name": "Vendor"}]
    assert restaurants[1]["menu"][0]["name"] == "Reconstructed"
    assert restaurants[1]["menu"][0]["maxOrders"] == 4
    assert restaurants[2]["menu"] == []


def test_full_round_trip_preserves_document(db):
    rows = document_to_rows(db)
    rebuilt = validate_document(rows_to_document(rows))
    assert rebuilt.to_document() == db.to_document()


def test_write_order_lists_every_table_once():
    assert len(WRITE_ORDER) == len(set(WRITE_ORDER))
    assert set(WRITE_ORDER) == set(TABLES)


def test_every_table_pages_by_a_unique_trailing_column():
    for spec in TABLES.values():
        assert spec.order_by.split(",")[-1] == spec.conflict_key, spec.name
    assert TABLES["audit_log"].order_by == "at,id"
    assert TABLES["analytics_events"].order_by == "at,id"


def test_restaurant_without_id_is_left_for_validation():
    restaurants = [{"name": "No Id Dhaba"}]
    attach_menus(restaurants, {}, [{"id": "m1", "restaurantId": "r1", "name": "Chai", "price": 20}])
    assert restaurants[0]["menu"] == []
