"""
ExploreValley API - Operational rules engine

Runs inside every non-exempt mutate_data() call with the pre-mutation snapshot
and the mutated document:

  1. Food stock follows order status transitions. Only quantities entering or
     leaving a consuming status (confirmed/completed) move stock.
  2. Every booking whose capacity-relevant fields changed is re-validated
     against the whole mutated document.

`before` is read only. `after` is mutated for menu item stock/availability.
A raised OperationalRuleError means the caller must discard `after`.
"""
import json
import logging
from collections import defaultdict

from explorevalley.core.errors import OperationalRuleError
from explorevalley.models.document import Booking, Database, FoodOrder, MenuItem
from explorevalley.services.availability import (
    is_consuming,
    validate_hotel_booking_capacity,
    validate_tour_booking_capacity,
)

logger = logging.getLogger(__name__)

FINGERPRINT_FIELDS = (
    "type", "item_id", "status", "guests", "room_type", "num_rooms", "check_in", "check_out", "tour_date",
)


# ── Food stock ─────────────────────────────────────────────────────────────────

def consumption_map(orders: list[FoodOrder]) -> dict[str, int]:
    """Quantity consumed per menu item key (`id:<id>` or `name:<lowercase name>`)."""
    out: dict[str, int] = defaultdict(int)
    for order in orders:
        if not is_consuming(order.status):
            continue
        for line in order.items:
            menu_item_id = (line.menu_item_id or "").strip()
            key = f"id:{menu_item_id}" if menu_item_id else f"name:{line.name.strip().lower()}"
            qty = max(0, line.quantity)
            if qty:
                out[key] += qty
    return dict(out)


def pick_menu_item(db: Database, key: str) -> MenuItem | None:
    if key.startswith("id:"):
        wanted = key[3:]
        return next((m for m in db.menu_items if m.id == wanted), None)
    wanted = key[5:] if key.startswith("name:") else key
    candidates = [m for m in db.menu_items if m.name.strip().lower() == wanted]
    if not candidates:
        return None
    # Same-name items are ambiguous; the best-stocked one absorbs the delta.
    return max(candidates, key=lambda m: m.stock)


def apply_food_stock_transitions(before: Database, after: Database) -> None:
    prev = consumption_map(before.food_orders)
    nxt = consumption_map(after.food_orders)

    for key in sorted(set(prev) | set(nxt)):
        delta = nxt.get(key, 0) - prev.get(key, 0)
        if not delta:
            continue
        item = pick_menu_item(after, key)
        if item is None:
            logger.warning("No menu item matches %s; stock delta %d ignored", key, delta)
            continue
        if delta > 0 and item.stock < delta:
            raise OperationalRuleError(
                f"OUT_OF_STOCK_FOR_CONFIRMED_ORDER:{item.name}",
                f"{item.name}: need {delta}, have {item.stock}",
            )
        item.stock = max(0, item.stock - delta)
        if item.stock == 0:
            item.available = False
        elif not item.available:
            item.available = True
        logger.info("Stock %s (%s) moved by %d -> %d", item.id, item.name, -delta, item.stock)


# ── Booking capacity ───────────────────────────────────────────────────────────

def _fingerprint(booking: Booking) -> str:
    return json.dumps({f: getattr(booking, f) for f in FINGERPRINT_FIELDS}, sort_keys=True)


def changed_booking_ids(before: Database, after: Database) -> list[str]:
    """Ids created, deleted, or with a changed capacity fingerprint."""
    prev = {b.id: b for b in before.bookings}
    nxt = {b.id: b for b in after.bookings}
    changed = []
    for booking_id in list(prev) + [i for i in nxt if i not in prev]:
        a, b = prev.get(booking_id), nxt.get(booking_id)
        if a is None or b is None or _fingerprint(a) != _fingerprint(b):
            changed.append(booking_id)
    return changed


def apply_operational_rules(before: Database, after: Database) -> None:
    apply_food_stock_transitions(before, after)

    by_id = {b.id: b for b in after.bookings}
    for booking_id in changed_booking_ids(before, after):
        booking = by_id.get(booking_id)
        if booking is None:
            continue
        if booking.type == "tour":
            validate_tour_booking_capacity(after, booking)
        elif booking.type == "hotel":
            validate_hotel_booking_capacity(after, booking)
