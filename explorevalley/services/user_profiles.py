"""
ExploreValley API - Cross-entity synchronization

User profiles and behavior profiles are derived from order history. They are
rebuilt on every read and on every write. A profile's `updatedAt` only moves
when its content actually changes, so rebuilding an unchanged document is a
no-op.
"""
import logging
import re
from typing import Any

from explorevalley.models.document import (
    AnalyticsEvent,
    Database,
    UserBehaviorProfile,
    UserOrderRef,
    UserProfile,
    make_id,
    utc_now,
)

logger = logging.getLogger(__name__)

IP_HISTORY_LIMIT = 30


def normalize_phone(phone: str | None) -> str:
    raw = (phone or "").strip()
    digits = re.sub(r"\D+", "", raw)
    return digits or raw.lower()


def user_id_from_phone(phone: str | None) -> str:
    return f"user_{normalize_phone(phone) or 'unknown'}"


def _upsert_order(orders: list[UserOrderRef], entry: UserOrderRef) -> None:
    for i, existing in enumerate(orders):
        if existing.type == entry.type and existing.id == entry.id:
            orders[i] = entry
            return
    orders.append(entry)


def _order_sources(db: Database):
    """(phone, name, email, order ref) per transactional record."""
    for b in db.bookings:
        yield b.phone, b.user_name, str(b.email), UserOrderRef(
            type="booking", id=b.id, status=b.status, at=b.booking_date, amount=b.pricing.total_amount,
        )
    for c in db.cab_bookings:
        yield c.phone, c.user_name, "", UserOrderRef(
            type="cab", id=c.id, status=c.status, at=c.created_at,
            amount=c.pricing.total_amount or c.estimated_fare,
        )
    for f in db.food_orders:
        yield f.phone, f.user_name, "", UserOrderRef(
            type="food", id=f.id, status=f.status, at=f.order_time, amount=f.pricing.total_amount,
        )
    for q in db.queries:
        yield q.phone, q.user_name, str(q.email), UserOrderRef(
            type="query", id=q.id, status=q.status, at=q.submitted_at, amount=0,
        )


def sync_user_profiles(db: Database, now: str | None = None) -> None:
    now = now or utc_now()
    previous: dict[str, UserProfile] = {}
    for profile in db.user_profiles:
        key = normalize_phone(profile.phone)
        if key:
            previous[key] = profile

    rebuilt: dict[str, UserProfile] = {}
    for phone, name, email, order in _order_sources(db):
        key = normalize_phone(phone)
        if not key:
            continue
        profile = rebuilt.get(key)
        if profile is None:
            old = previous.get(key)
            if old is not None:
                profile = old.model_copy(deep=True, update={"orders": []})
            else:
                profile = UserProfile(
                    id=user_id_from_phone(phone), phone=phone.strip(), created_at=now, updated_at=now,
                )
            rebuilt[key] = profile
        if name:
            profile.name = name.strip()
        if email:
            profile.email = email.strip()
        _upsert_order(profile.orders, order)

    # Profiles with no remaining orders (e.g. created from analytics) are kept.
    for key, old in previous.items():
        if key not in rebuilt:
            rebuilt[key] = old

    for key, profile in rebuilt.items():
        old = previous.get(key)
        if old is not None and profile is not old:
            content_changed = (
                profile.model_dump(exclude={"updated_at"}) != old.model_dump(exclude={"updated_at"})
            )
            profile.updated_at = now if content_changed else old.updated_at

    db.user_profiles = sorted(rebuilt.values(), key=lambda p: (p.updated_at, p.id), reverse=True)


def _empty_sections() -> dict[str, dict[str, Any]]:
    return {
        "core_identity": {"accountId": "", "linkedSocialAccounts": [], "referralCode": ""},
        "device_fingerprinting": {"ipAddress": "", "ipHistory": []},
        "location_mobility": {},
        "behavioral_analytics": {"eventCounts": {}, "lastEventAt": ""},
        "transaction_payment": {
            "orderHistory": [], "bookingTimestamps": [], "paymentMethods": [],
            "failedPayments": 0, "refunds": 0, "chargebacks": 0,
        },
        "preference_personalization": {},
        "ratings_reviews_feedback": {},
        "marketing_attribution": {},
        "trust_safety_fraud": {"multipleAccountDetection": False},
        "derived_inferred": {},
    }


def _new_behavior_profile(user_id: str, now: str, **fields) -> UserBehaviorProfile:
    return UserBehaviorProfile(
        id=f"behavior_{user_id}", user_id=user_id, created_at=now, updated_at=now,
        **_empty_sections(), **fields,
    )


def derive_scores(orders: list[UserOrderRef], multiple_accounts: bool) -> dict[str, float]:
    total = sum(o.amount for o in orders)
    count = len(orders)
    return {
        "spendingCapacityScore": round(total),
        "loyaltyScore": min(100, count * 5),
        "churnProbability": round(1 / (count + 1), 4) if count else 1,
        "fraudRiskScore": 70 if multiple_accounts else 10,
        "priceElasticity": round(min(1.0, 1000 / (total + 1)), 4) if count else 0,
        "surgeAcceptanceLikelihood": round(min(1.0, total / (count * 1000 + 1)), 4) if count else 0,
    }


def sync_behavior_profiles(db: Database, now: str | None = None) -> None:
    now = now or utc_now()
    existing = {p.user_id: p for p in db.user_behavior_profiles if p.user_id}
    out: dict[str, UserBehaviorProfile] = dict(existing)

    for user in db.user_profiles:
        user_id = user.id or user_id_from_phone(user.phone)
        old = existing.get(user_id)
        current = old.model_copy(deep=True) if old is not None else _new_behavior_profile(
            user_id, now, phone=user.phone, name=user.name, email=user.email,
        )
        current.phone = user.phone or current.phone
        current.name = user.name or current.name
        current.email = user.email or current.email
        current.core_identity["accountId"] = user_id
        if user.ip_address:
            current.device_fingerprinting["ipAddress"] = user.ip_address
            history = list(current.device_fingerprinting.get("ipHistory") or [])
            if user.ip_address not in history:
                history.append(user.ip_address)
            current.device_fingerprinting["ipHistory"] = history[-IP_HISTORY_LIMIT:]

        current.orders = [o.model_copy() for o in user.orders]
        tp = current.transaction_payment
        tp["orderHistory"] = [o.model_dump(by_alias=True) for o in current.orders]
        tp["bookingTimestamps"] = [o.at for o in current.orders if o.at]
        current.derived_inferred.update(derive_scores(
            current.orders, bool(current.trust_safety_fraud.get("multipleAccountDetection")),
        ))

        if old is None:
            current.updated_at = now
        elif current.model_dump(exclude={"updated_at"}) != old.model_dump(exclude={"updated_at"}):
            current.updated_at = now
        out[user_id] = current

    db.user_behavior_profiles = sorted(out.values(), key=lambda p: (p.updated_at, p.id), reverse=True)


def record_analytics_event(
    db: Database,
    event_type: str,
    category: str = "",
    user_id: str = "",
    phone: str = "",
    email: str = "",
    meta: dict[str, Any] | None = None,
    at: str | None = None,
) -> AnalyticsEvent:
    """Append an analytics event and fold it into the user's behavior counters."""
    at = at or utc_now()
    user_id = user_id or (user_id_from_phone(phone) if phone else "")
    event = AnalyticsEvent(
        id=make_id("evt"), type=event_type, category=category, user_id=user_id,
        phone=phone, email=email, at=at, meta=meta or {},
    )
    db.analytics_events.append(event)
    if not user_id:
        return event

    profile = next((p for p in db.user_behavior_profiles if p.user_id == user_id), None)
    if profile is None:
        profile = _new_behavior_profile(user_id, at, phone=phone, email=email)
        db.user_behavior_profiles.append(profile)
    counts = profile.behavioral_analytics.setdefault("eventCounts", {})
    counts[event_type] = counts.get(event_type, 0) + 1
    profile.behavioral_analytics["lastEventAt"] = at
    profile.updated_at = at
    logger.debug("Analytics %s recorded for %s", event_type, user_id)
    return event
