"""
Profile synchronization and analytics counters.
"""
from explorevalley.services.user_profiles import (
    derive_scores,
    normalize_phone,
    record_analytics_event,
    sync_behavior_profiles,
    sync_user_profiles,
    user_id_from_phone,
)


def test_normalize_phone_keeps_digits():
    assert normalize_phone("+91 98765-43210") == "919876543210"
    assert normalize_phone("  ") == ""
    assert user_id_from_phone("98765 43210") == "user_9876543210"


def test_profiles_are_built_from_orders(db):
    sync_user_profiles(db, now="2026-02-01T00:00:00Z")
    assert len(db.user_profiles) == 1
    profile = db.user_profiles[0]
    assert profile.id == "user_9876543210"
    assert profile.name == "Asha Verma"
    assert [(o.type, o.id) for o in profile.orders] == [("booking", "book_tour_1"), ("booking", "book_hotel_1")]


def test_resync_without_changes_keeps_updated_at(db):
    sync_user_profiles(db, now="2026-02-01T00:00:00Z")
    sync_behavior_profiles(db, now="2026-02-01T00:00:00Z")
    sync_user_profiles(db, now="2026-03-01T00:00:00Z")
    sync_behavior_profiles(db, now="2026-03-01T00:00:00Z")
    assert db.user_profiles[0].updated_at == "2026-02-01T00:00:00Z"
    assert db.user_behavior_profiles[0].updated_at == "2026-02-01T00:00:00Z"


def test_status_change_bumps_updated_at(db):
    sync_user_profiles(db, now="2026-02-01T00:00:00Z")
    db.bookings[0].status = "cancelled"
    sync_user_profiles(db, now="2026-03-01T00:00:00Z")
    profile = db.user_profiles[0]
    assert profile.updated_at == "2026-03-01T00:00:00Z"
    assert profile.created_at == "2026-02-01T00:00:00Z"
    assert profile.orders[0].status == "cancelled"


def test_behavior_profile_mirrors_orders(db):
    sync_user_profiles(db, now="2026-02-01T00:00:00Z")
    sync_behavior_profiles(db, now="2026-02-01T00:00:00Z")
    behavior = db.user_behavior_profiles[0]
    assert behavior.user_id == "user_9876543210"
    assert len(behavior.transaction_payment["orderHistory"]) == 2
    assert behavior.derived_inferred["loyaltyScore"] == 10


def test_derive_scores_without_orders():
    scores = derive_scores([], multiple_accounts=True)
    assert scores["churnProbability"] == 1
    assert scores["fraudRiskScore"] == 70


def test_analytics_event_counts_per_type(db):
    record_analytics_event(db, "view_hotel", phone="9876543210", at="2026-02-01T00:00:00Z")
    record_analytics_event(db, "view_hotel", phone="9876543210", at="2026-02-02T00:00:00Z")
    anonymous = record_analytics_event(db, "page_view")
    assert len(db.analytics_events) == 3
    assert anonymous.user_id == ""
    behavior = db.user_behavior_profiles[0]
    assert behavior.behavioral_analytics["eventCounts"] == {"view_hotel": 2}
    assert behavior.behavioral_analytics["lastEventAt"] == "2026-02-02T00:00:00Z"
