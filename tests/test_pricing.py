"""
Pricing engine: GST breakup, slabs, stay length, tiers, coupons and quotes.
"""
from datetime import date

import pytest

from explorevalley.core.errors import BookingRequestError
from explorevalley.models.document import Settings
from explorevalley.schemas.food import FoodOrderLine
from explorevalley.services.pricing import (
    apply_coupon,
    compute_gst,
    days_between,
    hotel_gst_rate,
    price_food_lines,
    quote_food,
    quote_hotel,
    quote_tour,
    round2,
    tier_multiplier,
)


def test_round2_is_half_up():
    assert round2(0.125) == 0.13
    assert round2(10) == 10


def test_compute_gst_splits_intrastate_evenly():
    tax = compute_gst(1000, 0.12)
    assert tax.gst_amount == 120
    assert tax.cgst == 60 and tax.sgst == 60 and tax.igst == 0
    assert tax.taxable_value == 1000


def test_compute_gst_halves_always_sum_to_total():
    tax = compute_gst(101, 0.05)
    assert tax.gst_amount == 5.05
    assert (tax.cgst, tax.sgst) == (2.53, 2.52)

    tax = compute_gst(0.84, 0.18)
    assert (tax.gst_amount, tax.cgst, tax.sgst) == (0.15, 0.08, 0.07)


@pytest.mark.parametrize("rate", [0.05, 0.12, 0.18, 0.28, 0.035])
def test_compute_gst_sweep_holds_to_the_cent(rate):
    for step in range(0, 200_001, 7):
        taxable = step / 100
        tax = compute_gst(taxable, rate)
        assert tax.gst_amount == round2(taxable * rate)
        assert round2(tax.cgst + tax.sgst) == tax.gst_amount
        assert round(tax.cgst * 100) - round(tax.sgst * 100) in (0, 1)
        assert tax.igst == 0

        interstate = compute_gst(taxable, rate, interstate=True)
        assert interstate.igst == tax.gst_amount
        assert interstate.cgst == interstate.sgst == 0


def test_compute_gst_interstate_is_all_igst():
    tax = compute_gst(2000, 0.18, interstate=True)
    assert tax.igst == 360 and tax.cgst == 0 and tax.sgst == 0


@pytest.mark.parametrize("per_night, rate", [(800, 0.0), (1000, 0.0), (1000.01, 0.12), (7500, 0.12), (9000, 0.18)])
def test_hotel_gst_rate_follows_slabs(per_night, rate):
    assert hotel_gst_rate(per_night, Settings()) == rate


def test_days_between_is_at_least_one():
    assert days_between("2026-03-10", "2026-03-12") == 2
    assert days_between("2026-03-10", "2026-03-10") == 1
    for offset in range(1, 60):
        check_out = date.fromordinal(date(2026, 3, 10).toordinal() + offset).isoformat()
        assert days_between("2026-03-10", check_out) == offset


def test_days_between_rejects_bad_dates():
    with pytest.raises(BookingRequestError) as exc:
        days_between("soon", "2026-03-12")
    assert exc.value.code == "INVALID_DATE_RANGE"


def test_tier_multiplier_is_case_insensitive_and_defaults_to_one():
    settings = Settings()
    assert tier_multiplier(settings, "luxury") == 1.4
    assert tier_multiplier(settings, None) == 1.0
    assert tier_multiplier(settings, "platinum") == 1.0


class TestCoupons:
    def test_percent_coupon(self, db):
        assert apply_coupon(db, "save10", "hotel", 4000, today=date(2026, 1, 1)) == 400

    def test_no_code_no_discount(self, db):
        assert apply_coupon(db, None, "hotel", 4000) == 0

    def test_unknown_code_is_rejected(self, db):
        with pytest.raises(BookingRequestError) as exc:
            apply_coupon(db, "FREEBIE", "hotel", 4000)
        assert exc.value.code == "COUPON_INVALID"

    def test_below_min_cart_is_rejected(self, db):
        with pytest.raises(BookingRequestError):
            apply_coupon(db, "SAVE10", "food", 200)

    def test_expired_coupon_is_rejected(self, db):
        with pytest.raises(BookingRequestError):
            apply_coupon(db, "SAVE10", "hotel", 4000, today=date(2100, 1, 1))

    def test_flat_discount_never_exceeds_subtotal(self, build_db):
        db = build_db(coupons=[{"code": "BIGFLAT", "type": "flat", "amount": 5000, "category": "tour",
                               "expiry": "2099-01-01"}])
        assert apply_coupon(db, "BIGFLAT", "tour", 1200) == 1200
        with pytest.raises(BookingRequestError):
            apply_coupon(db, "BIGFLAT", "hotel", 1200)


class TestQuotes:
    def test_hotel_quote(self, db):
        quoted = quote_hotel(db, "hotel_h1", "deluxe", "2026-03-10", "2026-03-12", guests=2)
        assert quoted["nights"] == 2
        assert quoted["gstRate"] == 0.12
        assert quoted["quote"] == {"baseAmount": 4000, "discount": 0, "gstAmount": 480, "totalAmount": 4480}

    def test_hotel_quote_with_tier_and_coupon(self, db):
        quoted = quote_hotel(
            db, "hotel_h1", "deluxe", "2026-03-10", "2026-03-12", guests=2,
            pricing_tier="Premium", coupon="SAVE10",
        )
        # 4000 * 1.15 = 4600, -460 coupon, 12% GST on 4140
        assert quoted["quote"] == {"baseAmount": 4140, "discount": 460, "gstAmount": 496.8, "totalAmount": 4636.8}

    @pytest.mark.parametrize("kwargs, code", [
        ({"room_type": "penthouse"}, "ROOM_TYPE_UNAVAILABLE"),
        ({"guests": 3}, "HOTEL_ROOM_CAPACITY_EXCEEDED"),
        ({"check_out": "2026-03-30"}, "INVALID_STAY_LENGTH"),
        ({"check_out": "2026-03-10"}, "INVALID_STAY_LENGTH"),
        ({"check_out": "2026-03-01"}, "INVALID_DATE_RANGE"),
        ({"hotel_id": "hotel_nope"}, "HOTEL_UNAVAILABLE"),
    ])
    def test_hotel_quote_rejections(self, db, kwargs, code):
        args = {"hotel_id": "hotel_h1", "room_type": "deluxe", "check_in": "2026-03-10",
                "check_out": "2026-03-12", "guests": 2}
        args.update(kwargs)
        with pytest.raises(BookingRequestError) as exc:
            quote_hotel(db, **args)
        assert exc.value.code == code

    def test_tour_quote(self, db):
        quoted = quote_tour(db, "tour_t1", "2026-06-11", guests=2)
        assert quoted["quote"]["totalAmount"] == 2100

    @pytest.mark.parametrize("tour_date, guests, code", [
        ("2026-06-15", 1, "TOUR_DATE_CLOSED"),
        ("2026-06-11", 11, "MAX_GUESTS_EXCEEDED"),
        ("not-a-date", 1, "INVALID_TOUR_BOOKING_DATA"),
    ])
    def test_tour_quote_rejections(self, db, tour_date, guests, code):
        with pytest.raises(BookingRequestError) as exc:
            quote_tour(db, "tour_t1", tour_date, guests)
        assert exc.value.code == code

    def test_food_quote_by_id_and_name(self, db):
        lines = [FoodOrderLine(menu_item_id="menu_m1", quantity=2), FoodOrderLine(name="thukpa", quantity=1)]
        quoted = quote_food(db, "rest_r1", lines)
        assert [i["menuItemId"] for i in quoted["items"]] == ["menu_m1", "menu_m2"]
        assert quoted["quote"]["baseAmount"] == 390
        assert quoted["quote"]["totalAmount"] == 409.5

    @pytest.mark.parametrize("line, code", [
        (FoodOrderLine(menu_item_id="menu_missing", quantity=1), "MENU_ITEM_NOT_FOUND"),
        (FoodOrderLine(menu_item_id="menu_m1", quantity=6), "OUT_OF_STOCK"),
        (FoodOrderLine(menu_item_id="menu_m2", quantity=2), "OUT_OF_STOCK"),
    ])
    def test_food_line_rejections(self, db, line, code):
        with pytest.raises(BookingRequestError) as exc:
            price_food_lines(db, "rest_r1", [line])
        assert exc.value.code == code

    def test_food_minimum_order(self, build_db, seed):
        restaurants = seed["restaurants"]
        restaurants[0]["minimum_order"] = 500
        db = build_db(restaurants=restaurants)
        with pytest.raises(BookingRequestError) as exc:
            price_food_lines(db, "rest_r1", [FoodOrderLine(menu_item_id="menu_m1", quantity=1)])
        assert exc.value.code == "MIN_ORDER_NOT_MET"
