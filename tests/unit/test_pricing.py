# tests/unit/test_pricing.py

from reservation_engine.domain.pricing import (
    DiscountKind,
    PriceBreakdown,
    coupon_discount,
    points_to_apply,
    voucher_discount,
)


def test_percentage_voucher_floors():
    assert voucher_discount(99999, DiscountKind.PERCENTAGE, 10) == 9999


def test_fixed_voucher_never_exceeds_subtotal():
    assert voucher_discount(30000, DiscountKind.FIXED, 50000) == 30000
    assert voucher_discount(100000, DiscountKind.FIXED, 25000) == 25000


def test_full_percentage_voucher():
    assert voucher_discount(100000, DiscountKind.PERCENTAGE, 100) == 100000


def test_coupon_limited_to_what_voucher_left():
    assert coupon_discount(100000, 10000, 50000) == 50000
    assert coupon_discount(100000, 80000, 50000) == 20000
    assert coupon_discount(100000, 100000, 50000) == 0


def test_points_take_the_smallest_bound():
    assert points_to_apply(requested=100000, balance=250000, remaining_payable=40000) == 40000
    assert points_to_apply(requested=100000, balance=7000, remaining_payable=40000) == 7000
    assert points_to_apply(requested=500, balance=7000, remaining_payable=40000) == 500
    assert points_to_apply(requested=0, balance=7000, remaining_payable=40000) == 0


def test_stacking_scenario_reaches_zero():
    subtotal = 100000
    voucher = voucher_discount(subtotal, DiscountKind.PERCENTAGE, 10)
    coupon = coupon_discount(subtotal, voucher, 50000)
    price = PriceBreakdown(subtotal=subtotal, voucher_discount=voucher, coupon_discount=coupon)
    points = points_to_apply(100000, 100000, price.payable_before_points)

    final = PriceBreakdown(
        subtotal=subtotal,
        voucher_discount=voucher,
        coupon_discount=coupon,
        points_used=points,
    )

    assert voucher == 10000
    assert coupon == 50000
    assert points == 40000
    assert final.final_price == 0


def test_final_price_never_negative():
    price = PriceBreakdown(subtotal=1000, voucher_discount=800, coupon_discount=800, points_used=800)
    assert price.final_price == 0
    assert price.payable_before_points == 0
