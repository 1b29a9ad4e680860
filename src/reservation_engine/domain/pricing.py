# src/reservation_engine/domain/pricing.py

from dataclasses import dataclass
from enum import Enum


class DiscountKind(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


@dataclass(frozen=True)
class PriceBreakdown:
    """
    Result of stacking discounts on an order.
    Discounts are always applied voucher -> coupon -> points.
    """

    subtotal: int
    voucher_discount: int = 0
    coupon_discount: int = 0
    points_used: int = 0

    @property
    def payable_before_points(self) -> int:
        return max(0, self.subtotal - self.voucher_discount - self.coupon_discount)

    @property
    def final_price(self) -> int:
        return max(
            0,
            self.subtotal
            - self.voucher_discount
            - self.coupon_discount
            - self.points_used,
        )


def voucher_discount(subtotal: int, kind: DiscountKind, amount: int) -> int:
    """
    PERCENTAGE vouchers floor the percentage of the subtotal,
    FIXED vouchers take their face value. Neither exceeds the subtotal.
    """
    if kind == DiscountKind.PERCENTAGE:
        discount = (subtotal * amount) // 100
    else:
        discount = amount
    return max(0, min(discount, subtotal))


def coupon_discount(subtotal: int, voucher_discount_amount: int, amount: int) -> int:
    remaining = max(0, subtotal - voucher_discount_amount)
    return max(0, min(amount, remaining))


def points_to_apply(requested: int, balance: int, remaining_payable: int) -> int:
    return max(0, min(requested, balance, remaining_payable))
