# src/reservation_engine/application/discount_resolver.py

from dataclasses import dataclass
from datetime import datetime
import logging

from sqlalchemy.orm import Session

from reservation_engine.domain.exceptions import (
    CouponInvalidError,
    NotFoundError,
    VoucherInvalidError,
)
from reservation_engine.domain.pricing import coupon_discount, voucher_discount
from reservation_engine.infrastructure.db.models import Coupon, Voucher
from reservation_engine.infrastructure.repositories.discount_repository import (
    CouponRepository,
    VoucherRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedDiscounts:
    voucher: Voucher | None = None
    coupon: Coupon | None = None
    voucher_discount: int = 0
    coupon_discount: int = 0


class DiscountResolver:
    """
    Looks up, validates and prices vouchers and coupons.

    Lookups lock the voucher/coupon rows so validation and consumption
    happen against the same state inside one unit of work.
    """

    def __init__(self, db: Session):
        self.db = db
        self.voucher_repository = VoucherRepository(db)
        self.coupon_repository = CouponRepository(db)

    def resolve(
        self,
        event_id: str,
        user_id: str,
        subtotal: int,
        now: datetime,
        voucher_code: str | None = None,
        coupon_code: str | None = None,
    ) -> ResolvedDiscounts:
        voucher = None
        voucher_amount = 0
        if voucher_code:
            voucher = self._find_usable_voucher(event_id, voucher_code, now)
            voucher_amount = voucher_discount(
                subtotal,
                voucher.discount_kind,
                voucher.discount_amount,
            )

        coupon = None
        coupon_amount = 0
        if coupon_code:
            coupon = self._find_usable_coupon(user_id, coupon_code, now)
            coupon_amount = coupon_discount(
                subtotal,
                voucher_amount,
                coupon.discount_amount,
            )

        return ResolvedDiscounts(
            voucher=voucher,
            coupon=coupon,
            voucher_discount=voucher_amount,
            coupon_discount=coupon_amount,
        )

    def consume(self, discounts: ResolvedDiscounts) -> None:
        """Call only after the seats were reserved."""
        if discounts.voucher is not None:
            voucher = discounts.voucher
            if voucher.used_count >= voucher.usage_limit:
                raise VoucherInvalidError("Voucher usage limit exceeded")
            voucher.used_count = voucher.used_count + 1

        if discounts.coupon is not None:
            coupon = discounts.coupon
            if coupon.is_used:
                raise CouponInvalidError("Coupon has already been used")
            coupon.is_used = True

        self.db.flush()

    def restore(self, voucher_id: str | None, coupon_id: str | None) -> None:
        if voucher_id:
            voucher = self.voucher_repository.lock_by_id(voucher_id)
            voucher.used_count = voucher.used_count - 1

        if coupon_id:
            coupon = self.coupon_repository.lock_by_id(coupon_id)
            coupon.is_used = False

        self.db.flush()

    def _find_usable_voucher(self, event_id: str, code: str, now: datetime) -> Voucher:
        voucher = self.voucher_repository.find_by_event_and_code(
            event_id,
            code,
            for_update=True,
        )
        if not voucher:
            raise NotFoundError("Voucher not found")

        if not (voucher.valid_from <= now <= voucher.valid_to):
            raise VoucherInvalidError("Voucher is not valid at this time")

        if voucher.used_count >= voucher.usage_limit:
            raise VoucherInvalidError("Voucher usage limit exceeded")

        return voucher

    def _find_usable_coupon(self, user_id: str, code: str, now: datetime) -> Coupon:
        coupon = self.coupon_repository.find_by_user_and_code(
            user_id,
            code,
            for_update=True,
        )
        if not coupon:
            raise NotFoundError("Coupon not found")

        if coupon.is_used:
            raise CouponInvalidError("Coupon has already been used")

        if coupon.expires_at < now:
            raise CouponInvalidError("Coupon has expired")

        return coupon
