# src/reservation_engine/infrastructure/repositories/discount_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from reservation_engine.infrastructure.db.models import Coupon, Voucher
from reservation_engine.domain.exceptions import NotFoundError


class VoucherRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_by_event_and_code(
        self,
        event_id: str,
        code: str,
        for_update: bool = False,
    ) -> Voucher | None:
        stmt = (
            select(Voucher)
            .where(Voucher.event_id == event_id)
            .where(Voucher.code == code)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_by_id(self, voucher_id: str) -> Voucher:
        stmt = (
            select(Voucher)
            .where(Voucher.id == voucher_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        voucher = self.db.execute(stmt).scalar_one_or_none()
        if not voucher:
            raise NotFoundError("Voucher not found")
        return voucher

    def list_by_event(self, event_id: str) -> list[Voucher]:
        stmt = (
            select(Voucher)
            .where(Voucher.event_id == event_id)
            .order_by(Voucher.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add(self, voucher: Voucher) -> Voucher:
        self.db.add(voucher)
        self.db.flush()
        return voucher


class CouponRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_by_user_and_code(
        self,
        user_id: str,
        code: str,
        for_update: bool = False,
    ) -> Coupon | None:
        stmt = (
            select(Coupon)
            .where(Coupon.user_id == user_id)
            .where(Coupon.code == code)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_by_id(self, coupon_id: str) -> Coupon:
        stmt = (
            select(Coupon)
            .where(Coupon.id == coupon_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        coupon = self.db.execute(stmt).scalar_one_or_none()
        if not coupon:
            raise NotFoundError("Coupon not found")
        return coupon

    def code_exists(self, code: str) -> bool:
        stmt = select(Coupon.id).where(Coupon.code == code)
        return self.db.execute(stmt).first() is not None

    def add(self, coupon: Coupon) -> Coupon:
        self.db.add(coupon)
        self.db.flush()
        return coupon
