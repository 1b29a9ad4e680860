# src/reservation_engine/application/reward_service.py

import calendar
from dataclasses import dataclass
from datetime import datetime
import logging

from reservation_engine.application.point_service import PointLedgerService, PointSummary
from reservation_engine.config import Settings
from reservation_engine.domain.exceptions import NotFoundError, ValidationError
from reservation_engine.infrastructure.collaborators.clock import Clock
from reservation_engine.infrastructure.collaborators.tokens import TokenGenerator
from reservation_engine.infrastructure.db.models import Coupon
from reservation_engine.infrastructure.db.session import SessionFactory, unit_of_work
from reservation_engine.infrastructure.repositories.catalog_repository import CatalogRepository
from reservation_engine.infrastructure.repositories.discount_repository import CouponRepository

logger = logging.getLogger(__name__)

CUSTOMER_ROLE = "CUSTOMER"
WELCOME_COUPON_PREFIX = "WELCOME"


def add_months(value: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


@dataclass(frozen=True)
class ReferralReward:
    referrer_id: str
    new_user_id: str
    points_awarded: int
    points_expire_at: datetime
    coupon_code: str
    coupon_amount: int
    coupon_expires_at: datetime


class RewardService:
    """Loyalty rewards: referral bonuses and the point summary."""

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock,
        tokens: TokenGenerator,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.tokens = tokens
        self.settings = settings

    def grant_referral_reward(self, referrer_id: str, new_user_id: str) -> ReferralReward:
        if referrer_id == new_user_id:
            raise ValidationError("Users cannot refer themselves")

        now = self.clock.now()
        expires_at = add_months(now, self.settings.referral_reward_valid_months)

        with unit_of_work(self.session_factory) as db:
            catalog = CatalogRepository(db)
            referrer = catalog.get_user(referrer_id)
            if referrer is None:
                raise NotFoundError("Referrer not found")
            new_user = catalog.get_user(new_user_id)
            if new_user is None:
                raise NotFoundError("User not found")
            if referrer.role != CUSTOMER_ROLE or new_user.role != CUSTOMER_ROLE:
                raise ValidationError("Only customers can take part in referrals")

            PointLedgerService(db).earn(
                user_id=referrer.id,
                amount=self.settings.referral_reward_points,
                description=f"Referral reward for inviting {new_user.name}",
                now=now,
                expires_at=expires_at,
            )

            coupon_repository = CouponRepository(db)
            code = self.tokens.discount_code(WELCOME_COUPON_PREFIX)
            while coupon_repository.code_exists(code):
                code = self.tokens.discount_code(WELCOME_COUPON_PREFIX)

            coupon_repository.add(
                Coupon(
                    user_id=new_user.id,
                    code=code,
                    discount_amount=self.settings.referral_coupon_amount,
                    expires_at=expires_at,
                    is_used=False,
                    created_at=now,
                )
            )

        logger.info(
            "Referral reward granted. referrer_id=%s new_user_id=%s points=%s coupon=%s",
            referrer_id,
            new_user_id,
            self.settings.referral_reward_points,
            code,
        )
        return ReferralReward(
            referrer_id=referrer_id,
            new_user_id=new_user_id,
            points_awarded=self.settings.referral_reward_points,
            points_expire_at=expires_at,
            coupon_code=code,
            coupon_amount=self.settings.referral_coupon_amount,
            coupon_expires_at=expires_at,
        )

    def point_summary(self, user_id: str, history_limit: int = 20) -> PointSummary:
        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            if CatalogRepository(db).get_user(user_id) is None:
                raise NotFoundError("User not found")
            points = PointLedgerService(db)
            points.sync_cached_balance(user_id, now)
            return points.summary(
                user_id,
                now,
                self.settings.point_expiry_warning,
                history_limit=history_limit,
            )
