# tests/integration/test_rewards.py

from datetime import datetime, timedelta, timezone

import pytest

from reservation_engine.application.reward_service import add_months
from reservation_engine.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from reservation_engine.domain.pricing import DiscountKind
from reservation_engine.infrastructure.db.models import User


def test_add_months_clamps_to_month_end():
    start = datetime(2026, 11, 30, 8, 0, tzinfo=timezone.utc)

    assert add_months(start, 3) == datetime(2027, 2, 28, 8, 0, tzinfo=timezone.utc)
    assert add_months(start, 1) == datetime(2026, 12, 30, 8, 0, tzinfo=timezone.utc)


# ---------------------
# REFERRALS
# ---------------------

def test_referral_reward_grants_points_and_coupon(
    reward_service, transaction_service, world, catalog, clock
):
    reward = reward_service.grant_referral_reward(world.customer_id, world.other_customer_id)

    assert reward.points_awarded == 10000
    assert reward.points_expire_at == datetime(2026, 6, 1, 10, 0, tzinfo=timezone.utc)
    assert reward.coupon_code.startswith("WELCOME-")
    assert reward.coupon_amount == 50000
    assert catalog.get(User, world.customer_id).point_balance == 10000

    snapshot = transaction_service.create_transaction(
        user_id=world.other_customer_id,
        event_id=world.event_id,
        ticket_category_id=world.category_id,
        quantity=1,
        coupon_code=reward.coupon_code,
    )
    assert snapshot.coupon_discount == 50000
    assert snapshot.final_price == 50000


def test_organizers_cannot_take_part_in_referrals(reward_service, world):
    with pytest.raises(ValidationError):
        reward_service.grant_referral_reward(world.organizer_id, world.customer_id)


def test_referral_to_unknown_user(reward_service, world):
    with pytest.raises(NotFoundError):
        reward_service.grant_referral_reward(world.customer_id, "missing")


# ---------------------
# POINT SUMMARY
# ---------------------

def test_point_summary_reports_expiring_points(reward_service, transaction_service, world, catalog, clock):
    catalog.earn(world.customer_id, 5000, expires_at=clock.now() + timedelta(days=30),
                 created_at=clock.now() - timedelta(days=2))
    catalog.earn(world.customer_id, 3000, expires_at=clock.now() + timedelta(days=2),
                 created_at=clock.now() - timedelta(days=1))
    transaction_service.create_transaction(
        user_id=world.customer_id,
        event_id=world.event_id,
        ticket_category_id=world.category_id,
        quantity=1,
        points_requested=4000,
    )

    summary = reward_service.point_summary(world.customer_id)

    assert summary.balance == 4000
    assert summary.expiring_amount == 3000
    assert summary.nearest_expiry == clock.now() + timedelta(days=2)
    assert [item.kind for item in summary.history] == ["USED", "EARNED", "EARNED"]
    assert summary.history[0].amount == -4000

    clock.advance(days=3)
    later = reward_service.point_summary(world.customer_id)
    assert later.balance == 1000
    assert later.expiring_amount == 0
    assert later.history[1].is_expired is True


def test_point_summary_drops_expired_points_from_cached_balance(reward_service, world, catalog, clock):
    catalog.earn(world.customer_id, 10000, expires_at=clock.now() + timedelta(days=2))
    assert catalog.get(User, world.customer_id).point_balance == 10000

    clock.advance(days=3)
    summary = reward_service.point_summary(world.customer_id)

    assert summary.balance == 0
    assert catalog.get(User, world.customer_id).point_balance == 0


def test_spending_points_resyncs_cached_balance(transaction_service, world, catalog, clock):
    catalog.earn(world.customer_id, 5000, expires_at=clock.now() + timedelta(days=2),
                 created_at=clock.now() - timedelta(days=2))
    catalog.earn(world.customer_id, 3000, expires_at=clock.now() + timedelta(days=30),
                 created_at=clock.now() - timedelta(days=1))
    clock.advance(days=3)

    snapshot = transaction_service.create_transaction(
        user_id=world.customer_id,
        event_id=world.event_id,
        ticket_category_id=world.category_id,
        quantity=1,
        points_requested=1000,
    )

    assert snapshot.points_used == 1000
    assert catalog.get(User, world.customer_id).point_balance == 2000


def test_point_summary_unknown_user(reward_service, world):
    with pytest.raises(NotFoundError):
        reward_service.point_summary("missing")


# ---------------------
# VOUCHERS
# ---------------------

def _voucher_kwargs(clock, **overrides):
    values = {
        "code": "FLASH20",
        "discount_kind": DiscountKind.PERCENTAGE,
        "discount_amount": 20,
        "valid_from": clock.now(),
        "valid_to": clock.now() + timedelta(days=3),
        "usage_limit": 50,
    }
    values.update(overrides)
    return values


def test_organizer_creates_voucher(voucher_service, world, clock):
    voucher = voucher_service.create_voucher(world.organizer_id, world.event_id, **_voucher_kwargs(clock))

    assert voucher.code == "FLASH20"
    assert voucher.used_count == 0
    assert [item.code for item in voucher_service.list_vouchers(world.event_id)] == ["FLASH20"]


def test_voucher_code_is_unique_per_event(voucher_service, world, clock, catalog):
    voucher_service.create_voucher(world.organizer_id, world.event_id, **_voucher_kwargs(clock))

    with pytest.raises(ConflictError):
        voucher_service.create_voucher(world.organizer_id, world.event_id, **_voucher_kwargs(clock))

    other_event_id = catalog.event(world.organizer_id, title="Encore")
    voucher_service.create_voucher(world.organizer_id, other_event_id, **_voucher_kwargs(clock))


def test_only_the_event_organizer_creates_vouchers(voucher_service, world, clock):
    with pytest.raises(PermissionDeniedError):
        voucher_service.create_voucher(world.customer_id, world.event_id, **_voucher_kwargs(clock))


@pytest.mark.parametrize(
    "overrides",
    [
        {"discount_amount": 0},
        {"discount_amount": 101},
        {"usage_limit": 0},
        {"code": "  "},
    ],
)
def test_invalid_voucher_definitions(voucher_service, world, clock, overrides):
    with pytest.raises(ValidationError):
        voucher_service.create_voucher(
            world.organizer_id,
            world.event_id,
            **_voucher_kwargs(clock, **overrides),
        )


def test_voucher_window_must_be_forward(voucher_service, world, clock):
    with pytest.raises(ValidationError):
        voucher_service.create_voucher(
            world.organizer_id,
            world.event_id,
            **_voucher_kwargs(clock, valid_to=clock.now() - timedelta(hours=1)),
        )


def test_fixed_voucher_above_one_hundred_is_fine(voucher_service, world, clock):
    voucher = voucher_service.create_voucher(
        world.organizer_id,
        world.event_id,
        **_voucher_kwargs(clock, discount_kind=DiscountKind.FIXED, discount_amount=25000),
    )

    assert voucher.discount_amount == 25000


def test_no_vouchers_for_ended_events(voucher_service, world, clock):
    clock.advance(days=11)

    with pytest.raises(ValidationError):
        voucher_service.create_voucher(
            world.organizer_id,
            world.event_id,
            **_voucher_kwargs(clock),
        )
