from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from reservation_engine.domain.pricing import DiscountKind
from reservation_engine.infrastructure.db.models import (
    Base,
    Coupon,
    Event,
    TicketCategory,
    User,
    Voucher,
)
from reservation_engine.infrastructure.db.session import SessionLocal, engine
from reservation_engine.application.point_service import PointLedgerService


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    wib = timezone(timedelta(hours=7))
    now_wib = datetime.now(wib)
    target = now_wib + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _get_or_create_user(db, name: str, email: str, role: str) -> User:
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user:
        return user
    user = User(name=name, email=email, role=role, point_balance=0)
    db.add(user)
    db.flush()
    return user


def seed_users(db) -> dict[str, User]:
    return {
        "organizer": _get_or_create_user(db, "Jakarta Live Promotions", "organizer@example.com", "ORGANIZER"),
        "alice": _get_or_create_user(db, "Alice Customer", "alice@example.com", "CUSTOMER"),
        "bob": _get_or_create_user(db, "Bob Customer", "bob@example.com", "CUSTOMER"),
    }


def seed_events(db, organizer: User) -> None:
    event_defs = [
        {
            "title": "Java Jazz Night",
            "venue": "JIExpo Kemayoran, Jakarta",
            "start_at": _dt(days_from_now=10, hour=19, minute=30),
            "end_at": _dt(days_from_now=10, hour=23, minute=0),
            "categories": [
                {"name": "Regular", "price": 350000, "total_seats": 400},
                {"name": "VIP", "price": 1250000, "total_seats": 60},
            ],
            "vouchers": [
                {"code": "JAZZ10", "kind": DiscountKind.PERCENTAGE, "amount": 10, "limit": 100},
            ],
        },
        {
            "title": "Bandung Indie Fest",
            "venue": "Lapangan Gasibu, Bandung",
            "start_at": _dt(days_from_now=21, hour=15, minute=0),
            "end_at": _dt(days_from_now=21, hour=22, minute=0),
            "categories": [
                {"name": "Festival", "price": 150000, "total_seats": 1000},
            ],
            "vouchers": [
                {"code": "EARLYBIRD", "kind": DiscountKind.FIXED, "amount": 25000, "limit": 50},
            ],
        },
    ]

    now = datetime.now(timezone.utc)
    for item in event_defs:
        event = db.execute(
            select(Event).where(Event.title == item["title"])
        ).scalar_one_or_none()
        if event:
            continue

        event = Event(
            organizer_user_id=organizer.id,
            title=item["title"],
            venue=item["venue"],
            start_at=item["start_at"],
            end_at=item["end_at"],
        )
        db.add(event)
        db.flush()

        for category in item["categories"]:
            db.add(
                TicketCategory(
                    event_id=event.id,
                    name=category["name"],
                    price=category["price"],
                    total_seats=category["total_seats"],
                    available_seats=category["total_seats"],
                    sold=0,
                )
            )

        for voucher in item["vouchers"]:
            db.add(
                Voucher(
                    event_id=event.id,
                    code=voucher["code"],
                    discount_kind=voucher["kind"],
                    discount_amount=voucher["amount"],
                    valid_from=now,
                    valid_to=item["start_at"],
                    usage_limit=voucher["limit"],
                    used_count=0,
                )
            )


def seed_loyalty(db, customer: User) -> None:
    existing = db.execute(
        select(Coupon).where(Coupon.code == "WELCOME-DEMO01")
    ).scalar_one_or_none()
    if existing:
        return

    now = datetime.now(timezone.utc)
    db.add(
        Coupon(
            user_id=customer.id,
            code="WELCOME-DEMO01",
            discount_amount=50000,
            expires_at=now + timedelta(days=90),
            is_used=False,
        )
    )
    PointLedgerService(db).earn(
        user_id=customer.id,
        amount=10000,
        description="Demo referral reward",
        now=now,
        expires_at=now + timedelta(days=90),
    )


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        users = seed_users(db)
        seed_events(db, users["organizer"])
        seed_loyalty(db, users["alice"])
        db.commit()
        print("Seed complete: organizer, two customers, Java Jazz Night and Bandung Indie Fest added.")
        for key, user in users.items():
            print(f"  {key}: X-User-Id {user.id}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
