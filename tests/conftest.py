# tests/conftest.py

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reservation_engine.application.checkin_service import CheckInService
from reservation_engine.application.notifier import TransactionNotifier
from reservation_engine.application.point_service import PointLedgerService
from reservation_engine.application.reaper import TimeoutReaper
from reservation_engine.application.reward_service import RewardService
from reservation_engine.application.transaction_service import TransactionService
from reservation_engine.application.voucher_service import VoucherService
from reservation_engine.config import Settings
from reservation_engine.domain.pricing import DiscountKind
from reservation_engine.infrastructure.collaborators.email import EmailAttachment
from reservation_engine.infrastructure.collaborators.notifications import NotificationKind
from reservation_engine.infrastructure.db.models import (
    Base,
    Coupon,
    Event,
    TicketCategory,
    User,
    Voucher,
)
from reservation_engine.infrastructure.db.session import unit_of_work


NOW = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


# ---------------------
# FAKE COLLABORATORS
# ---------------------

class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class SequentialTokens:
    def __init__(self):
        self.issued = 0

    def check_in_token(self) -> str:
        self.issued += 1
        return f"token-{self.issued:04d}"

    def discount_code(self, prefix: str) -> str:
        self.issued += 1
        return f"{prefix}-{self.issued:06d}"


@dataclass
class SentNotification:
    user_id: str
    kind: NotificationKind
    title: str
    message: str
    link: str | None


class RecordingNotificationSink:
    def __init__(self):
        self.sent: list[SentNotification] = []

    def notify(self, user_id, kind, title, message, link=None) -> None:
        self.sent.append(SentNotification(user_id, kind, title, message, link))

    def kinds(self) -> list[NotificationKind]:
        return [item.kind for item in self.sent]


@dataclass
class SentEmail:
    to: str
    subject: str
    template_id: str
    data: dict[str, Any]
    attachments: list[EmailAttachment] = field(default_factory=list)


class RecordingEmailSender:
    def __init__(self):
        self.sent: list[SentEmail] = []

    def send_email(self, to, subject, template_id, data, attachments=None) -> None:
        self.sent.append(SentEmail(to, subject, template_id, data, list(attachments or [])))

    def templates(self) -> list[str]:
        return [item.template_id for item in self.sent]


# ---------------------
# DATABASE
# ---------------------

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture
def file_session_factory(tmp_path):
    """
    File-backed SQLite where every transaction starts with BEGIN IMMEDIATE,
    so concurrent writers from different threads serialize like row locks.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


# ---------------------
# SERVICES
# ---------------------

@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def tokens():
    return SequentialTokens()


@pytest.fixture
def notifications():
    return RecordingNotificationSink()


@pytest.fixture
def emails():
    return RecordingEmailSender()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def notifier(notifications, emails, settings):
    return TransactionNotifier(notifications, emails, settings)


@pytest.fixture
def reaper(session_factory, clock, settings, notifier):
    return TimeoutReaper(session_factory, clock, settings, notifier)


@pytest.fixture
def transaction_service(session_factory, clock, tokens, notifier, settings, reaper):
    return TransactionService(session_factory, clock, tokens, notifier, settings, reaper)


@pytest.fixture
def checkin_service(session_factory, clock):
    return CheckInService(session_factory, clock)


@pytest.fixture
def reward_service(session_factory, clock, tokens, settings):
    return RewardService(session_factory, clock, tokens, settings)


@pytest.fixture
def voucher_service(session_factory, clock):
    return VoucherService(session_factory, clock)


# ---------------------
# DATA
# ---------------------

class Catalog:
    """Seeds rows directly, bypassing the services under test."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def user(self, name: str, role: str = "CUSTOMER") -> str:
        with unit_of_work(self.session_factory) as db:
            user = User(
                name=name,
                email=f"{name.lower().replace(' ', '.')}@example.com",
                role=role,
                point_balance=0,
                created_at=NOW,
            )
            db.add(user)
            db.flush()
            return user.id

    def event(
        self,
        organizer_id: str,
        title: str = "Java Jazz Night",
        start_at: datetime = NOW + timedelta(days=10),
        end_at: datetime = NOW + timedelta(days=10, hours=4),
    ) -> str:
        with unit_of_work(self.session_factory) as db:
            event = Event(
                organizer_user_id=organizer_id,
                title=title,
                venue="JIExpo Kemayoran",
                start_at=start_at,
                end_at=end_at,
                created_at=NOW,
            )
            db.add(event)
            db.flush()
            return event.id

    def category(self, event_id: str, name: str = "Regular", price: int = 100000, seats: int = 10) -> str:
        with unit_of_work(self.session_factory) as db:
            category = TicketCategory(
                event_id=event_id,
                name=name,
                price=price,
                total_seats=seats,
                available_seats=seats,
                sold=0,
                created_at=NOW,
                updated_at=NOW,
            )
            db.add(category)
            db.flush()
            return category.id

    def voucher(
        self,
        event_id: str,
        code: str = "JAZZ10",
        kind: DiscountKind = DiscountKind.PERCENTAGE,
        amount: int = 10,
        usage_limit: int = 5,
        used_count: int = 0,
        valid_from: datetime = NOW - timedelta(days=1),
        valid_to: datetime = NOW + timedelta(days=5),
    ) -> str:
        with unit_of_work(self.session_factory) as db:
            voucher = Voucher(
                event_id=event_id,
                code=code,
                discount_kind=kind,
                discount_amount=amount,
                valid_from=valid_from,
                valid_to=valid_to,
                usage_limit=usage_limit,
                used_count=used_count,
                created_at=NOW,
            )
            db.add(voucher)
            db.flush()
            return voucher.id

    def coupon(
        self,
        user_id: str,
        code: str = "WELCOME-ABC123",
        amount: int = 50000,
        expires_at: datetime = NOW + timedelta(days=30),
        is_used: bool = False,
    ) -> str:
        with unit_of_work(self.session_factory) as db:
            coupon = Coupon(
                user_id=user_id,
                code=code,
                discount_amount=amount,
                expires_at=expires_at,
                is_used=is_used,
                created_at=NOW,
            )
            db.add(coupon)
            db.flush()
            return coupon.id

    def earn(
        self,
        user_id: str,
        amount: int,
        expires_at: datetime | None = None,
        created_at: datetime = NOW - timedelta(days=1),
    ) -> None:
        with unit_of_work(self.session_factory) as db:
            PointLedgerService(db).earn(
                user_id=user_id,
                amount=amount,
                description="Referral reward",
                now=created_at,
                expires_at=expires_at,
            )

    def get(self, model, row_id: str):
        with unit_of_work(self.session_factory) as db:
            return db.get(model, row_id)


@pytest.fixture
def catalog(session_factory):
    return Catalog(session_factory)


@dataclass
class World:
    organizer_id: str
    customer_id: str
    other_customer_id: str
    event_id: str
    category_id: str


def _build_world(catalog: Catalog) -> World:
    organizer_id = catalog.user("Jakarta Live", role="ORGANIZER")
    customer_id = catalog.user("Alice Customer")
    other_customer_id = catalog.user("Bob Customer")
    event_id = catalog.event(organizer_id)
    category_id = catalog.category(event_id, price=100000, seats=10)
    return World(
        organizer_id=organizer_id,
        customer_id=customer_id,
        other_customer_id=other_customer_id,
        event_id=event_id,
        category_id=category_id,
    )


@pytest.fixture
def world(catalog):
    return _build_world(catalog)


# ---------------------
# SHARED FILE DATABASE
# ---------------------

@pytest.fixture
def file_catalog(file_session_factory):
    return Catalog(file_session_factory)


@pytest.fixture
def file_world(file_catalog):
    return _build_world(file_catalog)


@pytest.fixture
def file_reaper(file_session_factory, clock, settings, notifier):
    return TimeoutReaper(file_session_factory, clock, settings, notifier)


@pytest.fixture
def file_transaction_service(file_session_factory, clock, tokens, notifier, settings, file_reaper):
    return TransactionService(file_session_factory, clock, tokens, notifier, settings, file_reaper)
