# src/reservation_engine/infrastructure/db/models.py

from sqlalchemy import (
    String,
    Integer,
    Boolean,
    Enum,
    Text,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from uuid import uuid4

from reservation_engine.infrastructure.db.session import Base
from reservation_engine.infrastructure.db.types import UTCDateTime
from reservation_engine.domain.point_ledger import PointKind
from reservation_engine.domain.pricing import DiscountKind
from reservation_engine.domain.state_machine import TransactionStatus


def _uuid() -> str:
    return str(uuid4())


class User(Base):
    """
    Minimal projection of the platform user.
    ``point_balance`` is a cache of the FIFO ledger walk, never the source of truth.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="CUSTOMER")
    point_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("role IN ('CUSTOMER', 'ORGANIZER')", name="ck_user_role"),
    )


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    organizer_user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    venue: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    organizer: Mapped[User] = relationship()
    ticket_categories: Mapped[list["TicketCategory"]] = relationship(
        back_populates="event",
    )

    __table_args__ = (
        CheckConstraint("end_at >= start_at", name="ck_event_end_after_start"),
    )


class TicketCategory(Base):
    """
    Seat inventory of one ticket category.
    available_seats + sold == total_seats holds for every committed row.
    """

    __tablename__ = "ticket_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    event: Mapped[Event] = relationship(back_populates="ticket_categories")

    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_ticket_category_event_name"),
        CheckConstraint("price >= 0", name="ck_category_price_nonnegative"),
        CheckConstraint("total_seats >= 0", name="ck_category_total_seats_nonnegative"),
        CheckConstraint("available_seats >= 0", name="ck_category_available_seats_nonnegative"),
        CheckConstraint("sold >= 0", name="ck_category_sold_nonnegative"),
        CheckConstraint(
            "available_seats + sold = total_seats",
            name="ck_category_seats_balanced",
        ),
    )


class Voucher(Base):
    __tablename__ = "vouchers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    discount_kind: Mapped[DiscountKind] = mapped_column(
        Enum(DiscountKind, name="discount_kind"),
        nullable=False,
    )
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    valid_to: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    usage_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("event_id", "code", name="uq_voucher_event_code"),
        CheckConstraint("discount_amount > 0", name="ck_voucher_discount_positive"),
        CheckConstraint("usage_limit > 0", name="ck_voucher_usage_limit_positive"),
        CheckConstraint("used_count >= 0", name="ck_voucher_used_count_nonnegative"),
        CheckConstraint("used_count <= usage_limit", name="ck_voucher_used_lte_limit"),
    )


class Coupon(Base):
    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("discount_amount > 0", name="ck_coupon_discount_positive"),
    )


class PointLedgerEntry(Base):
    """
    Append-only loyalty point ledger.
    EARNED rows carry positive amounts and an optional expiry,
    USED rows carry negative amounts and point back to their transaction.
    """

    __tablename__ = "point_ledger_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("transactions.id"),
        nullable=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[PointKind] = mapped_column(
        Enum(PointKind, name="point_kind"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "(kind = 'EARNED' AND amount > 0) OR (kind = 'USED' AND amount < 0)",
            name="ck_point_amount_sign",
        ),
        CheckConstraint(
            "kind = 'EARNED' OR expires_at IS NULL",
            name="ck_point_expiry_earned_only",
        ),
        Index("ix_point_ledger_user_kind_created", "user_id", "kind", "created_at"),
    )


class Transaction(Base):
    """
    Purchase transaction reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    ticket_category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("ticket_categories.id"),
        nullable=False,
    )
    voucher_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("vouchers.id"),
        nullable=True,
    )
    coupon_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("coupons.id"),
        nullable=True,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, name="transaction_status"),
        nullable=False,
        default=TransactionStatus.WAITING_PAYMENT,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    voucher_discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    coupon_discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    final_price: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_proof: Mapped[str | None] = mapped_column(String(512), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    waiting_confirmation_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user: Mapped[User] = relationship()
    event: Mapped[Event] = relationship()
    ticket_category: Mapped[TicketCategory] = relationship()
    voucher: Mapped[Voucher | None] = relationship()
    coupon: Mapped[Coupon | None] = relationship()
    attendees: Mapped[list["Attendee"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="Attendee.created_at",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_transaction_quantity_positive"),
        CheckConstraint("points_used >= 0", name="ck_transaction_points_nonnegative"),
        CheckConstraint("final_price >= 0", name="ck_transaction_final_price_nonnegative"),
        Index("ix_transactions_status_expires", "status", "expires_at"),
        Index("ix_transactions_status_waiting", "status", "waiting_confirmation_at"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
    )


class Attendee(Base):
    """One issued ticket. Only check-in fields change after creation."""

    __tablename__ = "attendees"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    transaction_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id"),
        nullable=False,
    )
    ticket_category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("ticket_categories.id"),
        nullable=False,
    )
    check_in_token: Mapped[str] = mapped_column(String(128), nullable=False)
    checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    transaction: Mapped[Transaction] = relationship(back_populates="attendees")
    user: Mapped[User] = relationship()
    event: Mapped[Event] = relationship()
    ticket_category: Mapped[TicketCategory] = relationship()

    __table_args__ = (
        UniqueConstraint("check_in_token", name="uq_attendee_check_in_token"),
    )
