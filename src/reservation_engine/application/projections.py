# src/reservation_engine/application/projections.py

from dataclasses import dataclass, field
from datetime import datetime

from reservation_engine.domain.state_machine import TransactionStatus
from reservation_engine.infrastructure.db.models import Transaction


@dataclass(frozen=True)
class TicketView:
    id: str
    check_in_token: str
    checked_in: bool
    checked_in_at: datetime | None


@dataclass(frozen=True)
class PartyView:
    user_id: str
    name: str
    email: str


@dataclass(frozen=True)
class TransactionSnapshot:
    """
    Detached, typed view of a transaction and everything callers need
    around it (HTTP responses, emails, notifications).
    Built inside the unit of work that loaded the transaction.
    """

    id: str
    status: TransactionStatus
    customer: PartyView
    organizer: PartyView
    event_id: str
    event_title: str
    event_venue: str
    event_start_at: datetime
    event_end_at: datetime
    ticket_category_id: str
    category_name: str
    category_available_seats: int
    quantity: int
    subtotal: int
    voucher_code: str | None
    voucher_discount: int
    coupon_code: str | None
    coupon_discount: int
    points_used: int
    final_price: int
    payment_proof: str | None
    rejection_reason: str | None
    expires_at: datetime
    waiting_confirmation_at: datetime | None
    created_at: datetime
    updated_at: datetime
    tickets: list[TicketView] = field(default_factory=list)

    @classmethod
    def from_model(cls, transaction: Transaction) -> "TransactionSnapshot":
        event = transaction.event
        organizer = event.organizer
        customer = transaction.user
        category = transaction.ticket_category

        return cls(
            id=transaction.id,
            status=transaction.status,
            customer=PartyView(
                user_id=customer.id,
                name=customer.name,
                email=customer.email,
            ),
            organizer=PartyView(
                user_id=organizer.id,
                name=organizer.name,
                email=organizer.email,
            ),
            event_id=event.id,
            event_title=event.title,
            event_venue=event.venue,
            event_start_at=event.start_at,
            event_end_at=event.end_at,
            ticket_category_id=category.id,
            category_name=category.name,
            category_available_seats=category.available_seats,
            quantity=transaction.quantity,
            subtotal=transaction.subtotal,
            voucher_code=transaction.voucher.code if transaction.voucher else None,
            voucher_discount=transaction.voucher_discount,
            coupon_code=transaction.coupon.code if transaction.coupon else None,
            coupon_discount=transaction.coupon_discount,
            points_used=transaction.points_used,
            final_price=transaction.final_price,
            payment_proof=transaction.payment_proof,
            rejection_reason=transaction.rejection_reason,
            expires_at=transaction.expires_at,
            waiting_confirmation_at=transaction.waiting_confirmation_at,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
            tickets=[
                TicketView(
                    id=attendee.id,
                    check_in_token=attendee.check_in_token,
                    checked_in=attendee.checked_in,
                    checked_in_at=attendee.checked_in_at,
                )
                for attendee in transaction.attendees
            ],
        )
