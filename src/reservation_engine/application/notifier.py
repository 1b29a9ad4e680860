# src/reservation_engine/application/notifier.py

from datetime import datetime
import logging
from typing import Callable

from reservation_engine.application.projections import TransactionSnapshot
from reservation_engine.config import Settings
from reservation_engine.infrastructure.collaborators.email import EmailAttachment, EmailSender
from reservation_engine.infrastructure.collaborators.notifications import (
    NotificationKind,
    NotificationSink,
)
from reservation_engine.infrastructure.collaborators.qr_codes import render_qr_png

logger = logging.getLogger(__name__)


def format_rupiah(amount: int) -> str:
    return "Rp" + f"{amount:,}".replace(",", ".")


def _format_event_date(value: datetime) -> str:
    return value.strftime("%A, %d %B %Y %H:%M UTC")


class TransactionNotifier:
    """
    Post-commit side effects of transitions: in-app notifications and emails.
    Every delivery is best effort; a failure is logged and never reaches the caller.
    """

    def __init__(
        self,
        notifications: NotificationSink,
        emails: EmailSender,
        settings: Settings,
    ):
        self.notifications = notifications
        self.emails = emails
        self.settings = settings

    def _best_effort(self, what: str, transaction_id: str, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception:
            logger.exception(
                "Best-effort delivery failed. what=%s transaction_id=%s",
                what,
                transaction_id,
            )

    def _link(self, path: str) -> str:
        return f"{self.settings.frontend_base_url}{path}"

    def transaction_created(self, snapshot: TransactionSnapshot) -> None:
        self._best_effort(
            "new_purchase_notification",
            snapshot.id,
            lambda: self.notifications.notify(
                snapshot.organizer.user_id,
                NotificationKind.NEW_PURCHASE,
                "New Purchase",
                f"{snapshot.customer.name} reserved {snapshot.quantity} x "
                f"{snapshot.category_name} for {snapshot.event_title}",
                "/dashboard/transactions",
            ),
        )
        if snapshot.category_available_seats == 0:
            self._best_effort(
                "sold_out_notification",
                snapshot.id,
                lambda: self.notifications.notify(
                    snapshot.organizer.user_id,
                    NotificationKind.EVENT_SOLD_OUT,
                    "Ticket Category Sold Out",
                    f"{snapshot.category_name} for {snapshot.event_title} is sold out",
                    f"/dashboard/events/{snapshot.event_id}",
                ),
            )

    def payment_submitted(self, snapshot: TransactionSnapshot) -> None:
        self._best_effort(
            "waiting_approval_notification",
            snapshot.id,
            lambda: self.notifications.notify(
                snapshot.organizer.user_id,
                NotificationKind.WAITING_APPROVAL,
                "New Payment Awaiting Approval",
                f"{snapshot.customer.name} has submitted payment for "
                f"{snapshot.event_title} ({snapshot.quantity} ticket(s))",
                "/dashboard/transactions",
            ),
        )
        self._best_effort(
            "waiting_approval_email",
            snapshot.id,
            lambda: self.emails.send_email(
                snapshot.organizer.email,
                f"New Payment Awaiting Approval - {snapshot.event_title}",
                "transaction-waiting-approval",
                {
                    "organizer_name": snapshot.organizer.name or "Organizer",
                    "customer_name": snapshot.customer.name,
                    "event_title": snapshot.event_title,
                    "category_name": snapshot.category_name,
                    "quantity": snapshot.quantity,
                    "final_price": format_rupiah(snapshot.final_price),
                    "grace_days": self.settings.confirmation_grace.days,
                    "transaction_id": snapshot.id,
                    "dashboard_link": self._link("/dashboard/transactions"),
                },
            ),
        )

    def _send_ticket_email(self, snapshot: TransactionSnapshot) -> None:
        tickets = []
        attachments = []
        for number, ticket in enumerate(snapshot.tickets, start=1):
            check_in_link = self._link(f"/check-in/{ticket.check_in_token}")
            content_id = f"qr-ticket-{number}@{snapshot.id}"
            tickets.append(
                {
                    "number": number,
                    "check_in_link": check_in_link,
                    "qr_cid": content_id,
                }
            )
            attachments.append(
                EmailAttachment(
                    filename=f"qr-ticket-{number}.png",
                    content=render_qr_png(check_in_link),
                    content_id=content_id,
                )
            )

        self.emails.send_email(
            snapshot.customer.email,
            f"Your Ticket for {snapshot.event_title}",
            "ticket-confirmation",
            {
                "customer_name": snapshot.customer.name,
                "event_title": snapshot.event_title,
                "event_date": _format_event_date(snapshot.event_start_at),
                "event_venue": snapshot.event_venue,
                "category_name": snapshot.category_name,
                "quantity": snapshot.quantity,
                "transaction_id": snapshot.id,
                "tickets": tickets,
                "view_tickets_link": self._link(f"/payment/{snapshot.id}"),
            },
            attachments=attachments,
        )

    def transaction_confirmed(self, snapshot: TransactionSnapshot, now: datetime) -> None:
        self._best_effort(
            "ticket_confirmation_email",
            snapshot.id,
            lambda: self._send_ticket_email(snapshot),
        )
        self._best_effort(
            "payment_receipt_email",
            snapshot.id,
            lambda: self.emails.send_email(
                snapshot.customer.email,
                f"Payment Receipt - {snapshot.event_title}",
                "payment-receipt",
                {
                    "receipt_number": f"RCP-{snapshot.id[:8].upper()}",
                    "receipt_date": now.strftime("%d %B %Y %H:%M UTC"),
                    "transaction_id": snapshot.id,
                    "organizer_name": snapshot.organizer.name,
                    "event_title": snapshot.event_title,
                    "category_name": snapshot.category_name,
                    "quantity": snapshot.quantity,
                    "subtotal": format_rupiah(snapshot.subtotal),
                    "voucher_code": snapshot.voucher_code,
                    "voucher_discount": (
                        format_rupiah(snapshot.voucher_discount)
                        if snapshot.voucher_discount > 0
                        else None
                    ),
                    "coupon_code": snapshot.coupon_code,
                    "coupon_discount": (
                        format_rupiah(snapshot.coupon_discount)
                        if snapshot.coupon_discount > 0
                        else None
                    ),
                    "points_used": snapshot.points_used or None,
                    "final_price": format_rupiah(snapshot.final_price),
                    "customer_name": snapshot.customer.name,
                    "customer_email": snapshot.customer.email,
                },
            ),
        )
        self._best_effort(
            "accepted_notification",
            snapshot.id,
            lambda: self.notifications.notify(
                snapshot.customer.user_id,
                NotificationKind.TRANSACTION_ACCEPTED,
                "Transaction Approved!",
                f"Your transaction for {snapshot.event_title} has been approved. "
                "Your tickets are ready!",
                f"/payment/{snapshot.id}",
            ),
        )

    def transaction_rejected(self, snapshot: TransactionSnapshot) -> None:
        reason = snapshot.rejection_reason or ""
        self._best_effort(
            "rejection_email",
            snapshot.id,
            lambda: self.emails.send_email(
                snapshot.customer.email,
                f"Transaction Rejected - {snapshot.event_title}",
                "transaction-rejected",
                {
                    "customer_name": snapshot.customer.name,
                    "event_title": snapshot.event_title,
                    "category_name": snapshot.category_name,
                    "quantity": snapshot.quantity,
                    "final_price": format_rupiah(snapshot.final_price),
                    "transaction_id": snapshot.id,
                    "rejection_reason": reason,
                    "browse_events_link": self._link("/events"),
                },
            ),
        )
        self._best_effort(
            "rejection_notification",
            snapshot.id,
            lambda: self.notifications.notify(
                snapshot.customer.user_id,
                NotificationKind.TRANSACTION_REJECTED,
                "Transaction Rejected",
                f"Your transaction for {snapshot.event_title} has been rejected."
                + (f" Reason: {reason}" if reason else ""),
                "/transactions",
            ),
        )

    def transaction_cancelled(self, snapshot: TransactionSnapshot, automatic: bool) -> None:
        self._best_effort(
            "cancellation_email",
            snapshot.id,
            lambda: self.emails.send_email(
                snapshot.organizer.email,
                f"Transaction Cancelled - {snapshot.event_title}",
                "transaction-cancelled",
                {
                    "organizer_name": snapshot.organizer.name or "Organizer",
                    "event_title": snapshot.event_title,
                    "category_name": snapshot.category_name,
                    "quantity": snapshot.quantity,
                    "transaction_id": snapshot.id,
                    "automatic": automatic,
                },
            ),
        )
        if automatic:
            self._best_effort(
                "auto_cancel_notification",
                snapshot.id,
                lambda: self.notifications.notify(
                    snapshot.customer.user_id,
                    NotificationKind.TRANSACTION_CANCELLED,
                    "Transaction Cancelled",
                    f"Your transaction for {snapshot.event_title} was cancelled because "
                    "the organizer did not respond in time.",
                    f"/payment/{snapshot.id}",
                ),
            )

    def transaction_expired(self, snapshot: TransactionSnapshot) -> None:
        self._best_effort(
            "expired_notification",
            snapshot.id,
            lambda: self.notifications.notify(
                snapshot.customer.user_id,
                NotificationKind.TRANSACTION_EXPIRED,
                "Payment Deadline Passed",
                f"Your reservation for {snapshot.event_title} expired before payment "
                "was submitted.",
                f"/payment/{snapshot.id}",
            ),
        )
