# src/reservation_engine/application/transaction_service.py

from dataclasses import dataclass
import logging

from sqlalchemy.orm import Session

from reservation_engine.application.compensation import CompensationEngine
from reservation_engine.application.discount_resolver import DiscountResolver
from reservation_engine.application.notifier import TransactionNotifier
from reservation_engine.application.point_service import PointLedgerService
from reservation_engine.application.projections import TransactionSnapshot
from reservation_engine.application.reaper import TimeoutReaper
from reservation_engine.config import Settings
from reservation_engine.domain.exceptions import (
    ExpiredError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from reservation_engine.domain.pricing import PriceBreakdown
from reservation_engine.domain.state_machine import TransactionStateMachine, TransactionStatus
from reservation_engine.infrastructure.collaborators.clock import Clock
from reservation_engine.infrastructure.collaborators.tokens import TokenGenerator
from reservation_engine.infrastructure.db.models import Transaction
from reservation_engine.infrastructure.db.session import SessionFactory, unit_of_work
from reservation_engine.infrastructure.repositories.attendee_repository import AttendeeRepository
from reservation_engine.infrastructure.repositories.catalog_repository import CatalogRepository
from reservation_engine.infrastructure.repositories.ticket_category_repository import (
    TicketCategoryRepository,
)
from reservation_engine.infrastructure.repositories.transaction_repository import (
    TransactionRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionPage:
    items: list[TransactionSnapshot]
    page: int
    take: int
    total: int


class TransactionService:
    """
    Application service driving the purchase lifecycle:

        WAITING_PAYMENT -> WAITING_CONFIRMATION -> DONE | REJECTED
        WAITING_PAYMENT -> EXPIRED
        WAITING_PAYMENT | WAITING_CONFIRMATION -> CANCELLED

    Every public operation is one unit of work. Notifications run after
    the commit and never undo a transition.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock,
        tokens: TokenGenerator,
        notifier: TransactionNotifier,
        settings: Settings,
        reaper: TimeoutReaper | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.tokens = tokens
        self.notifier = notifier
        self.settings = settings
        self.reaper = reaper or TimeoutReaper(session_factory, clock, settings, notifier)

    # ---------------------
    # CREATE
    # ---------------------

    def create_transaction(
        self,
        user_id: str,
        event_id: str,
        ticket_category_id: str,
        quantity: int,
        voucher_code: str | None = None,
        coupon_code: str | None = None,
        points_requested: int = 0,
    ) -> TransactionSnapshot:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        if points_requested is None:
            points_requested = 0
        if points_requested < 0:
            raise ValidationError("Points to use cannot be negative")

        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            catalog = CatalogRepository(db)
            if catalog.get_user(user_id) is None:
                raise NotFoundError("User not found")

            category_repository = TicketCategoryRepository(db)
            category = category_repository.get_by_id(ticket_category_id)
            if category is None:
                raise NotFoundError("Ticket category not found")
            if category.event_id != event_id:
                raise ValidationError("Ticket category does not belong to this event")

            event = category.event
            if event.organizer_user_id == user_id:
                raise PermissionDeniedError("You cannot purchase tickets for your own event")
            if event.end_at < now:
                raise ValidationError("This event has already ended")

            category = category_repository.reserve(ticket_category_id, quantity)
            subtotal = category.price * quantity

            resolver = DiscountResolver(db)
            discounts = resolver.resolve(
                event_id=event_id,
                user_id=user_id,
                subtotal=subtotal,
                now=now,
                voucher_code=voucher_code,
                coupon_code=coupon_code,
            )
            price = PriceBreakdown(
                subtotal=subtotal,
                voucher_discount=discounts.voucher_discount,
                coupon_discount=discounts.coupon_discount,
            )

            transaction = TransactionRepository(db).create_transaction(
                user_id=user_id,
                event_id=event_id,
                ticket_category_id=ticket_category_id,
                voucher_id=discounts.voucher.id if discounts.voucher else None,
                coupon_id=discounts.coupon.id if discounts.coupon else None,
                quantity=quantity,
                subtotal=subtotal,
                voucher_discount=price.voucher_discount,
                coupon_discount=price.coupon_discount,
                points_used=0,
                final_price=price.payable_before_points,
                expires_at=now + self.settings.payment_window,
                created_at=now,
                updated_at=now,
            )

            resolver.consume(discounts)

            points_used = PointLedgerService(db).apply(
                transaction,
                requested=points_requested,
                remaining_payable=price.payable_before_points,
                event_title=event.title,
                now=now,
            )
            price = PriceBreakdown(
                subtotal=subtotal,
                voucher_discount=price.voucher_discount,
                coupon_discount=price.coupon_discount,
                points_used=points_used,
            )
            transaction.points_used = points_used
            transaction.final_price = price.final_price
            transaction.updated_at = now
            db.flush()

            snapshot = TransactionSnapshot.from_model(transaction)

        logger.info(
            "Transaction created. transaction_id=%s user_id=%s category_id=%s quantity=%s "
            "subtotal=%s voucher=%s coupon=%s points=%s final_price=%s",
            snapshot.id,
            user_id,
            ticket_category_id,
            quantity,
            snapshot.subtotal,
            snapshot.voucher_discount,
            snapshot.coupon_discount,
            snapshot.points_used,
            snapshot.final_price,
        )
        self.notifier.transaction_created(snapshot)
        return snapshot

    # ---------------------
    # TRANSITIONS
    # ---------------------

    def submit_payment_proof(
        self,
        transaction_id: str,
        user_id: str,
        proof_ref: str,
    ) -> TransactionSnapshot:
        if not proof_ref or not proof_ref.strip():
            raise ValidationError("Payment proof reference is required")

        now = self.clock.now()
        past_deadline = False
        expired = False
        with unit_of_work(self.session_factory) as db:
            transaction = self._lock_owned_by_customer(db, transaction_id, user_id)
            self._require_status(
                transaction,
                {TransactionStatus.WAITING_PAYMENT},
                TransactionStatus.WAITING_CONFIRMATION,
            )

            # The expiry commits even though the caller gets an error.
            if now > transaction.expires_at:
                past_deadline = True
                expired = CompensationEngine(db).rollback(
                    transaction,
                    expected={TransactionStatus.WAITING_PAYMENT},
                    to_status=TransactionStatus.EXPIRED,
                    now=now,
                )
            else:
                self._claim(
                    db,
                    transaction,
                    TransactionStatus.WAITING_CONFIRMATION,
                    now,
                    payment_proof=proof_ref.strip(),
                    waiting_confirmation_at=now,
                )
            snapshot = TransactionSnapshot.from_model(transaction)

        if past_deadline:
            if expired:
                logger.info(
                    "Payment proof after deadline; transaction expired. transaction_id=%s",
                    transaction_id,
                )
                self.notifier.transaction_expired(snapshot)
            raise ExpiredError("Payment deadline has expired")

        logger.info("Payment proof submitted. transaction_id=%s", transaction_id)
        self.notifier.payment_submitted(snapshot)
        return snapshot

    def confirm(
        self,
        transaction_id: str,
        organizer_user_id: str,
    ) -> TransactionSnapshot:
        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            transaction = self._lock_managed_by_organizer(db, transaction_id, organizer_user_id)
            self._require_status(
                transaction,
                {TransactionStatus.WAITING_CONFIRMATION},
                TransactionStatus.DONE,
            )
            self._claim(db, transaction, TransactionStatus.DONE, now)
            self._settle(db, transaction, now)
            snapshot = TransactionSnapshot.from_model(transaction)

        logger.info(
            "Transaction confirmed. transaction_id=%s tickets=%s",
            transaction_id,
            len(snapshot.tickets),
        )
        self.notifier.transaction_confirmed(snapshot, now)
        return snapshot

    def reject(
        self,
        transaction_id: str,
        organizer_user_id: str,
        reason: str | None = None,
    ) -> TransactionSnapshot:
        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            transaction = self._lock_managed_by_organizer(db, transaction_id, organizer_user_id)
            self._require_status(
                transaction,
                {TransactionStatus.WAITING_CONFIRMATION},
                TransactionStatus.REJECTED,
            )
            rolled_back = CompensationEngine(db).rollback(
                transaction,
                expected={TransactionStatus.WAITING_CONFIRMATION},
                to_status=TransactionStatus.REJECTED,
                now=now,
                rejection_reason=reason,
            )
            if not rolled_back:
                raise InvalidStateTransitionError(
                    from_state=transaction.status.value,
                    to_state=TransactionStatus.REJECTED.value,
                )
            snapshot = TransactionSnapshot.from_model(transaction)

        logger.info("Transaction rejected. transaction_id=%s reason=%r", transaction_id, reason)
        self.notifier.transaction_rejected(snapshot)
        return snapshot

    def cancel(
        self,
        transaction_id: str,
        user_id: str,
    ) -> TransactionSnapshot:
        now = self.clock.now()
        cancellable = TransactionStateMachine.sources_of(TransactionStatus.CANCELLED)
        with unit_of_work(self.session_factory) as db:
            transaction = self._lock_owned_by_customer(db, transaction_id, user_id)
            self._require_status(transaction, cancellable, TransactionStatus.CANCELLED)
            rolled_back = CompensationEngine(db).rollback(
                transaction,
                expected=cancellable,
                to_status=TransactionStatus.CANCELLED,
                now=now,
            )
            if not rolled_back:
                raise InvalidStateTransitionError(
                    from_state=transaction.status.value,
                    to_state=TransactionStatus.CANCELLED.value,
                )
            snapshot = TransactionSnapshot.from_model(transaction)

        logger.info("Transaction cancelled by customer. transaction_id=%s", transaction_id)
        self.notifier.transaction_cancelled(snapshot, automatic=False)
        return snapshot

    # ---------------------
    # READS
    # ---------------------

    def get_transaction(self, transaction_id: str, actor_user_id: str) -> TransactionSnapshot:
        self.reaper.reap_transaction(transaction_id)

        with unit_of_work(self.session_factory) as db:
            transaction = TransactionRepository(db).get_with_details(transaction_id)
            if transaction is None:
                raise NotFoundError("Transaction not found")
            if actor_user_id not in (transaction.user_id, transaction.event.organizer_user_id):
                raise PermissionDeniedError("You don't have permission to view this transaction")
            return TransactionSnapshot.from_model(transaction)

    def list_my_transactions(self, user_id: str, page: int = 1, take: int = 10) -> TransactionPage:
        if page < 1 or take < 1:
            raise ValidationError("page and take must be positive")

        self.reaper.reap_user(user_id)

        with unit_of_work(self.session_factory) as db:
            items, total = TransactionRepository(db).list_by_user(user_id, page, take)
            return TransactionPage(
                items=[TransactionSnapshot.from_model(item) for item in items],
                page=page,
                take=take,
                total=total,
            )

    def list_organizer_transactions(self, organizer_user_id: str) -> list[TransactionSnapshot]:
        with unit_of_work(self.session_factory) as db:
            return [
                TransactionSnapshot.from_model(item)
                for item in TransactionRepository(db).list_by_organizer(organizer_user_id)
            ]

    def get_tickets(self, transaction_id: str, user_id: str) -> TransactionSnapshot:
        with unit_of_work(self.session_factory) as db:
            transaction = TransactionRepository(db).get_with_details(transaction_id)
            if transaction is None:
                raise NotFoundError("Transaction not found")
            if transaction.user_id != user_id:
                raise PermissionDeniedError("You don't have permission to view these tickets")
            if transaction.status != TransactionStatus.DONE:
                raise ValidationError("Tickets are only available for completed transactions")
            return TransactionSnapshot.from_model(transaction)

    # ---------------------
    # HELPERS
    # ---------------------

    def _settle(self, db: Session, transaction: Transaction, now) -> None:
        """Issues one attendee per purchased seat, each with a fresh token."""
        attendee_repository = AttendeeRepository(db)
        issued: set[str] = set()
        for _ in range(transaction.quantity):
            token = self.tokens.check_in_token()
            while token in issued or attendee_repository.token_exists(token):
                token = self.tokens.check_in_token()
            issued.add(token)
            attendee_repository.issue(transaction, token, now)
        db.flush()
        db.expire(transaction, ["attendees"])

    def _claim(
        self,
        db: Session,
        transaction: Transaction,
        to_status: TransactionStatus,
        now,
        **values,
    ) -> None:
        from_status = transaction.status
        claimed = TransactionRepository(db).compare_and_set_status(
            transaction,
            expected={from_status},
            new_status=to_status,
            updated_at=now,
            **values,
        )
        if not claimed:
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @staticmethod
    def _require_status(
        transaction: Transaction,
        allowed: set[TransactionStatus],
        to_status: TransactionStatus,
    ) -> None:
        if transaction.status not in allowed:
            raise InvalidStateTransitionError(
                from_state=transaction.status.value,
                to_state=to_status.value,
            )
        TransactionStateMachine.validate_transition(transaction.status, to_status)

    @staticmethod
    def _lock_owned_by_customer(db: Session, transaction_id: str, user_id: str) -> Transaction:
        transaction = TransactionRepository(db).lock_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        if transaction.user_id != user_id:
            raise PermissionDeniedError("You don't have permission to update this transaction")
        return transaction

    @staticmethod
    def _lock_managed_by_organizer(
        db: Session,
        transaction_id: str,
        organizer_user_id: str,
    ) -> Transaction:
        transaction = TransactionRepository(db).lock_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        if transaction.event.organizer_user_id != organizer_user_id:
            raise PermissionDeniedError("You don't have permission to manage this transaction")
        return transaction
