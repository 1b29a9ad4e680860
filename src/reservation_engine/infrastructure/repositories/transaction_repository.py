# src/reservation_engine/infrastructure/repositories/transaction_repository.py

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select, update, func

from reservation_engine.infrastructure.db.models import Event, Transaction
from reservation_engine.domain.state_machine import TransactionStatus


class TransactionRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        transaction_id: str,
    ) -> Transaction | None:

        stmt = select(Transaction).where(Transaction.id == transaction_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_by_id(
        self,
        transaction_id: str,
    ) -> Transaction | None:
        """
        SELECT ... FOR UPDATE on the transaction row, so the status check
        and the side effects that follow it cannot interleave with another caller.
        """

        stmt = (
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_with_details(self, transaction_id: str) -> Transaction | None:
        stmt = (
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .options(
                selectinload(Transaction.event),
                selectinload(Transaction.ticket_category),
                selectinload(Transaction.voucher),
                selectinload(Transaction.coupon),
                selectinload(Transaction.attendees),
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_transaction(self, **values: Any) -> Transaction:
        transaction = Transaction(
            status=TransactionStatus.WAITING_PAYMENT,
            **values,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def compare_and_set_status(
        self,
        transaction: Transaction,
        expected: Iterable[TransactionStatus],
        new_status: TransactionStatus,
        **values: Any,
    ) -> bool:
        """
        UPDATE ... WHERE status IN (expected)
        Returns False when another caller already moved the transaction on.
        """

        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction.id)
            .where(Transaction.status.in_(list(expected)))
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount != 1:
            return False

        self.db.refresh(transaction)
        return True

    def list_ids_waiting_payment_past_deadline(
        self,
        now: datetime,
        user_id: str | None = None,
    ) -> list[str]:
        stmt = (
            select(Transaction.id)
            .where(Transaction.status == TransactionStatus.WAITING_PAYMENT)
            .where(Transaction.expires_at < now)
            .order_by(Transaction.expires_at)
        )
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        return list(self.db.execute(stmt).scalars().all())

    def list_ids_waiting_confirmation_since(
        self,
        cutoff: datetime,
        user_id: str | None = None,
    ) -> list[str]:
        stmt = (
            select(Transaction.id)
            .where(Transaction.status == TransactionStatus.WAITING_CONFIRMATION)
            .where(Transaction.waiting_confirmation_at < cutoff)
            .order_by(Transaction.waiting_confirmation_at)
        )
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        return list(self.db.execute(stmt).scalars().all())

    def list_by_user(
        self,
        user_id: str,
        page: int,
        take: int,
    ) -> tuple[list[Transaction], int]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .options(
                selectinload(Transaction.event),
                selectinload(Transaction.ticket_category),
            )
            .order_by(Transaction.created_at.desc())
            .offset((page - 1) * take)
            .limit(take)
        )
        total_stmt = (
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.user_id == user_id)
        )
        items = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(total_stmt).scalar_one()
        return items, total

    def list_by_organizer(self, organizer_user_id: str) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .join(Event, Event.id == Transaction.event_id)
            .where(Event.organizer_user_id == organizer_user_id)
            .options(
                selectinload(Transaction.user),
                selectinload(Transaction.event),
                selectinload(Transaction.ticket_category),
            )
            .order_by(Transaction.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())
