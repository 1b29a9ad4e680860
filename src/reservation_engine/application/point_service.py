# src/reservation_engine/application/point_service.py

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging

from sqlalchemy.orm import Session

from reservation_engine.domain.exceptions import ValidationError
from reservation_engine.domain.point_ledger import (
    ExpiringPoints,
    compute_balance,
    compute_expiring,
)
from reservation_engine.domain.pricing import points_to_apply
from reservation_engine.infrastructure.db.models import PointLedgerEntry, Transaction
from reservation_engine.infrastructure.repositories.point_repository import PointRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointHistoryItem:
    id: str
    amount: int
    kind: str
    description: str
    created_at: datetime
    expires_at: datetime | None
    is_expired: bool


@dataclass(frozen=True)
class PointSummary:
    user_id: str
    balance: int
    expiring_amount: int
    nearest_expiry: datetime | None
    history: list[PointHistoryItem] = field(default_factory=list)


class PointLedgerService:
    """
    FIFO loyalty point ledger.

    The ledger entries are authoritative; ``User.point_balance`` is kept in step
    as a cache in the same unit of work and never used for decisions.
    """

    def __init__(self, db: Session):
        self.db = db
        self.point_repository = PointRepository(db)

    def balance(self, user_id: str, now: datetime) -> int:
        return compute_balance(
            self.point_repository.earned_entries(user_id),
            self.point_repository.total_used(user_id),
            now,
        )

    def expiring_soon(
        self,
        user_id: str,
        now: datetime,
        window: timedelta,
    ) -> ExpiringPoints:
        return compute_expiring(
            self.point_repository.earned_entries(user_id),
            self.point_repository.total_used(user_id),
            now,
            window,
        )

    def apply(
        self,
        transaction: Transaction,
        requested: int,
        remaining_payable: int,
        event_title: str,
        now: datetime,
    ) -> int:
        """
        Spends ``min(requested, balance, remaining_payable)`` points for
        ``transaction`` and returns the amount actually spent.
        """
        if requested < 0:
            raise ValidationError("Points to use cannot be negative")
        if requested == 0 or remaining_payable <= 0:
            return 0

        user = self.point_repository.lock_user(transaction.user_id)
        available = self.balance(user.id, now)
        spent = points_to_apply(requested, available, remaining_payable)
        if spent == 0:
            return 0

        self.point_repository.add_used(
            user_id=user.id,
            transaction_id=transaction.id,
            amount=spent,
            description=f"Used for transaction {transaction.id} on event: {event_title}",
            created_at=now,
        )
        self.sync_cached_balance(user.id, now)
        logger.info(
            "Points applied. user_id=%s transaction_id=%s points=%s balance_before=%s",
            user.id,
            transaction.id,
            spent,
            available,
        )
        return spent

    def reverse(self, transaction: Transaction) -> None:
        """
        Deletes the USED entry of ``transaction``. A compensating EARNED entry
        would be counted twice by the FIFO walk.
        """
        if transaction.points_used <= 0:
            return

        user = self.point_repository.lock_user(transaction.user_id)
        deleted = self.point_repository.delete_used_for_transaction(
            user_id=user.id,
            transaction_id=transaction.id,
            amount=transaction.points_used,
        )
        if deleted != 1:
            logger.warning(
                "Expected one USED point entry for transaction_id=%s, deleted %s",
                transaction.id,
                deleted,
            )
        user.point_balance = user.point_balance + transaction.points_used
        self.db.flush()

    def earn(
        self,
        user_id: str,
        amount: int,
        description: str,
        now: datetime,
        expires_at: datetime | None = None,
    ) -> PointLedgerEntry:
        if amount <= 0:
            raise ValidationError("Earned points must be greater than 0")

        user = self.point_repository.lock_user(user_id)
        entry = self.point_repository.add_earned(
            user_id=user.id,
            amount=amount,
            description=description,
            created_at=now,
            expires_at=expires_at,
        )
        user.point_balance = user.point_balance + amount
        self.db.flush()
        return entry

    def sync_cached_balance(self, user_id: str, now: datetime) -> int:
        """Rewrites the cached ``User.point_balance`` from the FIFO walk, dropping expired points."""
        user = self.point_repository.lock_user(user_id)
        user.point_balance = self.balance(user.id, now)
        self.db.flush()
        return user.point_balance

    def summary(
        self,
        user_id: str,
        now: datetime,
        window: timedelta,
        history_limit: int = 20,
    ) -> PointSummary:
        expiring = self.expiring_soon(user_id, now, window)
        history = [
            PointHistoryItem(
                id=entry.id,
                amount=entry.amount,
                kind=entry.kind.value,
                description=entry.description,
                created_at=entry.created_at,
                expires_at=entry.expires_at,
                is_expired=entry.expires_at is not None and entry.expires_at <= now,
            )
            for entry in self.point_repository.recent_entries(user_id, history_limit)
        ]
        return PointSummary(
            user_id=user_id,
            balance=self.balance(user_id, now),
            expiring_amount=expiring.amount,
            nearest_expiry=expiring.nearest_expiry,
            history=history,
        )
