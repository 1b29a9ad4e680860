# src/reservation_engine/infrastructure/repositories/point_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import delete, func, select

from reservation_engine.infrastructure.db.models import PointLedgerEntry, User
from reservation_engine.domain.exceptions import NotFoundError
from reservation_engine.domain.point_ledger import PointKind


class PointRepository:

    def __init__(self, db: Session):
        self.db = db

    def lock_user(self, user_id: str) -> User:
        """
        Serializes point spending per user: two purchases by the same user
        must not both spend the same FIFO balance.
        """
        stmt = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        user = self.db.execute(stmt).scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")
        return user

    def earned_entries(self, user_id: str) -> list[PointLedgerEntry]:
        stmt = (
            select(PointLedgerEntry)
            .where(PointLedgerEntry.user_id == user_id)
            .where(PointLedgerEntry.kind == PointKind.EARNED)
            .order_by(PointLedgerEntry.created_at, PointLedgerEntry.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def total_used(self, user_id: str) -> int:
        stmt = (
            select(func.coalesce(func.sum(PointLedgerEntry.amount), 0))
            .where(PointLedgerEntry.user_id == user_id)
            .where(PointLedgerEntry.kind == PointKind.USED)
        )
        return abs(int(self.db.execute(stmt).scalar_one()))

    def recent_entries(self, user_id: str, limit: int = 20) -> list[PointLedgerEntry]:
        stmt = (
            select(PointLedgerEntry)
            .where(PointLedgerEntry.user_id == user_id)
            .order_by(PointLedgerEntry.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add_earned(
        self,
        user_id: str,
        amount: int,
        description: str,
        created_at: datetime,
        expires_at: datetime | None,
    ) -> PointLedgerEntry:
        entry = PointLedgerEntry(
            user_id=user_id,
            amount=amount,
            kind=PointKind.EARNED,
            description=description,
            created_at=created_at,
            expires_at=expires_at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def add_used(
        self,
        user_id: str,
        transaction_id: str,
        amount: int,
        description: str,
        created_at: datetime,
    ) -> PointLedgerEntry:
        entry = PointLedgerEntry(
            user_id=user_id,
            transaction_id=transaction_id,
            amount=-amount,
            kind=PointKind.USED,
            description=description,
            created_at=created_at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def delete_used_for_transaction(
        self,
        user_id: str,
        transaction_id: str,
        amount: int,
    ) -> int:
        stmt = (
            delete(PointLedgerEntry)
            .where(PointLedgerEntry.user_id == user_id)
            .where(PointLedgerEntry.kind == PointKind.USED)
            .where(PointLedgerEntry.transaction_id == transaction_id)
            .where(PointLedgerEntry.amount == -amount)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount
