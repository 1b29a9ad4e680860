# src/reservation_engine/infrastructure/repositories/attendee_repository.py

from datetime import datetime

from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select, update

from reservation_engine.infrastructure.db.models import Attendee, Transaction


class AttendeeRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_token(self, token: str) -> Attendee | None:
        stmt = (
            select(Attendee)
            .where(Attendee.check_in_token == token)
            .options(
                selectinload(Attendee.transaction),
                selectinload(Attendee.event),
                selectinload(Attendee.ticket_category),
                selectinload(Attendee.user),
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def token_exists(self, token: str) -> bool:
        stmt = select(Attendee.id).where(Attendee.check_in_token == token)
        return self.db.execute(stmt).first() is not None

    def issue(
        self,
        transaction: Transaction,
        token: str,
        created_at: datetime,
    ) -> Attendee:
        attendee = Attendee(
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            event_id=transaction.event_id,
            ticket_category_id=transaction.ticket_category_id,
            check_in_token=token,
            checked_in=False,
            created_at=created_at,
        )
        self.db.add(attendee)
        return attendee

    def mark_checked_in(self, attendee: Attendee, now: datetime) -> bool:
        """
        UPDATE ... WHERE checked_in = false
        Only one concurrent scan of the same ticket can win.
        """
        stmt = (
            update(Attendee)
            .where(Attendee.id == attendee.id)
            .where(Attendee.checked_in.is_(False))
            .values(checked_in=True, checked_in_at=now)
            .execution_options(synchronize_session=False)
        )
        won = self.db.execute(stmt).rowcount == 1
        self.db.refresh(attendee)
        return won
