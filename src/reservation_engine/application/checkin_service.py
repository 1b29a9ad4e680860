# src/reservation_engine/application/checkin_service.py

from dataclasses import dataclass
from datetime import datetime
import logging

from reservation_engine.domain.exceptions import InvalidTicketError, NotFoundError
from reservation_engine.domain.state_machine import TransactionStatus
from reservation_engine.infrastructure.collaborators.clock import Clock
from reservation_engine.infrastructure.db.session import SessionFactory, unit_of_work
from reservation_engine.infrastructure.repositories.attendee_repository import AttendeeRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckInResult:
    success: bool
    message: str
    attendee_name: str
    event_title: str
    category_name: str
    checked_in_at: datetime | None


class CheckInService:
    """
    Token based attendee check-in.
    Scanning the same ticket twice reports the first check-in and changes nothing.
    """

    def __init__(self, session_factory: SessionFactory, clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    def check_in(self, token: str) -> CheckInResult:
        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            attendee_repository = AttendeeRepository(db)
            attendee = attendee_repository.get_by_token(token)
            if attendee is None:
                raise NotFoundError("Ticket not found")

            if attendee.transaction.status != TransactionStatus.DONE:
                raise InvalidTicketError("Ticket is not valid: transaction is not completed")
            if attendee.event.end_at < now:
                raise InvalidTicketError("Ticket is not valid: event has already ended")

            if not attendee.checked_in:
                won = attendee_repository.mark_checked_in(attendee, now)
            else:
                won = False

            result = CheckInResult(
                success=won,
                message="Check-in successful" if won else "Ticket already checked in",
                attendee_name=attendee.user.name,
                event_title=attendee.event.title,
                category_name=attendee.ticket_category.name,
                checked_in_at=attendee.checked_in_at,
            )

        if result.success:
            logger.info("Attendee checked in. attendee_id=%s", attendee.id)
        else:
            logger.info("Duplicate check-in scan. attendee_id=%s", attendee.id)
        return result
