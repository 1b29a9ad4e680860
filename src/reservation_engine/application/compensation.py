# src/reservation_engine/application/compensation.py

from datetime import datetime
import logging
from typing import Any

from sqlalchemy.orm import Session

from reservation_engine.application.discount_resolver import DiscountResolver
from reservation_engine.application.point_service import PointLedgerService
from reservation_engine.domain.state_machine import TransactionStateMachine, TransactionStatus
from reservation_engine.infrastructure.db.models import Transaction
from reservation_engine.infrastructure.repositories.ticket_category_repository import (
    TicketCategoryRepository,
)
from reservation_engine.infrastructure.repositories.transaction_repository import (
    TransactionRepository,
)

logger = logging.getLogger(__name__)


class CompensationEngine:
    """
    Reverses every resource effect of a transaction that will not complete:
    seats, voucher usage, coupon usage and spent points.

    The status change is claimed first with a compare-and-set, so a transaction
    that another caller already moved on is never rolled back twice.
    """

    def __init__(self, db: Session):
        self.db = db
        self.transaction_repository = TransactionRepository(db)
        self.category_repository = TicketCategoryRepository(db)
        self.discount_resolver = DiscountResolver(db)
        self.point_service = PointLedgerService(db)

    def rollback(
        self,
        transaction: Transaction,
        expected: set[TransactionStatus],
        to_status: TransactionStatus,
        now: datetime,
        **values: Any,
    ) -> bool:
        """
        Moves ``transaction`` from one of ``expected`` to ``to_status`` and
        compensates it. Returns False, with nothing changed, if the status
        no longer matches.
        """
        for from_status in expected:
            TransactionStateMachine.validate_transition(from_status, to_status)

        claimed = self.transaction_repository.compare_and_set_status(
            transaction,
            expected=expected,
            new_status=to_status,
            updated_at=now,
            **values,
        )
        if not claimed:
            logger.debug(
                "Rollback skipped, status already changed. transaction_id=%s target=%s",
                transaction.id,
                to_status.value,
            )
            return False

        self.category_repository.release(
            transaction.ticket_category_id,
            transaction.quantity,
        )
        self.discount_resolver.restore(transaction.voucher_id, transaction.coupon_id)
        self.point_service.reverse(transaction)

        logger.info(
            "Transaction rolled back. transaction_id=%s status=%s seats=%s voucher=%s coupon=%s points=%s",
            transaction.id,
            to_status.value,
            transaction.quantity,
            transaction.voucher_id,
            transaction.coupon_id,
            transaction.points_used,
        )
        return True
