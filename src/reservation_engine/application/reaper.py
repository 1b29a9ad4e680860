# src/reservation_engine/application/reaper.py

import logging
import threading

from reservation_engine.application.compensation import CompensationEngine
from reservation_engine.application.notifier import TransactionNotifier
from reservation_engine.application.projections import TransactionSnapshot
from reservation_engine.config import Settings
from reservation_engine.domain.state_machine import TransactionStatus
from reservation_engine.infrastructure.collaborators.clock import Clock
from reservation_engine.infrastructure.db.session import SessionFactory, unit_of_work
from reservation_engine.infrastructure.repositories.transaction_repository import (
    TransactionRepository,
)

logger = logging.getLogger(__name__)


class TimeoutReaper:
    """
    Enforces the payment deadline (-> EXPIRED) and the organizer
    confirmation window (-> CANCELLED).

    Each transaction is reaped in its own unit of work. Losing the status
    compare-and-set to a concurrent user action is a silent no-op.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock,
        settings: Settings,
        notifier: TransactionNotifier,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.settings = settings
        self.notifier = notifier

    def expire(self, transaction_id: str) -> bool:
        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            transaction = TransactionRepository(db).lock_by_id(transaction_id)
            if (
                transaction is None
                or transaction.status != TransactionStatus.WAITING_PAYMENT
                or transaction.expires_at >= now
            ):
                return False

            expired = CompensationEngine(db).rollback(
                transaction,
                expected={TransactionStatus.WAITING_PAYMENT},
                to_status=TransactionStatus.EXPIRED,
                now=now,
            )
            if not expired:
                return False
            snapshot = TransactionSnapshot.from_model(transaction)

        logger.info("Transaction expired. transaction_id=%s", transaction_id)
        self.notifier.transaction_expired(snapshot)
        return True

    def auto_cancel(self, transaction_id: str) -> bool:
        now = self.clock.now()
        cutoff = now - self.settings.confirmation_grace
        with unit_of_work(self.session_factory) as db:
            transaction = TransactionRepository(db).lock_by_id(transaction_id)
            if (
                transaction is None
                or transaction.status != TransactionStatus.WAITING_CONFIRMATION
                or transaction.waiting_confirmation_at is None
                or transaction.waiting_confirmation_at >= cutoff
            ):
                return False

            cancelled = CompensationEngine(db).rollback(
                transaction,
                expected={TransactionStatus.WAITING_CONFIRMATION},
                to_status=TransactionStatus.CANCELLED,
                now=now,
            )
            if not cancelled:
                return False
            snapshot = TransactionSnapshot.from_model(transaction)

        logger.info("Transaction auto-cancelled. transaction_id=%s", transaction_id)
        self.notifier.transaction_cancelled(snapshot, automatic=True)
        return True

    def sweep_expired(self) -> int:
        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            candidates = TransactionRepository(db).list_ids_waiting_payment_past_deadline(now)
        return self._reap_each(candidates, self.expire, "expire")

    def sweep_auto_cancelled(self) -> int:
        cutoff = self.clock.now() - self.settings.confirmation_grace
        with unit_of_work(self.session_factory) as db:
            candidates = TransactionRepository(db).list_ids_waiting_confirmation_since(cutoff)
        return self._reap_each(candidates, self.auto_cancel, "auto_cancel")

    def reap_transaction(self, transaction_id: str) -> bool:
        """Lazy path for reads of a single transaction."""
        return self.expire(transaction_id) or self.auto_cancel(transaction_id)

    def reap_user(self, user_id: str) -> int:
        """Lazy path for a user's transaction list."""
        now = self.clock.now()
        cutoff = now - self.settings.confirmation_grace
        with unit_of_work(self.session_factory) as db:
            repository = TransactionRepository(db)
            overdue = repository.list_ids_waiting_payment_past_deadline(now, user_id=user_id)
            stale = repository.list_ids_waiting_confirmation_since(cutoff, user_id=user_id)
        return (
            self._reap_each(overdue, self.expire, "expire")
            + self._reap_each(stale, self.auto_cancel, "auto_cancel")
        )

    def _reap_each(self, transaction_ids: list[str], reap, action: str) -> int:
        reaped = 0
        for transaction_id in transaction_ids:
            try:
                if reap(transaction_id):
                    reaped += 1
            except Exception:
                logger.exception(
                    "Reaper failed. action=%s transaction_id=%s",
                    action,
                    transaction_id,
                )
        if transaction_ids:
            logger.info(
                "Reaper sweep finished. action=%s candidates=%s reaped=%s",
                action,
                len(transaction_ids),
                reaped,
            )
        return reaped


class ReaperThread(threading.Thread):
    """Runs both sweeps every ``interval_seconds`` until stopped."""

    def __init__(self, reaper: TimeoutReaper, interval_seconds: float):
        super().__init__(name="timeout-reaper", daemon=True)
        self.reaper = reaper
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.info("Reaper thread started. interval=%.1fs", self.interval_seconds)
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.reaper.sweep_expired()
                self.reaper.sweep_auto_cancelled()
            except Exception:
                logger.exception("Reaper sweep crashed; retrying next interval")
        logger.info("Reaper thread stopped.")

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        self.join(timeout)
