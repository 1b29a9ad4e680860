"""One reaper pass, for cron: expires unpaid transactions and auto-cancels unconfirmed ones."""

import logging

from reservation_engine.application.notifier import TransactionNotifier
from reservation_engine.application.reaper import TimeoutReaper
from reservation_engine.config import load_settings
from reservation_engine.infrastructure.collaborators.clock import SystemClock
from reservation_engine.infrastructure.collaborators.email import build_email_sender
from reservation_engine.infrastructure.collaborators.notifications import LoggingNotificationSink
from reservation_engine.infrastructure.db.session import SessionLocal

logger = logging.getLogger("sweep_timeouts")


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    notifier = TransactionNotifier(
        notifications=LoggingNotificationSink(),
        emails=build_email_sender(settings.mail),
        settings=settings,
    )
    reaper = TimeoutReaper(SessionLocal, SystemClock(), settings, notifier)

    expired = reaper.sweep_expired()
    auto_cancelled = reaper.sweep_auto_cancelled()
    logger.info("Sweep complete. expired=%s auto_cancelled=%s", expired, auto_cancelled)


if __name__ == "__main__":
    main()
