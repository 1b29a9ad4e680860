import logging
import os
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from reservation_engine.api.dependencies import get_settings
from reservation_engine.api.errors import register_error_handlers
from reservation_engine.api.routes.routes import router
from reservation_engine.application.notifier import TransactionNotifier
from reservation_engine.application.reaper import ReaperThread, TimeoutReaper
from reservation_engine.infrastructure.collaborators.clock import SystemClock
from reservation_engine.infrastructure.collaborators.email import build_email_sender
from reservation_engine.infrastructure.collaborators.notifications import LoggingNotificationSink
from reservation_engine.infrastructure.db.session import SessionLocal, engine
from reservation_engine.infrastructure.db.models import Base

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="Reservation & Settlement Engine")

app.include_router(router)
register_error_handlers(app)
logger = logging.getLogger(__name__)

_reaper_thread: ReaperThread | None = None


def _wait_for_db() -> None:
    # Handles the common case where API starts before Postgres is ready.
    max_retries = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
    retry_delay_seconds = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))

    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


def _start_reaper() -> None:
    global _reaper_thread

    notifier = TransactionNotifier(
        notifications=LoggingNotificationSink(),
        emails=build_email_sender(settings.mail),
        settings=settings,
    )
    reaper = TimeoutReaper(SessionLocal, SystemClock(), settings, notifier)
    _reaper_thread = ReaperThread(reaper, settings.reaper_interval_seconds)
    _reaper_thread.start()


@app.on_event("startup")
def on_startup() -> None:
    _wait_for_db()
    Base.metadata.create_all(bind=engine)
    if settings.reaper_enabled:
        _start_reaper()


@app.on_event("shutdown")
def on_shutdown() -> None:
    if _reaper_thread is not None:
        _reaper_thread.stop(timeout=5)
