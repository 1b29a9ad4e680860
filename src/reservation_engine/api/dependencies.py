# src/reservation_engine/api/dependencies.py

from functools import lru_cache

from fastapi import Depends, Header

from reservation_engine.application.checkin_service import CheckInService
from reservation_engine.application.inventory_service import InventoryService
from reservation_engine.application.notifier import TransactionNotifier
from reservation_engine.application.reaper import TimeoutReaper
from reservation_engine.application.reward_service import RewardService
from reservation_engine.application.transaction_service import TransactionService
from reservation_engine.application.voucher_service import VoucherService
from reservation_engine.config import Settings, load_settings
from reservation_engine.domain.exceptions import PermissionDeniedError
from reservation_engine.infrastructure.collaborators.clock import Clock, SystemClock
from reservation_engine.infrastructure.collaborators.email import build_email_sender
from reservation_engine.infrastructure.collaborators.notifications import LoggingNotificationSink
from reservation_engine.infrastructure.collaborators.tokens import (
    SecretsTokenGenerator,
    TokenGenerator,
)
from reservation_engine.infrastructure.db.session import SessionFactory, SessionLocal, unit_of_work
from reservation_engine.infrastructure.repositories.catalog_repository import CatalogRepository

ORGANIZER_ROLE = "ORGANIZER"


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def get_session_factory() -> SessionFactory:
    return SessionLocal


def get_clock() -> Clock:
    return SystemClock()


def get_tokens() -> TokenGenerator:
    return SecretsTokenGenerator()


def get_notifier(settings: Settings = Depends(get_settings)) -> TransactionNotifier:
    return TransactionNotifier(
        notifications=LoggingNotificationSink(),
        emails=build_email_sender(settings.mail),
        settings=settings,
    )


def get_current_user_id(x_user_id: str = Header(...)) -> str:
    """The acting user, resolved by the authentication layer in front of this service."""
    return x_user_id


def get_current_organizer_id(
    user_id: str = Depends(get_current_user_id),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> str:
    with unit_of_work(session_factory) as db:
        user = CatalogRepository(db).get_user(user_id)
        if user is None or user.role != ORGANIZER_ROLE:
            raise PermissionDeniedError("Only organizers can perform this action")
    return user_id


def get_reaper(
    session_factory: SessionFactory = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
    notifier: TransactionNotifier = Depends(get_notifier),
) -> TimeoutReaper:
    return TimeoutReaper(session_factory, clock, settings, notifier)


def get_transaction_service(
    session_factory: SessionFactory = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    tokens: TokenGenerator = Depends(get_tokens),
    notifier: TransactionNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
    reaper: TimeoutReaper = Depends(get_reaper),
) -> TransactionService:
    return TransactionService(session_factory, clock, tokens, notifier, settings, reaper)


def get_checkin_service(
    session_factory: SessionFactory = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> CheckInService:
    return CheckInService(session_factory, clock)


def get_reward_service(
    session_factory: SessionFactory = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    tokens: TokenGenerator = Depends(get_tokens),
    settings: Settings = Depends(get_settings),
) -> RewardService:
    return RewardService(session_factory, clock, tokens, settings)


def get_voucher_service(
    session_factory: SessionFactory = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> VoucherService:
    return VoucherService(session_factory, clock)


def get_inventory_service(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> InventoryService:
    return InventoryService(session_factory)
