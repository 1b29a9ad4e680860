# src/reservation_engine/application/voucher_service.py

from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from reservation_engine.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from reservation_engine.domain.pricing import DiscountKind
from reservation_engine.infrastructure.collaborators.clock import Clock
from reservation_engine.infrastructure.db.models import Voucher
from reservation_engine.infrastructure.db.session import SessionFactory, unit_of_work
from reservation_engine.infrastructure.repositories.catalog_repository import CatalogRepository
from reservation_engine.infrastructure.repositories.discount_repository import VoucherRepository

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class VoucherView:
    id: str
    event_id: str
    code: str
    discount_kind: DiscountKind
    discount_amount: int
    valid_from: datetime
    valid_to: datetime
    usage_limit: int
    used_count: int

    @classmethod
    def from_model(cls, voucher: Voucher) -> "VoucherView":
        return cls(
            id=voucher.id,
            event_id=voucher.event_id,
            code=voucher.code,
            discount_kind=voucher.discount_kind,
            discount_amount=voucher.discount_amount,
            valid_from=voucher.valid_from,
            valid_to=voucher.valid_to,
            usage_limit=voucher.usage_limit,
            used_count=voucher.used_count,
        )


class VoucherService:

    def __init__(self, session_factory: SessionFactory, clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    def create_voucher(
        self,
        organizer_user_id: str,
        event_id: str,
        code: str,
        discount_kind: DiscountKind,
        discount_amount: int,
        valid_from: datetime,
        valid_to: datetime,
        usage_limit: int,
    ) -> VoucherView:
        code = (code or "").strip()
        valid_from = _as_utc(valid_from)
        valid_to = _as_utc(valid_to)
        if not code:
            raise ValidationError("Voucher code is required")
        if valid_to <= valid_from:
            raise ValidationError("Voucher end date must be after its start date")
        if discount_amount <= 0:
            raise ValidationError("Discount amount must be greater than 0")
        if discount_kind == DiscountKind.PERCENTAGE and discount_amount > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        if usage_limit <= 0:
            raise ValidationError("Usage limit must be greater than 0")

        now = self.clock.now()
        with unit_of_work(self.session_factory) as db:
            event = CatalogRepository(db).get_event(event_id)
            if event is None:
                raise NotFoundError("Event not found")
            if event.organizer_user_id != organizer_user_id:
                raise PermissionDeniedError("You can only create vouchers for your own events")
            if event.end_at < now:
                raise ValidationError("Cannot create a voucher for an event that has ended")

            voucher_repository = VoucherRepository(db)
            if voucher_repository.find_by_event_and_code(event_id, code) is not None:
                raise ConflictError(f"Voucher code {code} already exists for this event")

            voucher = voucher_repository.add(
                Voucher(
                    event_id=event_id,
                    code=code,
                    discount_kind=discount_kind,
                    discount_amount=discount_amount,
                    valid_from=valid_from,
                    valid_to=valid_to,
                    usage_limit=usage_limit,
                    used_count=0,
                    created_at=now,
                )
            )
            view = VoucherView.from_model(voucher)

        logger.info(
            "Voucher created. voucher_id=%s event_id=%s code=%s kind=%s amount=%s limit=%s",
            view.id,
            event_id,
            code,
            discount_kind.value,
            discount_amount,
            usage_limit,
        )
        return view

    def list_vouchers(self, event_id: str) -> list[VoucherView]:
        with unit_of_work(self.session_factory) as db:
            return [
                VoucherView.from_model(voucher)
                for voucher in VoucherRepository(db).list_by_event(event_id)
            ]
