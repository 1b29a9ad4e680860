# src/reservation_engine/infrastructure/repositories/ticket_category_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from reservation_engine.infrastructure.db.models import TicketCategory
from reservation_engine.domain.exceptions import (
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)


class TicketCategoryRepository:
    """
    Inventory ledger: seat reservation and release per ticket category.
    Both operations run inside the caller's unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    def lock_category(self, category_id: str) -> TicketCategory:
        """
        SELECT ... FOR UPDATE
        Prevents race conditions; contention stays local to one category.
        """

        stmt = (
            select(TicketCategory)
            .where(TicketCategory.id == category_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        category = self.db.execute(stmt).scalar_one_or_none()

        if not category:
            raise NotFoundError("Ticket category not found")

        return category

    def get_by_id(self, category_id: str) -> TicketCategory | None:
        stmt = select(TicketCategory).where(TicketCategory.id == category_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_event(self, event_id: str) -> list[TicketCategory]:
        stmt = (
            select(TicketCategory)
            .where(TicketCategory.event_id == event_id)
            .order_by(TicketCategory.price)
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_category(
        self,
        event_id: str,
        name: str,
        price: int,
        total_seats: int,
    ) -> TicketCategory:
        if price < 0:
            raise ValidationError("Price cannot be negative")
        if total_seats < 0:
            raise ValidationError("Total seats cannot be negative")

        category = TicketCategory(
            event_id=event_id,
            name=name,
            price=price,
            total_seats=total_seats,
            available_seats=total_seats,
            sold=0,
        )
        self.db.add(category)
        return category

    def reserve(
        self,
        category_id: str,
        quantity: int,
    ) -> TicketCategory:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        category = self.lock_category(category_id)

        if category.available_seats < quantity:
            raise InsufficientInventoryError(
                f"Not enough seats available: requested {quantity}, "
                f"available {category.available_seats}"
            )

        category.available_seats = category.available_seats - quantity
        category.sold = category.sold + quantity
        self.db.flush()
        return category

    def release(
        self,
        category_id: str,
        quantity: int,
    ) -> TicketCategory:

        category = self.lock_category(category_id)

        if quantity <= 0 or quantity > category.sold:
            raise ValidationError(
                f"Cannot release {quantity} seats, only {category.sold} sold"
            )

        category.available_seats = category.available_seats + quantity
        category.sold = category.sold - quantity
        self.db.flush()
        return category
