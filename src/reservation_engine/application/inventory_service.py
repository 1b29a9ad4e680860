# src/reservation_engine/application/inventory_service.py

from dataclasses import dataclass

from reservation_engine.domain.exceptions import NotFoundError
from reservation_engine.infrastructure.db.models import TicketCategory
from reservation_engine.infrastructure.db.session import SessionFactory, unit_of_work
from reservation_engine.infrastructure.repositories.ticket_category_repository import (
    TicketCategoryRepository,
)


@dataclass(frozen=True)
class CategoryStats:
    id: str
    event_id: str
    name: str
    price: int
    total_seats: int
    available_seats: int
    sold: int

    @classmethod
    def from_model(cls, category: TicketCategory) -> "CategoryStats":
        return cls(
            id=category.id,
            event_id=category.event_id,
            name=category.name,
            price=category.price,
            total_seats=category.total_seats,
            available_seats=category.available_seats,
            sold=category.sold,
        )


class InventoryService:

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_category(self, category_id: str) -> CategoryStats:
        with unit_of_work(self.session_factory) as db:
            category = TicketCategoryRepository(db).get_by_id(category_id)
            if category is None:
                raise NotFoundError("Ticket category not found")
            return CategoryStats.from_model(category)

    def list_categories(self, event_id: str) -> list[CategoryStats]:
        with unit_of_work(self.session_factory) as db:
            return [
                CategoryStats.from_model(category)
                for category in TicketCategoryRepository(db).list_by_event(event_id)
            ]
