# src/reservation_engine/infrastructure/repositories/catalog_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from reservation_engine.infrastructure.db.models import Event, User


class CatalogRepository:
    """Read access to the users and events the engine references."""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_event(self, event_id: str) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()
