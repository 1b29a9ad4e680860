# tests/integration/test_inventory.py

from datetime import datetime, timedelta, timezone
import threading

import pytest

from reservation_engine.domain.exceptions import (
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from reservation_engine.infrastructure.db.models import Event, TicketCategory, User
from reservation_engine.infrastructure.db.session import unit_of_work
from reservation_engine.infrastructure.repositories.ticket_category_repository import (
    TicketCategoryRepository,
)

START_AT = datetime(2026, 3, 11, 19, 0, tzinfo=timezone.utc)


def _seats(session_factory, category_id):
    with unit_of_work(session_factory) as db:
        category = db.get(TicketCategory, category_id)
        return category.available_seats, category.sold, category.total_seats


def test_reserve_and_release_keep_seats_balanced(session_factory, world):
    with unit_of_work(session_factory) as db:
        TicketCategoryRepository(db).reserve(world.category_id, 4)

    assert _seats(session_factory, world.category_id) == (6, 4, 10)

    with unit_of_work(session_factory) as db:
        TicketCategoryRepository(db).release(world.category_id, 3)

    assert _seats(session_factory, world.category_id) == (9, 1, 10)


def test_reserve_more_than_available(session_factory, world):
    with pytest.raises(InsufficientInventoryError):
        with unit_of_work(session_factory) as db:
            TicketCategoryRepository(db).reserve(world.category_id, 11)

    assert _seats(session_factory, world.category_id) == (10, 0, 10)


def test_reserve_exactly_remaining_then_nothing_left(session_factory, world):
    with unit_of_work(session_factory) as db:
        TicketCategoryRepository(db).reserve(world.category_id, 10)

    with pytest.raises(InsufficientInventoryError):
        with unit_of_work(session_factory) as db:
            TicketCategoryRepository(db).reserve(world.category_id, 1)

    assert _seats(session_factory, world.category_id) == (0, 10, 10)


@pytest.mark.parametrize("quantity", [0, -2])
def test_reserve_rejects_non_positive_quantity(session_factory, world, quantity):
    with pytest.raises(ValidationError):
        with unit_of_work(session_factory) as db:
            TicketCategoryRepository(db).reserve(world.category_id, quantity)


def test_reserve_unknown_category(session_factory, world):
    with pytest.raises(NotFoundError):
        with unit_of_work(session_factory) as db:
            TicketCategoryRepository(db).reserve("missing", 1)


def test_release_more_than_sold(session_factory, world):
    with pytest.raises(ValidationError):
        with unit_of_work(session_factory) as db:
            TicketCategoryRepository(db).release(world.category_id, 1)


def test_concurrent_reservations_never_oversell(file_session_factory):
    with unit_of_work(file_session_factory) as db:
        organizer = User(name="Organizer", email="org@example.com", role="ORGANIZER", point_balance=0)
        db.add(organizer)
        db.flush()
        event = Event(
            organizer_user_id=organizer.id,
            title="Sold Out Show",
            venue="Hall A",
            start_at=START_AT,
            end_at=START_AT + timedelta(hours=4),
        )
        db.add(event)
        db.flush()
        category = TicketCategoryRepository(db).create_category(event.id, "Regular", 100000, 10)
        db.flush()
        category_id = category.id

    barrier = threading.Barrier(2)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def reserve_eight():
        barrier.wait()
        try:
            with unit_of_work(file_session_factory) as db:
                TicketCategoryRepository(db).reserve(category_id, 8)
            outcome = "reserved"
        except InsufficientInventoryError:
            outcome = "rejected"
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=reserve_eight) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(outcomes) == ["rejected", "reserved"]
    assert _seats(file_session_factory, category_id) == (2, 8, 10)
