# tests/integration/test_checkin.py

import pytest

from reservation_engine.domain.exceptions import (
    InvalidTicketError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def settled(transaction_service, world):
    created = transaction_service.create_transaction(
        user_id=world.customer_id,
        event_id=world.event_id,
        ticket_category_id=world.category_id,
        quantity=2,
    )
    transaction_service.submit_payment_proof(created.id, world.customer_id, "proof")
    return transaction_service.confirm(created.id, world.organizer_id)


def test_check_in_marks_the_ticket(checkin_service, settled, clock):
    token = settled.tickets[0].check_in_token

    result = checkin_service.check_in(token)

    assert result.success is True
    assert result.message == "Check-in successful"
    assert result.attendee_name == "Alice Customer"
    assert result.event_title == "Java Jazz Night"
    assert result.category_name == "Regular"
    assert result.checked_in_at == clock.now()


def test_second_scan_is_informational_and_keeps_first_time(checkin_service, settled, clock):
    token = settled.tickets[0].check_in_token
    first = checkin_service.check_in(token)
    clock.advance(minutes=15)

    second = checkin_service.check_in(token)

    assert second.success is False
    assert second.message == "Ticket already checked in"
    assert second.checked_in_at == first.checked_in_at


def test_tickets_are_checked_in_independently(checkin_service, settled, transaction_service, world):
    checkin_service.check_in(settled.tickets[0].check_in_token)

    tickets = transaction_service.get_tickets(settled.id, world.customer_id).tickets
    states = {ticket.check_in_token: ticket.checked_in for ticket in tickets}

    assert states[settled.tickets[0].check_in_token] is True
    assert states[settled.tickets[1].check_in_token] is False


def test_unknown_token(checkin_service, settled):
    with pytest.raises(NotFoundError):
        checkin_service.check_in("not-a-token")


def test_event_already_ended(checkin_service, settled, clock):
    clock.advance(days=11)

    with pytest.raises(InvalidTicketError) as exc_info:
        checkin_service.check_in(settled.tickets[0].check_in_token)

    assert isinstance(exc_info.value, ValidationError)
