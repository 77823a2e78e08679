"""In-memory ticket repository."""

import pytest

from support_relay.core import RepositoryException, ResourceNotFoundException
from support_relay.triage.infrastructure import InMemoryTicketRepository


@pytest.mark.asyncio
async def test_tickets_get_sequential_ids_and_labels():
    repo = InMemoryTicketRepository(first_ticket_id=41)

    first = await repo.create_ticket("1", "Ann", "telegram")
    second = await repo.create_ticket("2", "Bob", "telegram")

    assert (first.ticket_id, second.ticket_id) == (41, 42)
    assert second.label == "#T000042"
    assert first.is_open


@pytest.mark.asyncio
async def test_lookup_is_per_messenger():
    repo = InMemoryTicketRepository()
    ticket = await repo.create_ticket("12345", "Ann", "telegram")

    assert await repo.get_ticket_by_user_id("12345", "telegram") is ticket
    assert await repo.get_ticket_by_user_id("12345", "signal") is None
    assert await repo.get_ticket_by_user_id("999", "telegram") is None


@pytest.mark.asyncio
async def test_closed_tickets_are_not_returned():
    repo = InMemoryTicketRepository()
    ticket = await repo.create_ticket("12345", "Ann", "telegram")

    closed = await repo.close_ticket(ticket.ticket_id)

    assert not closed.is_open
    assert closed.updated_at is not None
    assert await repo.get_ticket_by_user_id("12345", "telegram") is None


@pytest.mark.asyncio
async def test_newest_open_ticket_wins():
    repo = InMemoryTicketRepository()
    await repo.create_ticket("12345", "Ann", "telegram")
    newer = await repo.create_ticket("12345", "Ann", "telegram")

    assert await repo.get_ticket_by_user_id("12345", "telegram") is newer


@pytest.mark.asyncio
async def test_record_message_tracks_auto_reply():
    repo = InMemoryTicketRepository()
    ticket = await repo.create_ticket("12345", "Ann", "telegram")

    await repo.record_message(ticket.ticket_id, "hello", auto_replied=False)
    assert not ticket.auto_replied

    await repo.record_message(ticket.ticket_id, "install?", auto_replied=True)
    assert ticket.auto_replied

    messages = await repo.get_messages(ticket.ticket_id)
    assert [(m.text, m.auto_replied) for m in messages] == [("hello", False), ("install?", True)]


@pytest.mark.asyncio
async def test_unknown_ticket_raises():
    repo = InMemoryTicketRepository()

    with pytest.raises(ResourceNotFoundException) as exc_info:
        await repo.record_message(99, "x", auto_replied=False)
    assert exc_info.value.resource_id == 99

    with pytest.raises(RepositoryException):
        await repo.close_ticket(99)
    assert await repo.get_by_id(99) is None
