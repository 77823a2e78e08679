"""
Triage Infrastructure Repositories
====================================

In-process implementation of the ticket repository.

Tickets live for the lifetime of the process; a persistent store plugs in
behind the same ITicketRepository interface.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from support_relay.core import ResourceNotFoundException
from support_relay.triage.application import ITicketRepository
from support_relay.triage.domain import Ticket


@dataclass
class TicketMessage:
    """A user message recorded on a ticket."""
    text: str
    auto_replied: bool
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryTicketRepository(ITicketRepository):
    """Thread-safe in-memory ticket storage."""

    def __init__(self, first_ticket_id: int = 1):
        self._tickets: Dict[int, Ticket] = {}
        self._messages: Dict[int, List[TicketMessage]] = {}
        self._next_id = first_ticket_id
        self._lock = threading.Lock()

    async def get_ticket_by_user_id(self, user_id: str, messenger: str) -> Optional[Ticket]:
        """Get the most recent open ticket of a user on a messenger."""
        with self._lock:
            candidates = [
                t for t in self._tickets.values()
                if t.user_id == user_id and t.messenger == messenger and t.is_open
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda t: t.ticket_id)

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        with self._lock:
            return self._tickets.get(ticket_id)

    async def create_ticket(self, user_id: str, display_name: str, messenger: str) -> Ticket:
        """Open a new ticket with the next sequential id."""
        with self._lock:
            ticket = Ticket(
                ticket_id=self._next_id,
                user_id=user_id,
                display_name=display_name,
                messenger=messenger
            )
            self._tickets[ticket.ticket_id] = ticket
            self._messages[ticket.ticket_id] = []
            self._next_id += 1
        return ticket

    async def record_message(self, ticket_id: int, text: str, auto_replied: bool) -> None:
        """Append a message and remember whether it was answered automatically."""
        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise ResourceNotFoundException("Ticket", ticket_id)
            self._messages[ticket_id].append(TicketMessage(text=text, auto_replied=auto_replied))
            ticket.mark_auto_replied(auto_replied)

    async def close_ticket(self, ticket_id: int) -> Ticket:
        with self._lock:
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise ResourceNotFoundException("Ticket", ticket_id)
            ticket.close()
        return ticket

    async def get_messages(self, ticket_id: int) -> List[TicketMessage]:
        with self._lock:
            return list(self._messages.get(ticket_id, []))
