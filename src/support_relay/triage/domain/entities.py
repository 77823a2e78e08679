"""
Triage Domain Entities
======================

Domain entities for the message-triage module.

Contains pure Python business objects: the incoming message, the support
ticket and the outcome of running a message through the pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from support_relay.config import TicketStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IncomingMessage:
    """
    A user message as received from the messenger.

    Immutable for the duration of one pipeline run.
    """
    user_id: str
    display_name: str
    text: str
    language_code: str
    messenger: str


@dataclass
class Ticket:
    """
    Support ticket entity.

    A conversation thread between one messenger user and staff.
    """
    ticket_id: int
    user_id: str
    display_name: str
    messenger: str
    status: str = TicketStatus.OPEN
    auto_replied: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == TicketStatus.OPEN

    @property
    def label(self) -> str:
        """Staff-facing ticket tag, e.g. ``#T000042``."""
        return f"#T{self.ticket_id:06d}"

    def close(self) -> None:
        self.status = TicketStatus.CLOSED
        self.updated_at = _utcnow()

    def mark_auto_replied(self, auto_replied: bool) -> None:
        self.auto_replied = auto_replied
        self.updated_at = _utcnow()


class TriageOutcome(str, Enum):
    """Terminal state reached by a message."""
    REJECTED = "rejected"
    FAQ_ANSWERED = "faq_answered"
    LLM_ANSWERED = "llm_answered"
    TICKET_FORWARDED = "ticket_forwarded"


@dataclass
class TriageResult:
    """Outcome of a single pipeline run."""
    outcome: TriageOutcome
    reply_text: Optional[str] = None
    ticket_id: Optional[int] = None
    forwarded_to_staff: bool = False


@dataclass
class UserSpamState:
    """Messages counted for one user in the current spam window."""
    count: int
    window_started_at: float


@dataclass(frozen=True)
class SpamCheckResult:
    """Verdict of the spam guard for one message."""
    blocked: bool
    count: int
