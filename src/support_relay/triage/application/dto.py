"""
Triage Application DTOs
========================

Data Transfer Objects for the relay API layer.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from support_relay.triage.domain import IncomingMessage, Ticket, TriageResult


OutcomeStr = Literal["rejected", "faq_answered", "llm_answered", "ticket_forwarded"]


# ========== Request DTOs ==========

class IncomingMessageRequest(BaseModel):
    """A user message handed over by the messenger gateway."""
    user_id: str = Field(..., min_length=1, description="Messenger user id")
    display_name: str = Field(..., description="User's display name")
    text: str = Field(..., min_length=1, description="Message text")
    language_code: str = Field(default="en", description="User's language code")
    messenger: str = Field(default="telegram", min_length=1, description="Messenger identifier")

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v):
        """Messenger user ids are frequently numeric."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("text")
    @classmethod
    def validate_text_length(cls, v: str) -> str:
        """Messenger messages are capped at 4096 characters."""
        if len(v) > 4096:
            raise ValueError("Message too long (max 4096 characters)")
        return v

    def to_domain(self) -> IncomingMessage:
        return IncomingMessage(
            user_id=self.user_id,
            display_name=self.display_name,
            text=self.text,
            language_code=self.language_code,
            messenger=self.messenger
        )


# ========== Response DTOs ==========

class TriageResponse(BaseModel):
    """Response model for a triaged message."""
    outcome: OutcomeStr
    ticket_id: Optional[int] = None
    reply_text: Optional[str] = None
    forwarded_to_staff: bool = False
    processing_time_ms: int

    @classmethod
    def from_result(cls, result: TriageResult, processing_time_ms: int) -> "TriageResponse":
        return cls(
            outcome=result.outcome.value,
            ticket_id=result.ticket_id,
            reply_text=result.reply_text,
            forwarded_to_staff=result.forwarded_to_staff,
            processing_time_ms=processing_time_ms
        )


class TicketDTO(BaseModel):
    """Ticket as exposed over the API."""
    ticket_id: int
    label: str
    user_id: str
    display_name: str
    messenger: str
    status: Literal["open", "closed"]
    auto_replied: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, ticket: Ticket) -> "TicketDTO":
        return cls(
            ticket_id=ticket.ticket_id,
            label=ticket.label,
            user_id=ticket.user_id,
            display_name=ticket.display_name,
            messenger=ticket.messenger,
            status=ticket.status,
            auto_replied=ticket.auto_replied,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at
        )
