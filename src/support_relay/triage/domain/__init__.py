"""
Triage Domain Layer
===================

Domain layer for the message-triage module.

Contains:
- Entities: IncomingMessage, Ticket, TriageResult and spam bookkeeping
- Value Objects: markup escaping, FAQ matching, reply and prompt builders

This layer is framework-agnostic and contains pure business logic.
"""

from support_relay.triage.domain.entities import (
    IncomingMessage,
    Ticket,
    TriageOutcome,
    TriageResult,
    UserSpamState,
    SpamCheckResult,
)
from support_relay.triage.domain.value_objects import (
    MarkupFormatter,
    escape_markup,
    FaqMatcher,
    ReplyComposer,
    KnowledgePromptBuilder,
)

__all__ = [
    "IncomingMessage",
    "Ticket",
    "TriageOutcome",
    "TriageResult",
    "UserSpamState",
    "SpamCheckResult",
    "MarkupFormatter",
    "escape_markup",
    "FaqMatcher",
    "ReplyComposer",
    "KnowledgePromptBuilder",
]
