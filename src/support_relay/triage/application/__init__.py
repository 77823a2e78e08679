"""
Triage Application Layer
=========================

Application layer for the message-triage module.

Contains:
- Services: spam guard, knowledge responder, triage orchestrator
- Collaborator interfaces: messenger, ticket repository, LLM client
- DTOs: Data transfer objects for API serialization
"""

from support_relay.triage.application.dto import (
    IncomingMessageRequest,
    TriageResponse,
    TicketDTO,
)
from support_relay.triage.application.services import (
    SpamGuard,
    KnowledgeResponder,
    TriageOrchestrator,
    IMessenger,
    ITicketRepository,
    ILLMClient,
    IKnowledgeResponder,
)

__all__ = [
    # DTOs
    "IncomingMessageRequest",
    "TriageResponse",
    "TicketDTO",
    # Services
    "SpamGuard",
    "KnowledgeResponder",
    "TriageOrchestrator",
    # Collaborator Interfaces
    "IMessenger",
    "ITicketRepository",
    "ILLMClient",
    "IKnowledgeResponder",
]
