"""
Triage Infrastructure Layer
============================

Infrastructure implementations for the message-triage module.

Contains:
- Repositories: ticket storage
- External: LLM adapter, messenger webhook, relay config loader
"""

from support_relay.triage.infrastructure.repositories import (
    InMemoryTicketRepository,
    TicketMessage,
)
from support_relay.triage.infrastructure.external import (
    LLMClientAdapter,
    RelayConfigManager,
    CircuitBreaker,
    CircuitState,
    WebhookMessenger,
)

__all__ = [
    "InMemoryTicketRepository",
    "TicketMessage",
    "LLMClientAdapter",
    "RelayConfigManager",
    "CircuitBreaker",
    "CircuitState",
    "WebhookMessenger",
]
