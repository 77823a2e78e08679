"""
Shared fixtures and fakes for the relay tests.

The fakes stand in for the collaborators of the triage pipeline so tests
can observe every outbound message without a messenger or an LLM.
"""

import os
from types import SimpleNamespace
from typing import List, Optional, Tuple

import pytest

from support_relay.config import RelayConfig
from support_relay.triage.application import IKnowledgeResponder, IMessenger
from support_relay.triage.domain import IncomingMessage

# Keep the environment predictable for Settings() built at import time.
os.environ.setdefault("ENVIRONMENT", "development")

STAFF_CHAT_ID = "-123456789"

BASE_CONFIG = {
    "language": {
        "dear": "Hi",
        "regards": "Regards,",
        "automated_reply_author": "Support Bot",
        "automated_reply": "This is an automated reply.",
        "automated_reply_sent": "Automated reply was sent to the user.",
        "confirmation_message": "Thank you for contacting us.",
        "ticket": "Ticket",
        "from": "from",
        "language": "Language",
        "blocked_spam": "Too many messages",
    },
    "clean_replies": False,
    "use_llm": False,
    "autoreply": [],
    "show_auto_replied": False,
    "autoreply_confirmation": True,
    "show_user_ticket": False,
    "spam_window_seconds": 300,
    "spam_max_messages": 5,
    "staffchat_id": STAFF_CHAT_ID,
    "staffchat_type": "telegram",
    "parse_mode": "Markdown",
}


class FakeMessenger(IMessenger):
    """Records outbound traffic; can be told to fail for given targets."""

    def __init__(self, fail_targets: Optional[set] = None):
        self.sent: List[Tuple[str, str, str]] = []
        self.replies: List[Tuple[IncomingMessage, str]] = []
        self.fail_targets = fail_targets or set()

    async def send_message(self, target_id: str, channel_kind: str, text: str) -> Optional[str]:
        if target_id in self.fail_targets:
            raise RuntimeError(f"delivery to {target_id} failed")
        self.sent.append((target_id, channel_kind, text))
        return f"msg-{len(self.sent)}"

    async def reply(self, message: IncomingMessage, text: str) -> None:
        self.replies.append((message, text))

    def sent_to(self, target_id: str) -> List[str]:
        return [text for target, _, text in self.sent if target == target_id]


class StubResponder(IKnowledgeResponder):
    """Knowledge responder returning a canned answer or raising."""

    def __init__(self, answer: Optional[str] = None, error: Optional[Exception] = None):
        self._answer = answer
        self._error = error
        self.calls: List[IncomingMessage] = []

    async def answer(self, message: IncomingMessage) -> Optional[str]:
        self.calls.append(message)
        if self._error is not None:
            raise self._error
        return self._answer


class FakeLLMClient:
    """LLM client double; returns ``content`` wrapped like a completion result."""

    def __init__(self, content=None, error: Optional[Exception] = None, result=...):
        self._content = content
        self._error = error
        self._result = result
        self.calls: List[dict] = []

    async def chat_completion(self, messages, operation="chat_completion"):
        self.calls.append({"messages": messages, "operation": operation})
        if self._error is not None:
            raise self._error
        if self._result is not ...:
            return self._result
        return SimpleNamespace(content=self._content)


@pytest.fixture
def make_config():
    """Factory building a RelayConfig from the base test config plus overrides."""
    def _make(**overrides) -> RelayConfig:
        data = {**BASE_CONFIG, **overrides}
        return RelayConfig(**data)
    return _make


@pytest.fixture
def relay_config(make_config) -> RelayConfig:
    return make_config()


@pytest.fixture
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture
def incoming_message() -> IncomingMessage:
    return IncomingMessage(
        user_id="12345",
        display_name="TestUser",
        text="Test message",
        language_code="en",
        messenger="telegram",
    )
