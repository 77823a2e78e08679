"""
Triage Application Services
============================

Application services for the message-triage pipeline.

Orchestrates the spam guard, the FAQ table, the knowledge responder and the
ticket repository behind a single ``TriageOrchestrator.handle`` call.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Any

from support_relay.config import KnowledgeConfig, RelayConfig
from support_relay.core import ConfigurationException
from support_relay.shared.infrastructure.logging import get_logger, log_latency
from support_relay.triage.domain import (
    IncomingMessage,
    Ticket,
    TriageOutcome,
    TriageResult,
    UserSpamState,
    SpamCheckResult,
    FaqMatcher,
    MarkupFormatter,
    ReplyComposer,
    KnowledgePromptBuilder,
)

logger = get_logger(__name__)


# ========== Collaborator Interfaces ==========

class IMessenger(ABC):
    """Interface for outbound message delivery."""

    @abstractmethod
    async def send_message(self, target_id: str, channel_kind: str, text: str) -> Optional[str]:
        """Send text to a chat; returns a message handle when the transport gives one."""

    @abstractmethod
    async def reply(self, message: IncomingMessage, text: str) -> None:
        """Reply to the sender of an incoming message."""


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get_ticket_by_user_id(self, user_id: str, messenger: str) -> Optional[Ticket]:
        """Get the open ticket of a user on a messenger."""

    @abstractmethod
    async def create_ticket(self, user_id: str, display_name: str, messenger: str) -> Ticket:
        """Open a new ticket."""

    @abstractmethod
    async def record_message(self, ticket_id: int, text: str, auto_replied: bool) -> None:
        """Append a user message to a ticket."""


class ILLMClient(ABC):
    """Interface for LLM operations."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        operation: str = "chat_completion"
    ) -> Any:
        """Generate chat completion; result exposes ``content``."""


class IKnowledgeResponder(ABC):
    """Interface for knowledge-grounded automatic answers."""

    @abstractmethod
    async def answer(self, message: IncomingMessage) -> Optional[str]:
        """Answer from the knowledge base, or None when it has no answer."""


# ========== Spam Guard ==========

class SpamGuard:
    """
    Per-user message counter over a time window.

    A user may send ``max_messages`` messages per window; further messages
    are blocked without being counted. A window ends ``window_seconds``
    after its first message, so a quiet period always releases the user.

    Expired windows are swept at most once per window, so users who stop
    writing do not stay in memory.
    """

    def __init__(
        self,
        max_messages: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_messages = max_messages
        self._window_seconds = window_seconds
        self._clock = clock
        self._states: Dict[str, UserSpamState] = {}
        self._lock = threading.Lock()
        self._last_sweep: Optional[float] = None

    @classmethod
    def from_config(cls, config: RelayConfig) -> "SpamGuard":
        return cls(
            max_messages=config.spam_max_messages,
            window_seconds=config.spam_window_seconds
        )

    def check_and_record(self, user_id: str, now: Optional[float] = None) -> SpamCheckResult:
        """Count a message for ``user_id`` unless the user is over the limit."""
        now = self._clock() if now is None else now

        with self._lock:
            self._sweep_expired(now)
            state = self._states.get(user_id)
            if state is None or now - state.window_started_at > self._window_seconds:
                state = UserSpamState(count=0, window_started_at=now)
                self._states[user_id] = state

            if state.count >= self._max_messages:
                return SpamCheckResult(blocked=True, count=state.count)

            state.count += 1
            return SpamCheckResult(blocked=False, count=state.count)

    def _sweep_expired(self, now: float) -> None:
        # caller holds the lock
        if self._last_sweep is not None and now - self._last_sweep <= self._window_seconds:
            return
        self._last_sweep = now
        expired = [
            user_id for user_id, state in self._states.items()
            if now - state.window_started_at > self._window_seconds
        ]
        for user_id in expired:
            del self._states[user_id]
        if expired:
            logger.debug("Expired spam windows evicted", extra={"evicted": len(expired)})

    @property
    def tracked_users(self) -> int:
        with self._lock:
            return len(self._states)

    def count(self, user_id: str) -> int:
        with self._lock:
            state = self._states.get(user_id)
            return state.count if state else 0

    def reset(self, user_id: str) -> None:
        with self._lock:
            self._states.pop(user_id, None)


# ========== Knowledge Responder ==========

class KnowledgeResponder(IKnowledgeResponder):
    """
    Answers user questions from a fixed knowledge base through an LLM.

    The LLM client is built on first use and reused for the lifetime of the
    responder. Any failure is logged and reported as "no answer" so the
    pipeline can fall back to ticket routing.
    """

    def __init__(
        self,
        config: KnowledgeConfig,
        client_factory: Callable[[KnowledgeConfig], ILLMClient]
    ):
        self._config = config
        self._client_factory = client_factory
        self._client: Optional[ILLMClient] = None
        self._client_lock = asyncio.Lock()

    @property
    def config(self) -> KnowledgeConfig:
        return self._config

    async def get_client(self) -> ILLMClient:
        """Get or create the LLM client."""
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = self._client_factory(self._config)
        return self._client

    async def close(self) -> None:
        """Release the LLM client if it was ever built."""
        client, self._client = self._client, None
        close = getattr(client, "close", None)
        if close is not None:
            await close()

    async def answer(self, message: IncomingMessage) -> Optional[str]:
        """
        Ask the LLM to answer ``message`` from the knowledge base.

        Args:
            message: Incoming user message; its text is sent verbatim

        Returns:
            The raw answer text, or None when the model declined, returned
            nothing usable, failed or timed out
        """
        messages = KnowledgePromptBuilder.build_messages(
            message.text,
            self._config.knowledge,
            self._config.system_prompt
        )

        try:
            client = await self.get_client()
            with log_latency(logger, "knowledge_answer", user_id=message.user_id):
                response = await asyncio.wait_for(
                    client.chat_completion(messages, operation="knowledge_answer"),
                    timeout=self._config.timeout_seconds
                )
        except asyncio.TimeoutError:
            logger.warning(
                "LLM response timed out",
                extra={"user_id": message.user_id, "timeout_seconds": self._config.timeout_seconds}
            )
            return None
        except Exception as e:
            logger.error(
                f"Error in LLM response: {e}",
                extra={"user_id": message.user_id, "error_type": type(e).__name__}
            )
            return None

        content = getattr(response, "content", None) if response is not None else None

        if self._config.log_responses and content is not None:
            logger.info(
                f"LLM response for user {message.user_id} ({message.display_name})",
                extra={"question": message.text, "answer": content}
            )

        return self.normalize(content)

    def normalize(self, content: Optional[str]) -> Optional[str]:
        """Map empty content and the "no answer" sentinels to None."""
        if content is None:
            return None
        if not isinstance(content, str):
            content = str(content)
        stripped = content.strip()
        if not stripped or stripped in self._config.null_sentinels:
            return None
        return content


# ========== Triage Orchestrator ==========

class TriageOrchestrator:
    """
    Runs one incoming message through the triage pipeline.

    SpamCheck -> FaqCheck -> LlmCheck -> TicketRoute; every path ends with
    at most one user-facing message. Staff may additionally receive the
    ticket message.
    """

    def __init__(
        self,
        config: RelayConfig,
        messenger: IMessenger,
        tickets: ITicketRepository,
        spam_guard: SpamGuard,
        responder: Optional[IKnowledgeResponder] = None
    ):
        if config.use_llm and responder is None:
            raise ConfigurationException("use_llm is enabled but no knowledge responder was provided")

        self._config = config
        self._messenger = messenger
        self._tickets = tickets
        self._spam_guard = spam_guard
        self._responder = responder
        self._faq = FaqMatcher(config.autoreply, case_sensitive=config.autoreply_case_sensitive)
        self._composer = ReplyComposer(config.language, MarkupFormatter(config.parse_mode))

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def responder(self) -> Optional[IKnowledgeResponder]:
        return self._responder

    async def handle(self, message: IncomingMessage) -> TriageResult:
        """
        Triage a user message.

        Args:
            message: The message to triage

        Returns:
            TriageResult describing the terminal state reached
        """
        spam = self._spam_guard.check_and_record(message.user_id)
        if spam.blocked:
            notice = self._composer.spam_notice()
            logger.info(
                "Message blocked as spam",
                extra={"user_id": message.user_id, "messenger": message.messenger, "count": spam.count}
            )
            await self._messenger.send_message(message.user_id, message.messenger, notice)
            return TriageResult(outcome=TriageOutcome.REJECTED, reply_text=notice)

        faq_answer = self._faq.match(message.text)
        if faq_answer is not None:
            reply = self._composer.auto_reply(message.display_name, faq_answer)
            return await self._send_auto_reply(message, reply, TriageOutcome.FAQ_ANSWERED)

        if self._config.use_llm:
            llm_answer = await self._ask_responder(message)
            if llm_answer is not None:
                if self._config.clean_replies:
                    reply = llm_answer
                else:
                    reply = self._composer.auto_reply(message.display_name, llm_answer)
                return await self._send_auto_reply(message, reply, TriageOutcome.LLM_ANSWERED)

        return await self._route_ticket(message)

    async def _ask_responder(self, message: IncomingMessage) -> Optional[str]:
        try:
            return await self._responder.answer(message)
        except Exception as e:
            logger.error(
                f"LLM response failed: {e}",
                extra={"user_id": message.user_id, "error_type": type(e).__name__}
            )
            return None

    async def _send_auto_reply(
        self,
        message: IncomingMessage,
        reply: str,
        outcome: TriageOutcome
    ) -> TriageResult:
        await self._messenger.reply(message, reply)
        result = TriageResult(outcome=outcome, reply_text=reply)

        if self._config.show_auto_replied:
            ticket = await self._get_or_create_ticket(message)
            await self._tickets.record_message(ticket.ticket_id, message.text, auto_replied=True)
            result.ticket_id = ticket.ticket_id
            result.forwarded_to_staff = await self._forward_to_staff(ticket, message, auto_replied=True)
            self._log_ticket_message(ticket, message, result)

        return result

    async def _route_ticket(self, message: IncomingMessage) -> TriageResult:
        ticket = await self._get_or_create_ticket(message)
        await self._tickets.record_message(ticket.ticket_id, message.text, auto_replied=False)

        confirmation = None
        if self._config.autoreply_confirmation:
            confirmation = self._composer.confirmation(ticket, self._config.show_user_ticket)
            await self._messenger.send_message(message.user_id, message.messenger, confirmation)

        result = TriageResult(
            outcome=TriageOutcome.TICKET_FORWARDED,
            reply_text=confirmation,
            ticket_id=ticket.ticket_id
        )
        result.forwarded_to_staff = await self._forward_to_staff(ticket, message, auto_replied=False)
        self._log_ticket_message(ticket, message, result)
        return result

    async def _get_or_create_ticket(self, message: IncomingMessage) -> Ticket:
        ticket = await self._tickets.get_ticket_by_user_id(message.user_id, message.messenger)
        if ticket is None:
            ticket = await self._tickets.create_ticket(
                message.user_id, message.display_name, message.messenger
            )
            logger.info(
                "Ticket created",
                extra={"ticket_id": ticket.ticket_id, "user_id": message.user_id, "messenger": message.messenger}
            )
        return ticket

    async def _forward_to_staff(self, ticket: Ticket, message: IncomingMessage, auto_replied: bool) -> bool:
        text = self._composer.staff_message(ticket, message, auto_replied)
        try:
            await self._messenger.send_message(
                self._config.staffchat_id, self._config.staffchat_type, text
            )
            return True
        except Exception as e:
            logger.error(
                "Forward to staff failed",
                extra={"ticket_id": ticket.ticket_id, "error": str(e), "error_type": type(e).__name__}
            )
            return False

    def _log_ticket_message(self, ticket: Ticket, message: IncomingMessage, result: TriageResult) -> None:
        logger.info(
            "Ticket message",
            extra={
                "ticket_id": ticket.ticket_id,
                "ticket_label": ticket.label,
                "user_id": message.user_id,
                "messenger": message.messenger,
                "language_code": message.language_code,
                "text": message.text,
                "outcome": result.outcome.value,
                "forwarded_to_staff": result.forwarded_to_staff,
            }
        )
