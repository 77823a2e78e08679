"""
Triage External Service Adapters
==================================

Adapters for external services used by the triage module:
- LLM chat endpoint (via the infrastructure OpenAI client)
- Messenger delivery webhook with retry and circuit breaker
- YAML relay configuration loader
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import yaml
from pydantic import ValidationError

from support_relay.config import KnowledgeConfig, ParseMode, RelayConfig
from support_relay.core import ConfigurationException, MessengerDeliveryException
from support_relay.infrastructure.llm import OpenAILLMClient
from support_relay.shared.infrastructure.logging import get_logger
from support_relay.triage.application import ILLMClient, IMessenger
from support_relay.triage.domain import IncomingMessage

logger = get_logger(__name__)


class LLMClientAdapter(ILLMClient):
    """
    Knowledge-responder view of the OpenAI-compatible client.

    Built from the relay's ``llm`` section; the API key falls back to the
    process settings when the YAML leaves it out.
    """

    def __init__(self, config: KnowledgeConfig, fallback_api_key: Optional[str] = None):
        self._client = OpenAILLMClient.from_config(config, fallback_api_key)

    async def chat_completion(
        self,
        messages: List[dict],
        operation: str = "knowledge_answer"
    ) -> Any:
        return await self._client.chat_completion(messages, operation)

    async def close(self) -> None:
        await self._client.close()


class RelayConfigManager:
    """
    Loads and validates the relay configuration from YAML.

    The configuration is read once at startup; ``reload`` builds a fresh
    snapshot that callers use to rebuild their services.
    """

    def __init__(self):
        self._config: Optional[RelayConfig] = None
        self._path: Optional[Path] = None

    def load(self, path: Path) -> RelayConfig:
        """Initial configuration load."""
        self._path = Path(path)
        self._config = self._load_from_file(self._path)
        logger.info(
            "Relay configuration loaded",
            extra={
                "path": str(self._path),
                "use_llm": self._config.use_llm,
                "autoreply_entries": len(self._config.autoreply)
            }
        )
        return self._config

    def _load_from_file(self, path: Path) -> RelayConfig:
        """Load and parse YAML config file."""
        if not path.exists():
            raise ConfigurationException(f"Relay config file not found: {path}", source=str(path))

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Invalid YAML in {path}: {e}", source=str(path))

        if not isinstance(data, dict):
            raise ConfigurationException(f"Relay config must be a mapping: {path}", source=str(path))

        try:
            return RelayConfig(**data)
        except ValidationError as e:
            raise ConfigurationException(
                f"Invalid relay configuration in {path}",
                source=str(path),
                details={"errors": e.errors(include_url=False, include_context=False)}
            )

    def reload(self) -> RelayConfig:
        """Re-read the configuration file."""
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")
        return self.load(self._path)

    @property
    def config(self) -> RelayConfig:
        """Get current configuration."""
        if self._config is None:
            raise RuntimeError("Relay configuration not loaded")
        return self._config


class CircuitState:
    """Delivery circuit states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops delivery attempts to a gateway that keeps failing.

    ``failure_threshold`` consecutive failed deliveries open the circuit.
    After ``recovery_timeout`` seconds it half-opens and lets the next
    delivery through; its outcome closes or re-opens the circuit.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._clock() - self._opened_at >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Delivery circuit closed")
        self._consecutive_failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures < self.failure_threshold:
            return

        # a failed half-open probe restarts the recovery timer
        self._opened_at = self._clock()
        logger.warning(
            "Delivery circuit opened",
            extra={
                "consecutive_failures": self._consecutive_failures,
                "recovery_timeout": self.recovery_timeout
            }
        )


class WebhookMessenger(IMessenger):
    """
    Delivers outbound messages by POSTing them to a messenger gateway.

    Payload: ``{"target_id", "channel_kind", "text", "parse_mode"}``.
    Retries with exponential backoff; a circuit breaker stops hammering a
    gateway that keeps failing. Without a webhook URL delivery is skipped.
    """

    def __init__(
        self,
        webhook_url: Optional[str],
        parse_mode: str = ParseMode.MARKDOWN,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url
        self._parse_mode = parse_mode
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._http_client = http_client
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._http_client

    def _build_payload(self, target_id: str, channel_kind: str, text: str) -> Dict[str, Any]:
        return {
            "target_id": target_id,
            "channel_kind": channel_kind,
            "text": text,
            "parse_mode": self._parse_mode
        }

    async def send_message(self, target_id: str, channel_kind: str, text: str) -> Optional[str]:
        """
        Deliver a message through the gateway webhook.

        Returns:
            The gateway's message id when it reports one

        Raises:
            MessengerDeliveryException: If the circuit is open or all attempts fail
        """
        if not self._webhook_url:
            logger.debug(
                "Delivery webhook not configured, skipping message",
                extra={"target_id": target_id, "channel_kind": channel_kind}
            )
            return None

        if not self._circuit_breaker.allow_request():
            raise MessengerDeliveryException(
                "circuit breaker open",
                target_id=target_id
            )

        payload = self._build_payload(target_id, channel_kind, text)
        last_error = None

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=payload)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Message delivered",
                        extra={"target_id": target_id, "channel_kind": channel_kind}
                    )
                    return self._message_id(response)

                last_error = f"gateway returned {response.status_code}"
                logger.warning(
                    "Delivery webhook returned non-2xx",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                last_error = str(e)
                logger.error(
                    "Message delivery failed",
                    extra={"error": str(e), "attempt": attempt + 1, "target_id": target_id}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise MessengerDeliveryException(
            f"delivery failed after {self._max_retries} attempts: {last_error}",
            target_id=target_id,
            details={"channel_kind": channel_kind}
        )

    async def reply(self, message: IncomingMessage, text: str) -> None:
        await self.send_message(message.user_id, message.messenger, text)

    @staticmethod
    def _message_id(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("message_id") is not None:
            return str(body["message_id"])
        return None

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
