"""
LLM Client Infrastructure
==========================

Chat completions against any OpenAI-compatible endpoint (OpenAI, Groq,
a local gateway). Only this module imports the openai SDK; the triage
pipeline sees the ILLMClient interface.
"""

import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI

from support_relay.config import KnowledgeConfig
from support_relay.core import ConfigurationException, LLMException


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: Optional[str],
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Only the chat completion used by the knowledge responder is defined.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        operation: str = "chat_completion"
    ) -> Optional[ChatCompletionResult]:
        """Generate chat completion. Returns None when the endpoint sent no choice."""

    async def close(self) -> None:
        """Release network resources."""


class OpenAILLMClient(ILLMClient):
    """
    OpenAI-compatible client.

    Works against any endpoint speaking the chat completions API; the base
    URL selects the provider (OpenAI, Groq, a local gateway, ...).
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        reasoning_effort: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        if not model:
            raise ConfigurationException("LLM model not configured")
        if not api_key:
            raise ConfigurationException("LLM API key not configured")

        self._model = model
        self._reasoning_effort = reasoning_effort
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout
        )

    @classmethod
    def from_config(cls, config: KnowledgeConfig, fallback_api_key: Optional[str] = None) -> "OpenAILLMClient":
        """Build a client from the relay knowledge settings."""
        return cls(
            model=config.model,
            api_key=config.api_key or fallback_api_key,
            base_url=config.base_url,
            reasoning_effort=config.reasoning_effort,
            timeout=config.timeout_seconds
        )

    async def chat_completion(
        self,
        messages: List[dict],
        operation: str = "chat_completion"
    ) -> Optional[ChatCompletionResult]:
        """
        Generate chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            operation: Operation name, carried for logging

        Returns:
            ChatCompletionResult, or None when the response carried no choice

        Raises:
            LLMException: If the request fails
        """
        start_time = time.perf_counter()

        params = {"model": self._model, "messages": messages}
        if self._reasoning_effort:
            params["reasoning_effort"] = self._reasoning_effort

        try:
            response = await self._client.chat.completions.create(**params)
        except Exception as e:
            raise LLMException(
                f"Chat completion failed: {str(e)}",
                details={"operation": operation, "model": self._model}
            )

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        if response is None or not response.choices:
            return None

        message = response.choices[0].message
        content = message.content if message is not None else None

        usage = response.usage
        return ChatCompletionResult(
            content=content,
            model=response.model or self._model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms
        )

    async def close(self) -> None:
        await self._client.close()
