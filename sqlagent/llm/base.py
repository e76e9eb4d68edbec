"""
LLM provider interface.

A provider turns an ``LLMRequest`` (chat messages plus tool definitions)
into one ``LLMResponse`` or a stream of ``LLMStreamChunk`` and maps its
vendor failures to ``TransportError``. The agent loop only ever talks to
this interface.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from sqlagent.llm.models import LLMRequest, LLMResponse, LLMStreamChunk

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """
    Chat-completion backend used by the agent.

    ``temperature`` and ``max_tokens`` fill in requests that leave them
    unset; ``timeout`` bounds each HTTP call in seconds.
    """

    def __init__(
        self,
        provider_name: str,
        temperature: float = 0.0,
        max_tokens: int = 4096,
        timeout: int = 60,
    ):
        self.provider_name = provider_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.info(
            f"Initialized {provider_name} provider",
            extra={"provider": provider_name, "max_tokens": max_tokens},
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        One complete model turn: text, tool calls, finish reason and usage.

        Raises:
            TransportError: Network, auth, rate limit or malformed reply
        """

    @abstractmethod
    def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        One model turn as it is produced.

        Text and thinking deltas come first; the last chunk is the one
        with a ``finish_reason`` and also carries the assembled tool calls
        and usage.

        Raises:
            TransportError: As for ``generate``
        """

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        updates = {}
        if request.temperature is None:
            updates["temperature"] = self.temperature
        if request.max_tokens is None:
            updates["max_tokens"] = self.max_tokens
        return request.model_copy(update=updates) if updates else request

    def _log_request(self, request: LLMRequest) -> None:
        logger.debug(
            f"Sending {len(request.messages)} messages to {self.provider_name}",
            extra={
                "provider": self.provider_name,
                "tools": [tool.name for tool in request.tools],
                "stream": request.stream,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        logger.debug(
            f"{self.provider_name} finished with {response.finish_reason}",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "total_tokens": response.usage.total_tokens,
                "tool_calls": [call.name for call in response.tool_calls],
            },
        )
