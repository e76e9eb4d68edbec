"""
OpenAI LLM Provider

Implementation of BaseLLMProvider for OpenAI's chat models with
function calling. Streaming accumulates tool-call deltas by index and
emits the assembled calls on the final chunk.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMUsage,
    ToolCall,
    ToolSchema,
)
from sqlagent.models.errors import TransportError

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI LLM provider implementation.

    Supports OpenAI chat models with tool calling (GPT-4o, GPT-4o-mini, ...).
    Uses the official openai Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.0,
        max_tokens: int = 4096,
        timeout: int = 60,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default model to use
            temperature: Default temperature
            max_tokens: Default max tokens
            timeout: Request timeout
        """
        super().__init__(
            provider_name="openai",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=float(timeout),
        )

        logger.info(f"OpenAI provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using OpenAI API.

        Args:
            request: LLM request

        Returns:
            LLMResponse with generated content and tool calls

        Raises:
            TransportError: On API errors and timeouts
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.chat.completions.create(
                **self._build_params(request),
            )
        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise TransportError(f"OpenAI request timed out: {e}", provider="openai") from e
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise TransportError(f"OpenAI API error: {e}", provider="openai") from e

        choice = response.choices[0]
        tool_calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=self._parse_arguments(call.function.arguments),
            )
            for call in (choice.message.tool_calls or [])
        ]

        llm_response = LLMResponse(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            ),
            finish_reason=self._map_finish_reason(choice.finish_reason),
            provider="openai",
            metadata={
                "id": response.id,
                "created": response.created,
                "system_fingerprint": response.system_fingerprint,
            },
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream completion using OpenAI API.

        Args:
            request: LLM request

        Yields:
            LLMStreamChunk with content chunks, then one final chunk with
            the finish reason, assembled tool calls and usage

        Raises:
            TransportError: On API errors
        """
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        pending_calls: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None
        usage: LLMUsage | None = None

        try:
            stream = await self.client.chat.completions.create(
                **self._build_params(request),
                stream=True,
                stream_options={"include_usage": True},
            )

            async for chunk in stream:
                if chunk.usage:
                    usage = LLMUsage(
                        prompt_tokens=chunk.usage.prompt_tokens,
                        completion_tokens=chunk.usage.completion_tokens,
                        total_tokens=chunk.usage.total_tokens,
                    )
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    yield LLMStreamChunk(content=delta.content, metadata={"id": chunk.id})

                for call_delta in delta.tool_calls or []:
                    entry = pending_calls.setdefault(
                        call_delta.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if call_delta.id:
                        entry["id"] = call_delta.id
                    if call_delta.function is not None:
                        if call_delta.function.name:
                            entry["name"] += call_delta.function.name
                        if call_delta.function.arguments:
                            entry["arguments"] += call_delta.function.arguments

                if choice.finish_reason:
                    finish_reason = choice.finish_reason

        except openai.APIError as e:
            logger.error(f"OpenAI streaming error: {e}")
            raise TransportError(f"OpenAI streaming error: {e}", provider="openai") from e

        tool_calls = []
        for _, entry in sorted(pending_calls.items()):
            call = ToolCall(name=entry["name"], arguments=self._parse_arguments(entry["arguments"]))
            if entry["id"]:
                call.id = entry["id"]
            tool_calls.append(call)

        yield LLMStreamChunk(
            tool_calls=tool_calls,
            finish_reason=self._map_finish_reason(finish_reason),
            usage=usage,
        )

    async def close(self) -> None:
        await self.client.close()

    def _build_params(self, request: LLMRequest) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": request.model or self.model,
            "messages": [self._format_message(msg) for msg in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            **request.metadata,  # Additional OpenAI parameters
        }
        if request.tools:
            params["tools"] = [self._format_tool(tool) for tool in request.tools]
        return params

    @staticmethod
    def _format_message(message: LLMMessage) -> dict[str, Any]:
        if message.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content or "",
            }
        if message.role == "assistant" and message.tool_calls:
            return {
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [call.to_openai() for call in message.tool_calls],
            }
        return {"role": message.role, "content": message.content or ""}

    @staticmethod
    def _format_tool(tool: ToolSchema) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }

    @staticmethod
    def _parse_arguments(raw: str | None) -> dict[str, Any]:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Could not decode tool arguments: {raw[:200]}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map OpenAI finish reason to our standard format."""
        if reason == "length":
            return "length"
        elif reason == "tool_calls":
            return "tool_calls"
        elif reason == "content_filter":
            return "content_filter"
        else:
            return "stop"  # Default
