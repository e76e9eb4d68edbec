"""
Anthropic LLM Provider

Implementation of BaseLLMProvider for Anthropic's Claude models.
Tool calls map to ``tool_use`` content blocks and tool results are sent
back as ``tool_result`` blocks inside a user turn.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

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


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic (Claude) LLM provider implementation.

    Uses the anthropic Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        temperature: float = 0.0,
        max_tokens: int = 4096,
        timeout: int = 60,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Default model to use
            temperature: Default temperature
            max_tokens: Default max tokens
            timeout: Request timeout
        """
        super().__init__(
            provider_name="anthropic",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout))

        logger.info(f"Anthropic provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using Anthropic API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.messages.create(**self._build_params(request))
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise TransportError(f"Anthropic API error: {e}", provider="anthropic") from e

        llm_response = self._to_response(response)
        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using Anthropic API."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        try:
            async with self.client.messages.stream(**self._build_params(request)) as stream:
                async for event in stream:
                    if event.type != "content_block_delta":
                        continue
                    if event.delta.type == "text_delta":
                        yield LLMStreamChunk(content=event.delta.text)
                    elif event.delta.type == "thinking_delta":
                        yield LLMStreamChunk(thinking=event.delta.thinking)

                final_message = await stream.get_final_message()
        except anthropic.APIError as e:
            logger.error(f"Anthropic streaming error: {e}")
            raise TransportError(f"Anthropic streaming error: {e}", provider="anthropic") from e

        final = self._to_response(final_message)
        yield LLMStreamChunk(
            tool_calls=final.tool_calls,
            finish_reason=final.finish_reason,
            usage=final.usage,
        )

    async def close(self) -> None:
        await self.client.close()

    def _build_params(self, request: LLMRequest) -> dict[str, Any]:
        system_parts = [msg.content for msg in request.messages if msg.role == "system" and msg.content]
        params: dict[str, Any] = {
            "model": request.model or self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": self._format_messages(request.messages),
            **request.metadata,
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)
        if request.tools:
            params["tools"] = [self._format_tool(tool) for tool in request.tools]
        return params

    @staticmethod
    def _format_messages(messages: list[LLMMessage]) -> list[dict[str, Any]]:
        formatted: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == "system":
                continue

            if msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content or "",
                }
                # Consecutive tool results share one user turn
                previous = formatted[-1] if formatted else None
                if (
                    previous
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(item.get("type") == "tool_result" for item in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    formatted.append({"role": "user", "content": [block]})
                continue

            if msg.role == "assistant" and msg.tool_calls:
                content: list[dict[str, Any]] = []
                if msg.content:
                    content.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    content.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.name,
                            "input": call.arguments,
                        }
                    )
                formatted.append({"role": "assistant", "content": content})
                continue

            formatted.append({"role": msg.role, "content": msg.content or ""})
        return formatted

    @staticmethod
    def _format_tool(tool: ToolSchema) -> dict[str, Any]:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters,
        }

    def _to_response(self, response: Any) -> LLMResponse:
        text_parts: list[str] = []
        thinking_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "thinking":
                thinking_parts.append(block.thinking)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {}))
                )

        return LLMResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            thinking="".join(thinking_parts) or None,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider="anthropic",
            metadata={"id": response.id},
        )

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        elif reason == "tool_use":
            return "tool_calls"
        else:
            return "stop"
