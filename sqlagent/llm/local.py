"""
Local LLM Provider

Implementation of BaseLLMProvider for Ollama's native /api/chat endpoint,
including tool calling and optional reasoning ("think") output.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

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


class LocalProvider(BaseLLMProvider):
    """
    Local LLM provider implementation.

    Talks to an Ollama server. Tool calls returned by Ollama carry no id,
    so ids are generated locally.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1",
        temperature: float = 0.0,
        max_tokens: int = 4096,
        timeout: int = 60,
        think: bool = True,
    ):
        """
        Initialize local provider.

        Args:
            base_url: Base URL for the Ollama server
            model: Model name (e.g., "llama3.1")
            temperature: Default temperature
            max_tokens: Default max tokens
            timeout: Request timeout
            think: Request reasoning output from models that support it
        """
        super().__init__(
            provider_name="local",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.think = think
        self.client = httpx.AsyncClient(timeout=float(timeout))

        logger.info(
            f"Local provider initialized: {base_url} with model: {model}",
            extra={"base_url": base_url, "model": model},
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the Ollama chat endpoint."""
        request = self._apply_defaults(request)
        self._log_request(request)

        payload = self._build_payload(request, stream=False)
        try:
            response = await self.client.post(f"{self.base_url}/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Local model request failed: {e}")
            raise TransportError(f"Local model request failed: {e}", provider="local") from e

        message = data.get("message", {})
        tool_calls = self._parse_tool_calls(message.get("tool_calls"))
        llm_response = LLMResponse(
            content=message.get("content", "") or "",
            thinking=message.get("thinking") or None,
            tool_calls=tool_calls,
            model=data.get("model", self.model),
            usage=self._usage(data),
            finish_reason=self._map_finish_reason(data.get("done_reason"), bool(tool_calls)),
            provider="local",
            metadata={"base_url": self.base_url},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion from the Ollama chat endpoint (NDJSON lines)."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        payload = self._build_payload(request, stream=True)
        tool_calls: list[ToolCall] = []
        final: dict[str, Any] = {}

        try:
            async with self.client.stream(
                "POST",
                f"{self.base_url}/api/chat",
                json=payload,
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    chunk_data = json.loads(line)
                    message = chunk_data.get("message", {})
                    if thinking := message.get("thinking"):
                        yield LLMStreamChunk(thinking=thinking)
                    if content := message.get("content"):
                        yield LLMStreamChunk(content=content)
                    tool_calls.extend(self._parse_tool_calls(message.get("tool_calls")))
                    if chunk_data.get("done"):
                        final = chunk_data
        except httpx.HTTPError as e:
            logger.error(f"Local model streaming failed: {e}")
            raise TransportError(f"Local model streaming failed: {e}", provider="local") from e

        yield LLMStreamChunk(
            tool_calls=tool_calls,
            finish_reason=self._map_finish_reason(final.get("done_reason"), bool(tool_calls)),
            usage=self._usage(final),
        )

    async def close(self) -> None:
        await self.client.aclose()

    def _build_payload(self, request: LLMRequest, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model or self.model,
            "messages": [self._format_message(msg) for msg in request.messages],
            "stream": stream,
            "think": self.think,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_tokens,
            },
        }
        if request.tools:
            payload["tools"] = [self._format_tool(tool) for tool in request.tools]
        return payload

    @staticmethod
    def _format_message(message: LLMMessage) -> dict[str, Any]:
        formatted: dict[str, Any] = {"role": message.role, "content": message.content or ""}
        if message.tool_calls:
            formatted["tool_calls"] = [
                {"function": {"name": call.name, "arguments": call.arguments}}
                for call in message.tool_calls
            ]
        return formatted

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
    def _parse_tool_calls(raw_calls: list[dict[str, Any]] | None) -> list[ToolCall]:
        calls = []
        for raw in raw_calls or []:
            function = raw.get("function", {})
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    arguments = {}
            calls.append(ToolCall(name=function.get("name", ""), arguments=arguments))
        return calls

    @staticmethod
    def _usage(data: dict[str, Any]) -> LLMUsage:
        prompt_tokens = data.get("prompt_eval_count", 0) or 0
        completion_tokens = data.get("eval_count", 0) or 0
        return LLMUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )

    @staticmethod
    def _map_finish_reason(reason: str | None, has_tool_calls: bool) -> str:
        if has_tool_calls:
            return "tool_calls"
        if reason == "length":
            return "length"
        return "stop"
