"""
LLM Request and Response Models

Pydantic models for LLM provider interactions.
Provider-agnostic models that work across OpenAI, Anthropic and Ollama,
including tool (function) calling.
"""

import json
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


def _generate_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str = Field(
        default_factory=_generate_call_id,
        description="Provider-assigned or generated call id"
    )
    name: str = Field(
        ...,
        description="Name of the registered tool"
    )
    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        description="Loosely typed arguments, validated by the tool"
    )

    def to_openai(self) -> Dict[str, Any]:
        """OpenAI-compatible wire shape (arguments as a JSON string)."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments, ensure_ascii=False),
            },
        }


class LLMMessage(BaseModel):
    """Single message in an LLM conversation."""

    role: Literal["system", "user", "assistant", "tool"] = Field(
        ...,
        description="Message role"
    )
    content: Optional[str] = Field(
        None,
        description="Message content (may be empty for tool-call-only assistant turns)"
    )
    tool_calls: List[ToolCall] = Field(
        default_factory=list,
        description="Tool calls requested by an assistant message"
    )
    tool_call_id: Optional[str] = Field(
        None,
        description="Id of the tool call a tool message answers"
    )

    def to_wire(self) -> Dict[str, Any]:
        """Provider-agnostic dict form."""
        payload: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [
                {"id": call.id, "name": call.name, "arguments": call.arguments}
                for call in self.tool_calls
            ]
        if self.tool_call_id is not None:
            payload["tool_call_id"] = self.tool_call_id
        return payload


class ToolSchema(BaseModel):
    """Tool declaration sent to the model."""

    name: str = Field(
        ...,
        description="Tool name"
    )
    description: str = Field(
        ...,
        description="Prose description for the model"
    )
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON schema of the tool parameters"
    )


class LLMRequest(BaseModel):
    """Request to an LLM provider."""

    messages: List[LLMMessage] = Field(
        ...,
        description="Conversation messages",
        min_length=1
    )
    tools: List[ToolSchema] = Field(
        default_factory=list,
        description="Tools the model may call"
    )
    temperature: Optional[float] = Field(
        None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (overrides default)"
    )
    max_tokens: Optional[int] = Field(
        None,
        gt=0,
        description="Maximum tokens to generate (overrides default)"
    )
    stream: bool = Field(
        default=False,
        description="Whether to stream the response"
    )
    model: Optional[str] = Field(
        None,
        description="Specific model to use (overrides default)"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional provider-specific parameters"
    )


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = Field(
        default=0,
        ge=0,
        description="Number of tokens in the prompt"
    )
    completion_tokens: int = Field(
        default=0,
        ge=0,
        description="Number of tokens in the completion"
    )
    total_tokens: int = Field(
        default=0,
        ge=0,
        description="Total tokens used"
    )

    def __add__(self, other: "LLMUsage") -> "LLMUsage":
        return LLMUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


FinishReasonType = Literal["stop", "length", "tool_calls", "content_filter", "error"]


class LLMResponse(BaseModel):
    """Response from an LLM provider."""

    content: str = Field(
        default="",
        description="Generated text content"
    )
    tool_calls: List[ToolCall] = Field(
        default_factory=list,
        description="Tool calls requested by the model"
    )
    thinking: Optional[str] = Field(
        None,
        description="Reasoning text, for providers that expose it"
    )
    model: str = Field(
        ...,
        description="Model that generated the response"
    )
    usage: LLMUsage = Field(
        default_factory=LLMUsage,
        description="Token usage information"
    )
    finish_reason: FinishReasonType = Field(
        ...,
        description="Reason the generation stopped"
    )
    provider: str = Field(
        ...,
        description="Provider that handled the request (openai, anthropic, etc.)"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional provider-specific response data"
    )

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class LLMStreamChunk(BaseModel):
    """Streaming response chunk from an LLM provider."""

    content: str = Field(
        default="",
        description="Chunk of generated text"
    )
    thinking: Optional[str] = Field(
        None,
        description="Chunk of reasoning text"
    )
    tool_calls: List[ToolCall] = Field(
        default_factory=list,
        description="Complete tool calls (only on the final chunk)"
    )
    finish_reason: Optional[FinishReasonType] = Field(
        None,
        description="Reason if this is the final chunk"
    )
    usage: Optional[LLMUsage] = Field(
        None,
        description="Token usage (only on the final chunk)"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional chunk metadata"
    )

    @property
    def is_complete(self) -> bool:
        return self.finish_reason is not None
