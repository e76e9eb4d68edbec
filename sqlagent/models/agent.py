"""
Agent I/O Models

Tool results, loop iterations, the terminal AgentResponse and the chunks
emitted while streaming.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from sqlagent.llm.models import LLMUsage, ToolCall

FinishReason = Literal["stop", "tool_calls", "length", "max_iterations", "error"]


def encode_json(data: Any) -> str:
    """Compact JSON used for tool messages (no pretty printing, unicode kept)."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


class ToolResult(BaseModel):
    """Outcome of executing one tool call."""

    success: bool
    data: Any = None
    error: str | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def ok(cls, data: Any = None) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_message_content(self) -> str:
        """Render the payload carried by a tool-role message."""
        if not self.success:
            return f"Error: {self.error}"
        if isinstance(self.data, str):
            return self.data
        return encode_json(self.data)


class ExecutedQuery(BaseModel):
    """A SQL statement that ran successfully during one agent run."""

    sql: str
    connection: str | None = None


class Iteration(BaseModel):
    """One step of the agent loop."""

    index: int = Field(..., ge=1, description="1-based iteration number")
    assistant_text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)
    finish_reason: FinishReason = "stop"


class AgentResponse(BaseModel):
    """Terminal result of one agent run."""

    answer: str
    sql: str | None = None
    results: list[dict[str, Any]] | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    iterations: list[Iteration] = Field(default_factory=list)
    queries: list[ExecutedQuery] = Field(default_factory=list)
    error: str | None = None
    usage: LLMUsage | None = None
    finish_reason: FinishReason = "stop"
    truncated: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def has_results(self) -> bool:
        return bool(self.results)


class StreamChunk(BaseModel):
    """
    Incremental output of a streaming agent run.

    Exactly one kind of payload is set per chunk: thinking, text, a tool
    label, an error message, or the terminal done marker.
    """

    thinking: str | None = None
    text: str | None = None
    tool_label: str | None = None
    tool_type: Literal["sql", "schema", "search", "save", "default"] | None = None
    sql_preview: str | None = None
    message: str | None = None
    done: bool = False
    finish_reason: FinishReason | None = None
    usage: LLMUsage | None = None
    truncated: bool | None = None

    @classmethod
    def content(cls, text: str) -> "StreamChunk":
        return cls(text=text)

    @classmethod
    def reasoning(cls, thinking: str) -> "StreamChunk":
        return cls(thinking=thinking)

    @classmethod
    def tool(
        cls,
        label: str,
        tool_type: str = "default",
        sql_preview: str | None = None,
    ) -> "StreamChunk":
        return cls(tool_label=label, tool_type=tool_type, sql_preview=sql_preview)

    @classmethod
    def error(cls, message: str) -> "StreamChunk":
        return cls(message=message)

    @classmethod
    def complete(
        cls,
        finish_reason: FinishReason,
        usage: LLMUsage | None = None,
        truncated: bool = False,
    ) -> "StreamChunk":
        return cls(done=True, finish_reason=finish_reason, usage=usage, truncated=truncated)

    @property
    def kind(self) -> str:
        if self.done:
            return "done"
        if self.message is not None:
            return "error"
        if self.tool_label is not None:
            return "tool"
        if self.thinking is not None:
            return "thinking"
        return "text"

    def to_event(self) -> dict[str, Any]:
        """Wire shape consumed by UI/SSE clients."""
        if self.done:
            event: dict[str, Any] = {"done": True, "finish_reason": self.finish_reason}
            if self.usage is not None:
                event["usage"] = self.usage.model_dump()
            if self.truncated:
                event["truncated"] = True
            return event
        if self.message is not None:
            return {"message": self.message}
        if self.tool_label is not None:
            event = {"tool_label": self.tool_label, "tool_type": self.tool_type or "default"}
            if self.sql_preview:
                event["sql_preview"] = self.sql_preview
            return event
        if self.thinking is not None:
            return {"thinking": self.thinking}
        return {"text": self.text or ""}
