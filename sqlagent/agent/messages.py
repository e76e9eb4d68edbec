"""
Message Builder

Builds the transcript sent to the model. Every operation returns a new
list; transcripts are never mutated in place.
"""

from collections.abc import Mapping
from typing import Any

from sqlagent.llm.models import LLMMessage, ToolCall
from sqlagent.models.agent import ToolResult


class MessageBuilder:
    def build(self, system_prompt: str, question: str) -> list[LLMMessage]:
        return [self.system(system_prompt), self.user(question)]

    def with_history(
        self,
        messages: list[LLMMessage],
        history: list[LLMMessage | Mapping[str, Any]] | None,
    ) -> list[LLMMessage]:
        """Insert prior turns between the system message and the final user message."""
        if not history or len(messages) < 2:
            return list(messages)

        past = [self._to_message(item) for item in history]
        return [messages[0], *past, *messages[1:-1], messages[-1]]

    def system(self, content: str) -> LLMMessage:
        return LLMMessage(role="system", content=content)

    def user(self, content: str) -> LLMMessage:
        return LLMMessage(role="user", content=content)

    def assistant(self, content: str) -> LLMMessage:
        return LLMMessage(role="assistant", content=content)

    def assistant_with_tool_calls(self, content: str | None, tool_calls: list[ToolCall]) -> LLMMessage:
        return LLMMessage(role="assistant", content=content or None, tool_calls=list(tool_calls))

    def tool_result(self, call: ToolCall, result: ToolResult) -> LLMMessage:
        return LLMMessage(role="tool", tool_call_id=call.id, content=result.to_message_content())

    def append(self, messages: list[LLMMessage], message: LLMMessage) -> list[LLMMessage]:
        return [*messages, message]

    def append_many(self, messages: list[LLMMessage], new_messages: list[LLMMessage]) -> list[LLMMessage]:
        return [*messages, *new_messages]

    @staticmethod
    def _to_message(item: LLMMessage | Mapping[str, Any]) -> LLMMessage:
        if isinstance(item, LLMMessage):
            return item
        return LLMMessage(role=item["role"], content=item.get("content"))
