"""
SQL Agent Loop

Iterative tool-calling loop: the model is called with the transcript and
tool schemas; when it asks for tools they are executed and their results
appended, and the model is called again until it answers in plain text
or the iteration budget runs out.

Usage:
    agent = SqlAgent(llm=provider, context_builder=builder, ...)
    response = await agent.run("How many orders shipped last week?")
    print(response.answer, response.sql)

    async for chunk in agent.stream("Top customers by revenue"):
        print(chunk.to_event())
"""

import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlagent.agent.fallback import FallbackResponseGenerator
from sqlagent.agent.messages import MessageBuilder
from sqlagent.config import Settings
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.models import LLMMessage, LLMRequest, LLMUsage, ToolCall
from sqlagent.models.agent import (
    AgentResponse,
    ExecutedQuery,
    FinishReason,
    Iteration,
    StreamChunk,
    ToolResult,
)
from sqlagent.prompts.loader import PromptRenderer
from sqlagent.services.connection_registry import ConnectionRegistry
from sqlagent.services.context_builder import ContextBuilder
from sqlagent.tools.builtin import IntrospectSchemaTool, RunSqlTool
from sqlagent.tools.executor import ToolExecutor
from sqlagent.tools.labels import ToolLabelResolver
from sqlagent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_ITERATIONS_NOTICE = "\n\nMaximum iterations reached."

History = list[LLMMessage | Mapping[str, Any]]


@dataclass
class _RunState:
    """Everything one run or stream accumulates."""

    tools: ToolRegistry | None = None
    iterations: list[Iteration] = field(default_factory=list)
    usage: LLMUsage | None = None
    prompt: dict[str, Any] | None = None

    @property
    def run_sql_tool(self) -> RunSqlTool | None:
        if self.tools is None or not self.tools.has("run_sql"):
            return None
        tool = self.tools.get("run_sql")
        return tool if isinstance(tool, RunSqlTool) else None

    @property
    def last_sql(self) -> str | None:
        tool = self.run_sql_tool
        return tool.last_sql if tool else None

    @property
    def last_results(self) -> list[dict[str, Any]] | None:
        tool = self.run_sql_tool
        return tool.last_results if tool else None

    @property
    def queries(self) -> list[ExecutedQuery]:
        tool = self.run_sql_tool
        return list(tool.executed_queries) if tool else []

    def add_usage(self, usage: LLMUsage | None) -> None:
        if usage is None:
            return
        self.usage = usage if self.usage is None else self.usage + usage


@dataclass(frozen=True)
class _PreparedRun:
    system_prompt: str
    messages: list[LLMMessage]
    tools: ToolRegistry
    executor: ToolExecutor


class SqlAgent:
    """
    Natural-language to SQL agent.

    Every run and stream works on its own ``_RunState`` with tools freshly
    built by ``registry_factory``, so one instance can serve overlapping
    requests. The ``last_*``, ``iterations`` and ``usage`` getters describe
    the most recently started run.
    """

    def __init__(
        self,
        llm: BaseLLMProvider,
        context_builder: ContextBuilder,
        prompt_renderer: PromptRenderer,
        registry_factory: Callable[[], ToolRegistry],
        connections: ConnectionRegistry,
        settings: Settings,
        message_builder: MessageBuilder | None = None,
        label_resolver: ToolLabelResolver | None = None,
        fallback: FallbackResponseGenerator | None = None,
    ):
        self.llm = llm
        self.context_builder = context_builder
        self.prompt_renderer = prompt_renderer
        self.registry_factory = registry_factory
        self.connections = connections
        self.settings = settings
        self.message_builder = message_builder or MessageBuilder()
        self.label_resolver = label_resolver or ToolLabelResolver()
        self.fallback = fallback or FallbackResponseGenerator()

        self._state = _RunState()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        question: str,
        connection: str | None = None,
        history: History | None = None,
    ) -> AgentResponse:
        """Answer a question, returning the buffered result of the whole loop."""
        state = self._start_run()
        logger.info(f"Agent run started: {question[:100]}", extra={"connection": connection})

        try:
            prepared = await self._prepare(state, question, connection, history)
            messages = prepared.messages
            max_iterations = self.settings.agent.max_iterations

            for index in range(1, max_iterations + 1):
                response = await self.llm.generate(
                    LLMRequest(messages=messages, tools=prepared.tools.definitions())
                )
                state.add_usage(response.usage)
                finish_reason = self._finish_reason(response.finish_reason, response.usage)

                if not response.tool_calls:
                    state.iterations.append(
                        Iteration(index=index, assistant_text=response.content, finish_reason=finish_reason)
                    )
                    answer = response.content
                    if not answer.strip() and state.last_results is not None:
                        answer = self.fallback.generate(state.last_results)
                    return self._build_response(state, answer, finish_reason=finish_reason)

                messages = await self._execute_tool_calls(
                    state, prepared, messages, index, response.content, response.tool_calls
                )

            logger.warning(f"Agent reached max iterations ({max_iterations})")
            return self._build_response(
                state, self.fallback.generate(state.last_results), finish_reason="max_iterations"
            )

        except Exception as e:
            logger.error(f"Agent run failed: {e}", exc_info=True)
            return self._build_response(state, f"An error occurred: {e}", error=str(e), finish_reason="error")

    async def stream(
        self,
        question: str,
        history: History | None = None,
        connection: str | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Answer a question as a stream of chunks.

        Yields thinking and text as the model produces them, a tool label
        chunk before each tool runs, and finally a done chunk. Stopping
        iteration stops the loop: no further model calls are made.
        """
        state = self._start_run()
        logger.info(f"Agent stream started: {question[:100]}", extra={"connection": connection})

        try:
            prepared = await self._prepare(state, question, connection, history)
            messages = prepared.messages

            for index in range(1, self.settings.agent.max_iterations + 1):
                content = ""
                tool_calls: list[ToolCall] = []
                provider_finish = None
                usage = None

                request = LLMRequest(messages=messages, tools=prepared.tools.definitions(), stream=True)
                async for chunk in self.llm.stream(request):
                    if chunk.thinking:
                        yield StreamChunk.reasoning(chunk.thinking)
                    if chunk.content:
                        content += chunk.content
                        yield StreamChunk.content(chunk.content)
                    if chunk.is_complete:
                        tool_calls = chunk.tool_calls
                        provider_finish = chunk.finish_reason
                        usage = chunk.usage

                state.add_usage(usage)
                finish_reason = self._finish_reason(provider_finish or "stop", usage)

                if not tool_calls:
                    state.iterations.append(
                        Iteration(index=index, assistant_text=content, finish_reason=finish_reason)
                    )
                    if not content.strip() and state.last_results is not None:
                        yield StreamChunk.content(self.fallback.generate(state.last_results))
                    yield StreamChunk.complete(
                        finish_reason, usage=state.usage, truncated=finish_reason == "length"
                    )
                    return

                for call in tool_calls:
                    yield self.label_resolver.build_chunk(call.name, call.arguments)
                messages = await self._execute_tool_calls(state, prepared, messages, index, content, tool_calls)

            yield StreamChunk.content(MAX_ITERATIONS_NOTICE)
            yield StreamChunk.complete("max_iterations", usage=state.usage)

        except Exception as e:
            logger.error(f"Agent stream failed: {e}", exc_info=True)
            yield StreamChunk.error(str(e))
            yield StreamChunk.complete("error", usage=state.usage)

    def reset(self) -> None:
        """Forget everything from the previous run."""
        self._state = _RunState()

    # ------------------------------------------------------------------
    # Run state
    # ------------------------------------------------------------------

    @property
    def last_sql(self) -> str | None:
        return self._state.last_sql

    @property
    def last_results(self) -> list[dict[str, Any]] | None:
        return self._state.last_results

    @property
    def all_queries(self) -> list[ExecutedQuery]:
        return self._state.queries

    @property
    def iterations(self) -> list[Iteration]:
        return list(self._state.iterations)

    @property
    def usage(self) -> LLMUsage | None:
        return self._state.usage

    @property
    def last_prompt(self) -> dict[str, Any] | None:
        """System prompt, initial messages and tool schemas of the last run."""
        return self._state.prompt

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_run(self) -> _RunState:
        state = _RunState()
        self._state = state
        return state

    async def _prepare(
        self,
        state: _RunState,
        question: str,
        connection: str | None,
        history: History | None,
    ) -> _PreparedRun:
        tools = self.registry_factory()
        for tool in tools.all():
            if isinstance(tool, (RunSqlTool, IntrospectSchemaTool)):
                tool.set_connection(connection)
            if isinstance(tool, RunSqlTool):
                tool.set_question(question)
        state.tools = tools

        context = await self.context_builder.build(question, connection)
        if connection is not None:
            connections = [self.connections.get(connection)]
        else:
            connections = list(self.connections.all().values())

        system_prompt = self.prompt_renderer.render_system(
            context.to_prompt_string(), tools=tools.all(), connections=connections
        )
        messages = self.message_builder.build(system_prompt, question)
        messages = self.message_builder.with_history(messages, self._cap_history(history))

        definitions = tools.definitions()
        state.prompt = {
            "system": system_prompt,
            "messages": [message.to_wire() for message in messages],
            "tools": [definition.name for definition in definitions],
            "tools_full": [definition.model_dump() for definition in definitions],
        }

        executor = ToolExecutor(tools, parallel=self.settings.agent.parallel_tool_calls)
        return _PreparedRun(system_prompt, messages, tools, executor)

    def _cap_history(self, history: History | None) -> History:
        limit = self.settings.agent.chat_history_length
        if not history or limit == 0:
            return []
        return list(history)[-limit:]

    async def _execute_tool_calls(
        self,
        state: _RunState,
        prepared: _PreparedRun,
        messages: list[LLMMessage],
        index: int,
        content: str,
        tool_calls: list[ToolCall],
    ) -> list[LLMMessage]:
        # Appended before execution; tool_results are filled in afterwards
        iteration = Iteration(
            index=index,
            assistant_text=content,
            tool_calls=list(tool_calls),
            finish_reason="tool_calls",
        )
        state.iterations.append(iteration)

        results: list[ToolResult] = await prepared.executor.execute_many(tool_calls)
        iteration.tool_results = results

        messages = self.message_builder.append(
            messages, self.message_builder.assistant_with_tool_calls(content, tool_calls)
        )
        return self.message_builder.append_many(
            messages,
            [self.message_builder.tool_result(call, result) for call, result in zip(tool_calls, results)],
        )

    def _finish_reason(self, provider_reason: str, usage: LLMUsage | None) -> FinishReason:
        if usage is not None and usage.completion_tokens >= self.llm.max_tokens:
            return "length"
        if provider_reason in ("stop", "length", "tool_calls", "error"):
            return provider_reason  # type: ignore[return-value]
        return "stop"

    def _build_response(
        self,
        state: _RunState,
        answer: str,
        error: str | None = None,
        finish_reason: FinishReason = "stop",
    ) -> AgentResponse:
        tool_calls = [call for iteration in state.iterations for call in iteration.tool_calls]
        return AgentResponse(
            answer=answer,
            sql=state.last_sql,
            results=state.last_results,
            tool_calls=tool_calls,
            iterations=list(state.iterations),
            queries=state.queries,
            error=error,
            usage=state.usage,
            finish_reason=finish_reason,
            truncated=finish_reason == "length",
        )
