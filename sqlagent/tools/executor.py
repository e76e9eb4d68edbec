"""Tool execution engine."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time

from sqlagent.llm.models import ToolCall
from sqlagent.models.agent import ToolResult
from sqlagent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Runs tool calls against a registry.

    Never raises: unknown tools, bad arguments and tool exceptions all come
    back as failed ToolResults so the model can correct itself.
    """

    def __init__(self, registry: ToolRegistry, parallel: bool = False) -> None:
        self.registry = registry
        self.parallel = parallel

    async def execute(self, call: ToolCall) -> ToolResult:
        try:
            return await self._execute(call)
        except Exception as exc:
            logger.warning(
                f"Tool execution failed: {call.name} - {exc}",
                extra={"tool": call.name, "tool_call_id": call.id, "error_type": type(exc).__name__},
            )
            return ToolResult.failure(str(exc))

    async def _execute(self, call: ToolCall) -> ToolResult:
        if not self.registry.has(call.name):
            logger.warning(f"Model called unknown tool: {call.name}")
            return ToolResult.failure(f"Unknown tool: {call.name}")

        tool = self.registry.get(call.name)
        try:
            bound = inspect.signature(tool.handle).bind(**call.arguments)
        except TypeError as exc:
            return ToolResult.failure(f"Invalid arguments for {call.name}: {exc}")

        logger.info(
            f"Executing tool: {call.name}",
            extra={"tool": call.name, "tool_call_id": call.id, "arguments": list(call.arguments)},
        )
        started = time.perf_counter()
        result = await tool.handle(*bound.args, **bound.kwargs)

        logger.debug(
            f"Tool completed: {call.name}",
            extra={"tool": call.name, "duration_ms": (time.perf_counter() - started) * 1000},
        )
        if isinstance(result, ToolResult):
            return result
        return ToolResult.ok(result)

    async def execute_many(self, calls: list[ToolCall]) -> list[ToolResult]:
        """Results in call order, whether run sequentially or concurrently."""
        if self.parallel and len(calls) > 1:
            return list(await asyncio.gather(*(self.execute(call) for call in calls)))
        return [await self.execute(call) for call in calls]
