import asyncio
import logging
from typing import Any, Literal
from unittest.mock import patch

import pytest
from pydantic import BaseModel

from sqlagent.llm.models import ToolCall
from sqlagent.models.agent import ToolResult
from sqlagent.models.errors import ToolError
from sqlagent.tools import Tool, ToolExecutor, ToolRegistry


class EchoTool(Tool):
    name = "echo"
    description = "Echo the value back"
    param_descriptions = {"value": "Value to echo"}

    async def handle(self, value: str, repeat: int = 1) -> dict[str, Any]:
        return {"value": value * repeat}


class FailingTool(Tool):
    name = "fail"
    description = "Always fails"

    async def handle(self) -> None:
        raise ToolError("Table 'x' does not exist.", tool=self.name)


class SlowTool(Tool):
    name = "slow"
    description = "Sleeps, then reports its delay"

    async def handle(self, delay: float) -> float:
        await asyncio.sleep(delay)
        return delay


class Filter(BaseModel):
    column: str
    value: str


class TypedTool(Tool):
    name = "typed"
    description = "Tool with typed arguments"

    async def handle(
        self,
        limit: int = 5,
        include_stats: bool = False,
        threshold: float = 0.25,
        mode: Literal["fast", "full"] = "fast",
        tags: list[str] | None = None,
        options: dict[str, int] | None = None,
        where: Filter | None = None,
    ) -> ToolResult:
        return ToolResult.ok("done")


@pytest.fixture
def executor():
    registry = ToolRegistry().register_many([EchoTool(), FailingTool(), SlowTool(), TypedTool()])
    return ToolExecutor(registry)


@pytest.mark.asyncio
async def test_runs_tool_and_wraps_result(executor):
    result = await executor.execute(ToolCall(name="echo", arguments={"value": "hi", "repeat": 2}))

    assert result.success is True
    assert result.data == {"value": "hihi"}


@pytest.mark.asyncio
async def test_tool_result_passes_through(executor):
    result = await executor.execute(ToolCall(name="typed", arguments={}))

    assert result == ToolResult.ok("done")


@pytest.mark.asyncio
async def test_unknown_tool(executor):
    result = await executor.execute(ToolCall(name="drop_everything", arguments={}))

    assert result.success is False
    assert result.error == "Unknown tool: drop_everything"


@pytest.mark.asyncio
async def test_invalid_arguments(executor):
    missing = await executor.execute(ToolCall(name="echo", arguments={}))
    unexpected = await executor.execute(ToolCall(name="echo", arguments={"value": "a", "colour": "red"}))

    assert missing.error.startswith("Invalid arguments for echo")
    assert unexpected.error.startswith("Invalid arguments for echo")


@pytest.mark.asyncio
async def test_tool_exception_becomes_failure(executor):
    result = await executor.execute(ToolCall(name="fail", arguments={}))

    assert result.success is False
    assert result.error == "Table 'x' does not exist."
    assert result.to_message_content() == "Error: Table 'x' does not exist."


@pytest.mark.asyncio
async def test_execute_many_preserves_order_when_parallel(executor):
    executor.parallel = True
    calls = [
        ToolCall(name="slow", arguments={"delay": 0.05}),
        ToolCall(name="slow", arguments={"delay": 0.0}),
        ToolCall(name="echo", arguments={"value": "x"}),
    ]

    results = await executor.execute_many(calls)

    assert [result.data for result in results] == [0.05, 0.0, {"value": "x"}]


def test_tool_schema_uses_typed_parameter_definitions():
    schema = TypedTool().definition().parameters
    props = schema["properties"]

    assert props["limit"] == {"type": "integer", "default": 5}
    assert props["include_stats"]["type"] == "boolean"
    assert props["threshold"]["type"] == "number"
    assert props["mode"] == {"enum": ["fast", "full"], "type": "string", "default": "fast"}
    assert props["tags"] == {"type": "array", "items": {"type": "string"}}
    assert props["options"] == {"type": "object", "additionalProperties": {"type": "integer"}}
    assert props["where"]["properties"]["column"]["type"] == "string"
    assert schema["required"] == []
    assert schema["additionalProperties"] is False


def test_param_descriptions_and_required():
    definition = EchoTool().definition()

    assert definition.name == "echo"
    assert definition.parameters["required"] == ["value"]
    assert definition.parameters["properties"]["value"] == {"type": "string", "description": "Value to echo"}


@pytest.mark.asyncio
async def test_runs_tool_with_info_logging_enabled(executor, caplog):
    caplog.set_level(logging.INFO, logger="sqlagent.tools.executor")

    result = await executor.execute(ToolCall(name="echo", arguments={"value": "hi"}))

    assert result == ToolResult.ok({"value": "hi"})
    record = next(r for r in caplog.records if r.getMessage() == "Executing tool: echo")
    assert record.arguments == ["value"]


@pytest.mark.asyncio
async def test_logging_failure_becomes_failure(executor):
    with patch("sqlagent.tools.executor.logger.info", side_effect=RuntimeError("log sink down")):
        result = await executor.execute(ToolCall(name="echo", arguments={"value": "hi"}))

    assert result.success is False
    assert result.error == "log sink down"
