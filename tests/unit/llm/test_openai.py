"""
Tests for OpenAI Provider.

Tests OpenAI provider implementation with mocked API calls.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from sqlagent.llm.models import LLMMessage, LLMRequest, ToolCall, ToolSchema
from sqlagent.llm.openai import OpenAIProvider
from sqlagent.models.errors import TransportError


@pytest.fixture
def provider():
    """Create OpenAI provider instance."""
    return OpenAIProvider(
        api_key="sk-test-key-1234567890abcdefghij",
        model="gpt-4o",
        temperature=0.0,
        max_tokens=2000,
        timeout=30,
    )


def make_completion(content="Hello! How can I help?", finish_reason="stop", tool_calls=None):
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.choices[0].message.tool_calls = tool_calls
    mock_response.choices[0].finish_reason = finish_reason
    mock_response.model = "gpt-4o"
    mock_response.usage.prompt_tokens = 10
    mock_response.usage.completion_tokens = 5
    mock_response.usage.total_tokens = 15
    mock_response.id = "chatcmpl-123"
    mock_response.created = 1234567890
    mock_response.system_fingerprint = "fp_123"
    return mock_response


def make_tool_call(call_id: str, name: str, arguments: str):
    call = MagicMock()
    call.id = call_id
    call.function.name = name
    call.function.arguments = arguments
    return call


def stream_chunk(content=None, finish_reason=None, tool_calls=None, usage=None, choices=True):
    chunk = MagicMock()
    chunk.id = "chunk"
    chunk.usage = usage
    if choices:
        choice = MagicMock()
        choice.delta.content = content
        choice.delta.tool_calls = tool_calls
        choice.finish_reason = finish_reason
        chunk.choices = [choice]
    else:
        chunk.choices = []
    return chunk


def tool_call_delta(index, call_id=None, name=None, arguments=None):
    delta = MagicMock()
    delta.index = index
    delta.id = call_id
    delta.function.name = name
    delta.function.arguments = arguments
    return delta


class TestOpenAIProviderInit:
    """Test OpenAI provider initialization."""

    def test_initialization(self, provider):
        """Test provider initializes correctly."""
        assert provider.model == "gpt-4o"
        assert provider.temperature == 0.0
        assert provider.max_tokens == 2000
        assert provider.timeout == 30
        assert provider.provider_name == "openai"

    def test_client_created(self, provider):
        """Test AsyncOpenAI client is created."""
        assert provider.client is not None


class TestGenerate:
    """Test generate method."""

    @pytest.mark.asyncio
    async def test_successful_generation(self, provider):
        """Test successful completion generation."""
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=make_completion(),
        ):
            request = LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
            response = await provider.generate(request)

        assert response.content == "Hello! How can I help?"
        assert response.model == "gpt-4o"
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        assert response.provider == "openai"
        assert response.tool_calls == []

    @pytest.mark.asyncio
    async def test_tool_calls_parsed(self, provider):
        """Tool call arguments arrive as JSON strings and are decoded."""
        completion = make_completion(
            content=None,
            finish_reason="tool_calls",
            tool_calls=[
                make_tool_call("call_a", "run_sql", '{"sql": "SELECT 1"}'),
                make_tool_call("call_b", "search_knowledge", "not json"),
            ],
        )

        with patch.object(
            provider.client.chat.completions, "create", new_callable=AsyncMock, return_value=completion
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Count")])
            )

        assert response.content == ""
        assert response.finish_reason == "tool_calls"
        assert response.tool_calls == [
            ToolCall(id="call_a", name="run_sql", arguments={"sql": "SELECT 1"}),
            ToolCall(id="call_b", name="search_knowledge", arguments={}),
        ]

    @pytest.mark.asyncio
    async def test_applies_defaults(self, provider):
        """Test request defaults are applied."""
        mock_create = AsyncMock(return_value=make_completion())

        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(LLMRequest(messages=[LLMMessage(role="user", content="Test")]))

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["temperature"] == 0.0
        assert call_kwargs["max_tokens"] == 2000
        assert "tools" not in call_kwargs

    @pytest.mark.asyncio
    async def test_request_overrides_defaults(self, provider):
        """Test request can override defaults."""
        mock_create = AsyncMock(return_value=make_completion())

        with patch.object(provider.client.chat.completions, "create", mock_create):
            request = LLMRequest(
                messages=[LLMMessage(role="user", content="Test")],
                temperature=0.7,
                max_tokens=500,
            )
            await provider.generate(request)

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["temperature"] == 0.7
        assert call_kwargs["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_transcript_and_tools_wire_format(self, provider):
        """Assistant tool calls and tool results use the OpenAI message shapes."""
        mock_create = AsyncMock(return_value=make_completion())
        call = ToolCall(id="call_1", name="run_sql", arguments={"sql": "SELECT 1"})
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content="You write SQL."),
                LLMMessage(role="user", content="Count"),
                LLMMessage(role="assistant", tool_calls=[call]),
                LLMMessage(role="tool", tool_call_id="call_1", content='{"rows":[]}'),
            ],
            tools=[ToolSchema(name="run_sql", description="Run SQL")],
        )

        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(request)

        messages = mock_create.call_args.kwargs["messages"]
        assert messages[2] == {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "run_sql", "arguments": json.dumps({"sql": "SELECT 1"})},
                }
            ],
        }
        assert messages[3] == {"role": "tool", "tool_call_id": "call_1", "content": '{"rows":[]}'}
        tools = mock_create.call_args.kwargs["tools"]
        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "run_sql"

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, provider):
        """SDK errors surface as TransportError."""
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

        with patch.object(
            provider.client.chat.completions, "create", new_callable=AsyncMock, side_effect=error
        ):
            with pytest.raises(TransportError, match="OpenAI"):
                await provider.generate(LLMRequest(messages=[LLMMessage(role="user", content="Hi")]))


class TestStream:
    """Test stream method."""

    @pytest.mark.asyncio
    async def test_successful_streaming(self, provider):
        """Content chunks first, then one final chunk with finish reason and usage."""
        usage = MagicMock(prompt_tokens=3, completion_tokens=2, total_tokens=5)
        mock_chunks = [
            stream_chunk(content="Hello"),
            stream_chunk(content=" world"),
            stream_chunk(finish_reason="stop"),
            stream_chunk(usage=usage, choices=False),
        ]

        async def mock_stream():
            for chunk in mock_chunks:
                yield chunk

        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=mock_stream(),
        ):
            request = LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
            chunks = [chunk async for chunk in provider.stream(request)]

        assert [chunk.content for chunk in chunks[:2]] == ["Hello", " world"]
        assert chunks[-1].is_complete
        assert chunks[-1].finish_reason == "stop"
        assert chunks[-1].usage.total_tokens == 5
        assert len(chunks) == 3

    @pytest.mark.asyncio
    async def test_tool_call_deltas_assembled(self, provider):
        """Tool call fragments are joined by index and emitted on the final chunk."""
        mock_chunks = [
            stream_chunk(tool_calls=[tool_call_delta(0, "call_a", "run_sql", '{"sql": ')]),
            stream_chunk(tool_calls=[tool_call_delta(1, "call_b", "introspect_schema", "{}")]),
            stream_chunk(tool_calls=[tool_call_delta(0, arguments='"SELECT 1"}')]),
            stream_chunk(finish_reason="tool_calls"),
        ]

        async def mock_stream():
            for chunk in mock_chunks:
                yield chunk

        with patch.object(
            provider.client.chat.completions, "create", new_callable=AsyncMock, return_value=mock_stream()
        ):
            request = LLMRequest(messages=[LLMMessage(role="user", content="Count")])
            chunks = [chunk async for chunk in provider.stream(request)]

        assert len(chunks) == 1
        assert chunks[0].finish_reason == "tool_calls"
        assert chunks[0].tool_calls == [
            ToolCall(id="call_a", name="run_sql", arguments={"sql": "SELECT 1"}),
            ToolCall(id="call_b", name="introspect_schema", arguments={}),
        ]
