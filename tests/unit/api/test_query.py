"""
Unit Tests for Query Endpoints

Tests /api/v1/query and /api/v1/stream against the scripted LLM and the
in-memory shop database.
"""

import json

import pytest

from sqlagent.api.main import app_state
from sqlagent.llm.models import ToolCall


def parse_sse(body: str) -> list[dict]:
    events = []
    for block in body.split("\n\n"):
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: "):]))
    return events


class TestQueryEndpoint:
    """Test suite for the buffered query endpoint."""

    def test_query_returns_answer_sql_and_rows(self, client, api_components, scripted_llm, make_llm_response):
        scripted_llm.script(
            make_llm_response(
                tool_calls=[ToolCall(id="c1", name="run_sql", arguments={"sql": "SELECT id, name FROM customers"})]
            ),
            make_llm_response("There are 2 customers."),
        )

        response = client.post("/api/v1/query", json={"question": "How many customers?"})

        assert response.status_code == 200
        data = response.json()
        assert data["answer"] == "There are 2 customers."
        assert data["sql"] == "SELECT id, name FROM customers"
        assert data["results"] == [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}]
        assert data["finish_reason"] == "stop"
        assert data["prompt"] is None

    def test_history_is_forwarded(self, client, api_components, scripted_llm, make_llm_response):
        scripted_llm.script(make_llm_response("Still two."))

        client.post(
            "/api/v1/query",
            json={
                "question": "And now?",
                "history": [
                    {"role": "user", "content": "How many customers?"},
                    {"role": "assistant", "content": "Two."},
                ],
            },
        )

        contents = [message.content for message in scripted_llm.requests[0].messages]
        assert contents[1:] == ["How many customers?", "Two.", "And now?"]

    def test_prompt_exposed_in_debug_mode(self, client, api_components, scripted_llm, make_llm_response):
        api_components.settings = api_components.settings.model_copy(update={"debug": True})
        scripted_llm.script(make_llm_response("Hello."))

        data = client.post("/api/v1/query", json={"question": "Hi"}).json()

        assert data["prompt"]["tools"]
        assert "run_sql" in data["prompt"]["tools"]
        assert data["prompt"]["system"]

    def test_unknown_connection_returns_404(self, client, api_components, scripted_llm):
        response = client.post("/api/v1/query", json={"question": "Hi", "connection": "warehouse"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown connection: warehouse"
        assert scripted_llm.requests == []

    def test_empty_question_rejected(self, client, api_components):
        response = client.post("/api/v1/query", json={"question": ""})

        assert response.status_code == 422

    def test_uninitialized_agent_is_an_error(self, client):
        original = app_state["components"]
        app_state["components"] = None
        try:
            with pytest.raises(RuntimeError, match="Agent not initialized"):
                client.post("/api/v1/query", json={"question": "Hi"})
        finally:
            app_state["components"] = original


class TestStreamEndpoint:
    """Test suite for the SSE streaming endpoint."""

    def test_stream_emits_sse_events(self, client, api_components, scripted_llm, make_llm_response):
        scripted_llm.script(
            make_llm_response(
                tool_calls=[ToolCall(id="c1", name="run_sql", arguments={"sql": "SELECT id FROM customers"})]
            ),
            make_llm_response("Two customers."),
        )

        response = client.post("/api/v1/stream", json={"question": "How many customers?"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert events[0]["tool_type"] == "sql"
        assert events[0]["sql_preview"] == "SELECT id FROM customers"
        assert "".join(event.get("text", "") for event in events) == "Two customers."
        assert events[-1]["done"] is True
        assert events[-1]["finish_reason"] == "stop"

    def test_stream_reports_errors_as_events(self, client, api_components, scripted_llm):
        scripted_llm.script(RuntimeError("model offline"))

        events = parse_sse(client.post("/api/v1/stream", json={"question": "Hi"}).text)

        assert events[0] == {"message": "model offline"}
        assert len(events) == 2
        assert events[1]["done"] is True
        assert events[1]["finish_reason"] == "error"

    def test_stream_unknown_connection_returns_404(self, client, api_components):
        response = client.post("/api/v1/stream", json={"question": "Hi", "connection": "warehouse"})

        assert response.status_code == 404
