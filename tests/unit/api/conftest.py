"""Fixtures for the HTTP API tests."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from sqlagent.api.main import app, app_state
from sqlagent.bootstrap import build_components


@pytest.fixture
def client():
    """Test client without the lifespan; components are injected per test."""
    return TestClient(app)


@pytest.fixture
def api_components(agent_settings, knowledge_store, scripted_llm, connection_registry):
    """Agent components installed into app_state for the duration of a test."""
    components = asyncio.run(
        build_components(
            agent_settings,
            store=knowledge_store,
            llm=scripted_llm,
            connections=connection_registry,
        )
    )
    original = app_state["components"]
    app_state["components"] = components
    try:
        yield components
    finally:
        app_state["components"] = original
        asyncio.run(components.close())
