"""Request and response models for the HTTP API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from sqlagent.models.agent import AgentResponse


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class QueryRequest(BaseModel):
    """A question for the agent."""

    question: str = Field(..., min_length=1, description="Natural language question")
    connection: str | None = Field(None, description="Logical connection to query (default if omitted)")
    history: list[HistoryMessage] = Field(
        default_factory=list, description="Prior conversation turns, oldest first"
    )

    def history_dicts(self) -> list[dict[str, Any]]:
        return [message.model_dump() for message in self.history]


class QueryResponse(AgentResponse):
    """Agent response plus the prompt that produced it (debug mode only)."""

    prompt: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    version: str
    timestamp: str
    connections: list[str] = Field(default_factory=list)
    llm_provider: str | None = None
