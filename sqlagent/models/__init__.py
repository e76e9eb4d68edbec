"""
SqlAgent Models Module

Pydantic models for type-safe data validation throughout the application.

Available Models:
    Agent Models:
        - ToolResult: Outcome of a tool call
        - Iteration: One step of the agent loop
        - AgentResponse: Terminal result of a run
        - StreamChunk: Incremental output of a streaming run
        - ExecutedQuery: SQL executed during a run

    Knowledge Models:
        - Learning / LearningCategory
        - QueryPattern
        - TableSchema
        - BusinessRule / BusinessRuleType
        - SearchResult

    Connection Models:
        - ConnectionConfig

    Errors:
        - SqlAgentError, SQLValidationError, SQLExecutionError,
          ToolError, ToolRegistrationError, TransportError, KnowledgeError

Usage:
    from sqlagent.models import AgentResponse, Learning, SQLValidationError
"""

from sqlagent.models.agent import (
    AgentResponse,
    ExecutedQuery,
    FinishReason,
    Iteration,
    StreamChunk,
    ToolResult,
)
from sqlagent.models.connection import ConnectionConfig
from sqlagent.models.errors import (
    KnowledgeError,
    SqlAgentError,
    SQLExecutionError,
    SQLValidationError,
    ToolError,
    ToolRegistrationError,
    TransportError,
)
from sqlagent.models.knowledge import (
    BusinessRule,
    BusinessRuleType,
    Learning,
    LearningCategory,
    QueryPattern,
    SearchResult,
    TableSchema,
)

__all__ = [
    # Agent
    "AgentResponse",
    "ExecutedQuery",
    "FinishReason",
    "Iteration",
    "StreamChunk",
    "ToolResult",
    # Connection
    "ConnectionConfig",
    # Knowledge
    "BusinessRule",
    "BusinessRuleType",
    "Learning",
    "LearningCategory",
    "QueryPattern",
    "SearchResult",
    "TableSchema",
    # Errors
    "KnowledgeError",
    "SqlAgentError",
    "SQLExecutionError",
    "SQLValidationError",
    "ToolError",
    "ToolRegistrationError",
    "TransportError",
]
