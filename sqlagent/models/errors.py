"""
Error taxonomy for the SQL agent.

Validation, execution and tool errors are converted into failed tool
results and handed back to the model. Transport errors abort the agent
loop and surface as an error response.
"""

from typing import Any


class SqlAgentError(Exception):
    """
    Base exception for SQL agent errors.

    Attributes:
        component: Name of the component that raised the error
        message: Error description (also the exception text)
        recoverable: Whether the agent loop can continue after this error
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        component: str = "sqlagent",
        recoverable: bool = True,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.component = component
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "component": self.component,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class SQLValidationError(SqlAgentError):
    """SQL rejected by the safety validator."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, component="sql_validator", recoverable=True, context=context)


class SQLExecutionError(SqlAgentError):
    """SQL passed validation but the database rejected it."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, component="run_sql", recoverable=True, context=context)


class ToolError(SqlAgentError):
    """Invalid tool input or a failure inside a tool."""

    def __init__(self, message: str, tool: str = "tool", context: dict[str, Any] | None = None):
        super().__init__(message, component=tool, recoverable=True, context=context)


class ToolRegistrationError(SqlAgentError):
    """Duplicate or invalid tool registration."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, component="tool_registry", recoverable=False, context=context)


class TransportError(SqlAgentError):
    """LLM provider failure (network, auth, rate limit, malformed reply)."""

    def __init__(
        self,
        message: str,
        provider: str = "llm",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, component=provider, recoverable=False, context=context)


class KnowledgeError(SqlAgentError):
    """Knowledge store read or write failure."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, component="knowledge", recoverable=True, context=context)
