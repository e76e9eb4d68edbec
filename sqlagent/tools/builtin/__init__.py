"""Built-in tools registered for every agent run."""

from sqlagent.tools.builtin.database import IntrospectSchemaTool, RunSqlTool
from sqlagent.tools.builtin.knowledge import (
    SaveLearningTool,
    SaveValidatedQueryTool,
    SearchKnowledgeTool,
)

__all__ = [
    "IntrospectSchemaTool",
    "RunSqlTool",
    "SaveLearningTool",
    "SaveValidatedQueryTool",
    "SearchKnowledgeTool",
]
