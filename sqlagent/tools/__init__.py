"""Tool system entrypoint."""

from __future__ import annotations

from typing import Any

from sqlagent.config import Settings
from sqlagent.knowledge.search import SearchManager
from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.services.access_control import TableAccessControl
from sqlagent.services.connection_registry import ConnectionRegistry
from sqlagent.services.learning import LearningMachine
from sqlagent.services.schema_introspector import SchemaIntrospector
from sqlagent.services.sql_validator import SqlValidator
from sqlagent.tools.base import Tool
from sqlagent.tools.builtin import (
    IntrospectSchemaTool,
    RunSqlTool,
    SaveLearningTool,
    SaveValidatedQueryTool,
    SearchKnowledgeTool,
)
from sqlagent.tools.executor import ToolExecutor
from sqlagent.tools.labels import ToolLabelResolver
from sqlagent.tools.registry import ToolRegistry, load_tool_policy


class DefaultToolRegistryFactory:
    """
    Builds a fresh registry of the built-in tools for each agent run.

    The tool policy file is read once; its disables and custom tools are
    applied to every registry built.
    """

    def __init__(
        self,
        settings: Settings,
        registry: ConnectionRegistry,
        access_control: TableAccessControl,
        validator: SqlValidator,
        introspector: SchemaIntrospector,
        store: KnowledgeStore,
        search: SearchManager,
        learning: LearningMachine,
        policy: dict[str, Any] | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.access_control = access_control
        self.validator = validator
        self.introspector = introspector
        self.store = store
        self.search = search
        self.learning = learning
        self.policy = policy if policy is not None else load_tool_policy(settings.tools.policy_path)

    def __call__(self) -> ToolRegistry:
        tools = ToolRegistry()
        tools.register_many(
            [
                RunSqlTool(
                    self.settings.sql,
                    self.registry,
                    self.validator,
                    self.access_control,
                    self.learning,
                ),
                IntrospectSchemaTool(self.registry, self.introspector, self.access_control),
                SaveLearningTool(self.learning, self.settings.learning),
                SaveValidatedQueryTool(self.store, self.search, self.validator),
                SearchKnowledgeTool(self.search, self.settings.learning),
            ],
            strict=True,
        )
        tools.apply_policy(self.policy)
        return tools


__all__ = [
    "DefaultToolRegistryFactory",
    "IntrospectSchemaTool",
    "RunSqlTool",
    "SaveLearningTool",
    "SaveValidatedQueryTool",
    "SearchKnowledgeTool",
    "Tool",
    "ToolExecutor",
    "ToolLabelResolver",
    "ToolRegistry",
    "load_tool_policy",
]
