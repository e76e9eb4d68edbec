"""Tool registry for the SQL agent tool system."""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Any

import yaml

from sqlagent.llm.models import ToolSchema
from sqlagent.models.errors import ToolRegistrationError
from sqlagent.tools.base import Tool

logger = logging.getLogger(__name__)


def load_tool_policy(path: str | Path) -> dict[str, Any]:
    """
    Read a tool policy file.

    Example:

        tools:
          - name: save_learning
            enabled: false
        custom:
          - my_package.tools:RevenueForecastTool
    """
    policy_path = Path(path)
    if not policy_path.exists():
        logger.warning(f"Tool policy file not found: {policy_path}")
        return {}
    return yaml.safe_load(policy_path.read_text()) or {}


def import_tool_class(reference: str) -> type[Tool]:
    module_name, _, class_name = reference.partition(":")
    if not module_name or not class_name:
        raise ToolRegistrationError(f"Invalid tool reference '{reference}', expected 'module:Class'.")
    try:
        tool_class = getattr(importlib.import_module(module_name), class_name)
    except (ImportError, AttributeError) as e:
        raise ToolRegistrationError(f"Cannot import tool '{reference}': {e}") from e
    if not isinstance(tool_class, type) or not issubclass(tool_class, Tool):
        raise ToolRegistrationError(f"'{reference}' is not a Tool subclass.")
    return tool_class


class ToolRegistry:
    """Name to tool mapping owned by one agent run."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool, strict: bool = False) -> ToolRegistry:
        if not tool.name:
            raise ToolRegistrationError(f"{tool.__class__.__name__} has no name.")
        if tool.name in self._tools:
            if strict:
                raise ToolRegistrationError(f"Tool '{tool.name}' is already registered.")
            logger.debug(f"Replacing tool: {tool.name}")
        self._tools[tool.name] = tool
        return self

    def register_many(self, tools: list[Tool], strict: bool = False) -> ToolRegistry:
        for tool in tools:
            self.register(tool, strict=strict)
        return self

    def get(self, name: str) -> Tool:
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' is not registered.")
        return self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def remove(self, name: str) -> ToolRegistry:
        self._tools.pop(name, None)
        return self

    def clear(self) -> ToolRegistry:
        self._tools.clear()
        return self

    def definitions(self) -> list[ToolSchema]:
        return [tool.definition() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def apply_policy(self, policy: dict[str, Any]) -> None:
        """Disable tools and register custom tool classes from a parsed policy."""
        for entry in policy.get("tools") or []:
            name = entry.get("name")
            if name and entry.get("enabled", True) is False and name in self._tools:
                self.remove(name)
                logger.info(f"Disabled tool by policy: {name}")

        for reference in policy.get("custom") or []:
            tool_class = import_tool_class(reference)
            self.register(tool_class(), strict=True)
            logger.info(f"Registered custom tool: {reference}")

    def load_policy_config(self, path: str | Path) -> None:
        self.apply_policy(load_tool_policy(path))
