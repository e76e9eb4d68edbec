"""Prompt loading and rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import yaml
from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from sqlagent.config import Settings
from sqlagent.models.connection import ConnectionConfig
from sqlagent.tools.base import Tool

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
SYSTEM_PROMPT = "agent/system.md"
BUILTIN_TOOL_NAMES = frozenset(
    {"run_sql", "introspect_schema", "search_knowledge", "save_learning", "save_validated_query"}
)


@dataclass(frozen=True)
class PromptEntry:
    """Loaded prompt content and metadata."""

    content: str
    metadata: dict[str, Any]


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    if source.startswith("---"):
        parts = source.split("---", 2)
        if len(parts) == 3:
            return yaml.safe_load(parts[1]) or {}, parts[2].lstrip()
    return {}, source


class FrontMatterLoader(FileSystemLoader):
    """Jinja2 loader that strips YAML front matter."""

    def get_source(self, environment: Environment, template: str):  # type: ignore[override]
        source, filename, uptodate = super().get_source(environment, template)
        return split_front_matter(source)[1], filename, uptodate


class PromptLoader:
    """Load prompt templates from a directory (the bundled templates by default)."""

    def __init__(self, prompts_dir: str | Path | None = None) -> None:
        self.prompts_dir = Path(prompts_dir) if prompts_dir else TEMPLATES_DIR
        self.cache: dict[str, PromptEntry] = {}
        self._env = Environment(
            loader=FrontMatterLoader(str(self.prompts_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def load(self, prompt_path: str) -> str:
        """Raw prompt text without front matter."""
        if prompt_path not in self.cache:
            file_path = self.prompts_dir / prompt_path
            if not file_path.exists():
                raise FileNotFoundError(f"Prompt not found: {file_path}")
            metadata, content = split_front_matter(file_path.read_text(encoding="utf-8"))
            self.cache[prompt_path] = PromptEntry(content=content, metadata=metadata)
        return self.cache[prompt_path].content

    def render(self, prompt_path: str, **variables: Any) -> str:
        """
        Load a prompt and substitute variables using Jinja2.

        Example:
            prompt = loader.render("agent/system.md", context=context_text, ...)
        """
        try:
            template = self._env.get_template(prompt_path)
        except TemplateNotFound as exc:
            raise FileNotFoundError(f"Prompt not found: {prompt_path}") from exc
        return template.render(**variables)

    def get_metadata(self, prompt_path: str) -> dict[str, Any]:
        if prompt_path not in self.cache:
            self.load(prompt_path)
        return self.cache[prompt_path].metadata


class PromptRenderer:
    """Renders the agent system prompt from settings, tools and context."""

    def __init__(self, settings: Settings, loader: PromptLoader | None = None, timezone: str = "UTC"):
        self.settings = settings
        self.loader = loader or PromptLoader()
        self.timezone = timezone

    def render_system(
        self,
        context: str,
        tools: list[Tool] | None = None,
        connections: list[ConnectionConfig] | None = None,
    ) -> str:
        now = datetime.now(ZoneInfo(self.timezone))
        custom_tools = [tool for tool in tools or [] if tool.name not in BUILTIN_TOOL_NAMES]
        return self.loader.render(
            SYSTEM_PROMPT,
            now=now.strftime("%Y-%m-%d %H:%M:%S"),
            timezone=self.timezone,
            sql=self.settings.sql,
            learning_enabled=self.settings.learning.enabled,
            custom_tools=custom_tools,
            connections=connections or [],
            context=context,
        ).strip()
