"""
Context Builder

Collects everything the model should know before answering a question:
the semantic model, business rules, similar validated queries, relevant
learnings, custom knowledge hits and the live schema of tables the
question mentions. The result renders into the system prompt.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from sqlagent.config import Settings
from sqlagent.knowledge.search import SearchManager
from sqlagent.models.knowledge import Learning, QueryPattern
from sqlagent.services.business_rules import BusinessRulesLoader
from sqlagent.services.connection_registry import ConnectionRegistry
from sqlagent.services.schema_introspector import SchemaIntrospector
from sqlagent.services.semantic_model import NO_TABLE_METADATA, SemanticModelLoader

logger = logging.getLogger(__name__)


def _format_document(document: dict[str, Any]) -> str:
    fields = [f"{key}: {value}" for key, value in document.items() if value not in (None, "")]
    return "- " + " | ".join(fields)


class Context(BaseModel):
    """Knowledge assembled for one question."""

    semantic_model: str = ""
    business_rules: str = ""
    query_patterns: list[QueryPattern] = Field(default_factory=list)
    learnings: list[Learning] = Field(default_factory=list)
    custom_knowledge: list[dict[str, Any]] = Field(default_factory=list)
    relevant_schema: str | None = None

    @property
    def has_query_patterns(self) -> bool:
        return bool(self.query_patterns)

    @property
    def has_learnings(self) -> bool:
        return bool(self.learnings)

    @property
    def query_pattern_count(self) -> int:
        return len(self.query_patterns)

    @property
    def learning_count(self) -> int:
        return len(self.learnings)

    @property
    def is_empty(self) -> bool:
        return not self.to_prompt_string()

    def to_prompt_string(self) -> str:
        """Markdown sections, empty ones omitted."""
        sections = [
            ("DATABASE SCHEMA", self.semantic_model),
            ("BUSINESS RULES & DEFINITIONS", self.business_rules),
            ("SIMILAR QUERY EXAMPLES", "\n".join(p.to_prompt_string() for p in self.query_patterns)),
            (
                "RELEVANT LEARNINGS",
                "\n".join(f"- {learning.title}: {learning.description}" for learning in self.learnings),
            ),
            ("ADDITIONAL KNOWLEDGE", "\n".join(_format_document(d) for d in self.custom_knowledge)),
            ("LIVE SCHEMA", self.relevant_schema or ""),
        ]
        return "\n\n".join(f"# {title}\n\n{content}" for title, content in sections if content)


class ContextBuilder:
    """Builds a Context for a question on a connection."""

    def __init__(
        self,
        settings: Settings,
        registry: ConnectionRegistry,
        semantic_model: SemanticModelLoader,
        business_rules: BusinessRulesLoader,
        search: SearchManager,
        introspector: SchemaIntrospector,
    ):
        self.settings = settings
        self.registry = registry
        self.semantic_model = semantic_model
        self.business_rules = business_rules
        self.search = search
        self.introspector = introspector

    async def build(self, question: str, connection: str | None = None) -> Context:
        return await self.build_with_options(
            question,
            connection=connection,
            query_pattern_limit=self.settings.search.query_pattern_limit,
            learning_limit=self.settings.search.learning_limit,
        )

    async def build_with_options(
        self,
        question: str,
        connection: str | None = None,
        include_semantic_model: bool = True,
        include_business_rules: bool = True,
        include_query_patterns: bool = True,
        include_learnings: bool = True,
        include_custom_knowledge: bool = True,
        include_relevant_schema: bool = True,
        query_pattern_limit: int = 3,
        learning_limit: int = 5,
    ) -> Context:
        context = Context()

        if include_semantic_model:
            context.semantic_model = await self.build_semantic_model(connection)
        if include_business_rules:
            context.business_rules = await self.business_rules.format()

        if include_query_patterns:
            results = await self.search.search(question, "query_patterns", query_pattern_limit)
            context.query_patterns = [r.item for r in results if isinstance(r.item, QueryPattern)]

        if include_learnings and self.settings.learning.enabled:
            results = await self.search.search(question, "learnings", learning_limit)
            context.learnings = [r.item for r in results if isinstance(r.item, Learning)]

        if include_custom_knowledge:
            for index in self.search.custom_indexes():
                results = await self.search.search(question, index, learning_limit)
                context.custom_knowledge.extend(r.item for r in results if isinstance(r.item, dict))

        if include_relevant_schema:
            context.relevant_schema = await self.introspector.get_relevant_schema(question, connection)

        logger.debug(
            "Built context",
            extra={
                "connection": connection,
                "query_patterns": context.query_pattern_count,
                "learnings": context.learning_count,
                "custom_knowledge": len(context.custom_knowledge),
                "has_live_schema": context.relevant_schema is not None,
            },
        )
        return context

    async def build_minimal(self, connection: str | None = None) -> Context:
        """Semantic model and business rules only; no search, no introspection."""
        return Context(
            semantic_model=await self.build_semantic_model(connection),
            business_rules=await self.business_rules.format(),
        )

    async def build_semantic_model(self, connection: str | None = None) -> str:
        """
        Semantic model for one connection, or for every configured one.

        With several connections each gets a "## Connection: name (label)"
        heading; connections without table metadata are left out.
        """
        if connection is not None or len(self.registry.get_connection_names()) <= 1:
            return await self.semantic_model.format(self.registry.resolve_name(connection))

        sections = []
        for config in self.registry.all().values():
            semantic = await self.semantic_model.format(config.name)
            if semantic == NO_TABLE_METADATA:
                continue
            section = f"## Connection: {config.name} ({config.display_label()})\n"
            if config.description:
                section += f"{config.description}\n"
            sections.append(f"{section}\n{semantic}")

        return "\n\n---\n\n".join(sections) or NO_TABLE_METADATA
