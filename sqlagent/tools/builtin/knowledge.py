"""Built-in knowledge tools: search_knowledge, save_learning, save_validated_query."""

from __future__ import annotations

import logging
from typing import Any, Literal

from sqlagent.config import LearningSettings
from sqlagent.knowledge.search import SearchManager
from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.models.errors import ToolError
from sqlagent.models.knowledge import Learning, LearningCategory, QueryPattern, SearchResult
from sqlagent.services.learning import MANUAL, LearningMachine
from sqlagent.services.sql_validator import SqlValidator
from sqlagent.tools.base import Tool

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 20
MAX_NAME_LENGTH = 100


def _format_result(result: SearchResult) -> dict[str, Any]:
    item = result.item
    if isinstance(item, QueryPattern):
        return {
            "name": item.name,
            "question": item.question,
            "sql": item.sql,
            "summary": item.summary,
            "tables_used": item.tables_used,
            "relevance_score": result.score,
        }
    if isinstance(item, Learning):
        return {
            "title": item.title,
            "description": item.description,
            "category": item.category.value,
            "sql": item.sql,
            "relevance_score": result.score,
        }
    return {**item, "relevance_score": result.score}


class SearchKnowledgeTool(Tool):
    name = "search_knowledge"
    description = (
        "Search the knowledge base for relevant query patterns and learnings. Use this to find "
        "similar queries, understand business logic, or discover past learnings about the database."
    )
    param_descriptions = {
        "query": "The search query to find relevant knowledge.",
        "type": "Filter results by index: 'all' (default) searches everything, or specify a specific index name.",
        "limit": "Maximum number of results to return.",
    }

    def __init__(self, search: SearchManager, settings: LearningSettings):
        self.search = search
        self.settings = settings

    def schema_overrides(self) -> dict[str, dict[str, Any]]:
        return {"type": {"enum": ["all", *self.search.registered_indexes()]}}

    async def handle(self, query: str, type: str = "all", limit: int = 5) -> dict[str, Any]:
        query = query.strip()
        if not query:
            raise ToolError("Search query cannot be empty.", tool=self.name)

        indexes = self.search.registered_indexes()
        if type not in indexes:
            type = "all"
        limit = max(1, min(int(limit), MAX_SEARCH_LIMIT))

        results: dict[str, Any] = {}
        for index in indexes if type == "all" else [type]:
            if index == "learnings" and not self.settings.enabled:
                results[index] = []
                continue
            hits = await self.search.search(query, index, limit)
            results[index] = [_format_result(hit) for hit in hits]

        results["total_found"] = sum(len(hits) for hits in results.values())
        return results


class SaveLearningTool(Tool):
    name = "save_learning"
    description = (
        "Save a learning about the database to the knowledge base. Use this when you discover "
        "something non-obvious: a schema quirk, a type issue, a data quality problem, or a "
        "business rule that affects how queries must be written."
    )
    param_descriptions = {
        "title": "A short title for the learning (max 100 characters).",
        "description": "What was learned and how it affects future queries.",
        "category": "The kind of learning.",
        "sql": "Optional: The SQL query this learning relates to.",
        "metadata": "Optional: Additional structured details about the learning.",
    }

    def __init__(self, learning: LearningMachine, settings: LearningSettings):
        self.learning = learning
        self.settings = settings

    async def handle(
        self,
        title: str,
        description: str,
        category: Literal["type_error", "schema_fix", "query_pattern", "data_quality", "business_logic"],
        sql: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.settings.enabled:
            raise ToolError("Learning is disabled.", tool=self.name)

        title = title.strip()
        description = description.strip()
        if not title:
            raise ToolError("Title is required.", tool=self.name)
        if len(title) > MAX_NAME_LENGTH:
            raise ToolError("Title must be 100 characters or less.", tool=self.name)
        if not description:
            raise ToolError("Description is required.", tool=self.name)
        try:
            learning_category = LearningCategory(category)
        except ValueError:
            valid = ", ".join(item.value for item in LearningCategory)
            raise ToolError(f"Invalid category. Must be one of: {valid}", tool=self.name) from None

        learning = await self.learning.save(
            title=title,
            description=description,
            category=learning_category,
            sql=sql.strip() if sql and sql.strip() else None,
            metadata={**(metadata or {}), "source": MANUAL},
        )
        return {
            "success": True,
            "message": "Learning saved successfully.",
            "learning_id": learning.id,
            "title": learning.title,
            "category": learning.category.value,
        }


class SaveValidatedQueryTool(Tool):
    name = "save_validated_query"
    description = (
        "Save a validated query pattern to the knowledge base. Use this when you have successfully "
        "executed a SQL query that correctly answers a user question. This helps future queries by "
        "providing proven patterns."
    )
    param_descriptions = {
        "name": "A short, descriptive name for the query pattern (max 100 characters).",
        "question": "The natural language question this query answers.",
        "sql": "The validated SQL query that correctly answers the question.",
        "summary": "A brief summary of what the query does and what data it returns.",
        "tables_used": "List of table names used in the query.",
        "data_quality_notes": (
            "Optional: Notes about data quality issues, edge cases, or important considerations "
            "for this query."
        ),
    }

    def __init__(self, store: KnowledgeStore, search: SearchManager, validator: SqlValidator):
        self.store = store
        self.search = search
        self.validator = validator

    async def handle(
        self,
        name: str,
        question: str,
        sql: str,
        summary: str,
        tables_used: list[str],
        data_quality_notes: str | None = None,
    ) -> dict[str, Any]:
        name = name.strip()
        question = question.strip()
        sql = sql.strip()
        summary = summary.strip()

        if not name:
            raise ToolError("Name is required.", tool=self.name)
        if len(name) > MAX_NAME_LENGTH:
            raise ToolError("Name must be 100 characters or less.", tool=self.name)
        if not question:
            raise ToolError("Question is required.", tool=self.name)
        if not sql:
            raise ToolError("SQL is required.", tool=self.name)
        if not summary:
            raise ToolError("Summary is required.", tool=self.name)
        if not tables_used:
            raise ToolError("Tables used must be a non-empty array.", tool=self.name)

        self.validator.validate_statement(sql)

        tables = [table.strip() for table in tables_used if isinstance(table, str) and table.strip()]
        if not tables:
            raise ToolError("Tables used must contain at least one valid table name.", tool=self.name)

        existing = await self.search.search(question, "query_patterns", 1)
        if existing and isinstance(existing[0].item, QueryPattern):
            top = existing[0].item
            if top.question.lower() == question.lower():
                raise ToolError(
                    f"A query pattern with a similar question already exists: '{top.name}'",
                    tool=self.name,
                )

        notes = data_quality_notes.strip() if data_quality_notes else None
        pattern = await self.store.add_pattern(
            QueryPattern(
                name=name,
                question=question,
                sql=sql,
                summary=summary,
                tables_used=tables,
                data_quality_notes=notes or None,
            )
        )
        logger.info(f"Saved query pattern {pattern.id}: {pattern.name}", extra={"pattern_id": pattern.id})
        return {
            "success": True,
            "message": "Query pattern saved successfully.",
            "pattern_id": pattern.id,
            "name": pattern.name,
            "tables_used": pattern.tables_used,
        }
