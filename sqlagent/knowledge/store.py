"""
Knowledge Store

Persistence contract for learnings, validated query patterns, custom
knowledge documents and (optionally) semantic table metadata and business
rules. ``InMemoryKnowledgeStore`` backs tests and single-process use;
``PostgresKnowledgeStore`` (knowledge/postgres.py) is the durable backend.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from sqlagent.models.knowledge import (
    BusinessRule,
    Learning,
    LearningCategory,
    QueryPattern,
    TableSchema,
)

logger = logging.getLogger(__name__)


class KnowledgeStore(ABC):
    """Async storage for everything the agent learns or is taught."""

    async def initialize(self) -> None:
        """Create pools and schema. No-op by default."""
        return None

    async def close(self) -> None:
        return None

    # Learnings

    @abstractmethod
    async def add_learning(self, learning: Learning) -> Learning:
        """Persist a learning and return it with its assigned id."""

    @abstractmethod
    async def get_learning(self, learning_id: int) -> Learning | None: ...

    @abstractmethod
    async def list_learnings(self, category: LearningCategory | None = None) -> list[Learning]:
        """All learnings, oldest first."""

    @abstractmethod
    async def delete_learning(self, learning_id: int) -> bool: ...

    @abstractmethod
    async def learning_exists(self, *, title: str | None = None, sql: str | None = None) -> bool:
        """True when a learning with this exact title or exact SQL exists."""

    @abstractmethod
    async def count_learnings_since(self, since: datetime, source: str | None = None) -> int: ...

    @abstractmethod
    async def prune_learnings(self, cutoff: datetime, keep_used: bool = True) -> int:
        """Delete learnings created before ``cutoff`` and return how many went."""

    # Query patterns

    @abstractmethod
    async def add_pattern(self, pattern: QueryPattern) -> QueryPattern: ...

    @abstractmethod
    async def list_patterns(self) -> list[QueryPattern]: ...

    # Custom knowledge documents

    @abstractmethod
    async def add_document(self, index: str, document: dict[str, Any]) -> None: ...

    @abstractmethod
    async def list_documents(self, index: str) -> list[dict[str, Any]]: ...

    # Semantic model

    @abstractmethod
    async def save_table(self, table: TableSchema) -> None: ...

    @abstractmethod
    async def list_tables(self, connection: str | None = None) -> list[TableSchema]:
        """Tables for a connection; tables without a connection apply to every connection."""

    @abstractmethod
    async def save_business_rule(self, rule: BusinessRule) -> None: ...

    @abstractmethod
    async def list_business_rules(self) -> list[BusinessRule]: ...


class InMemoryKnowledgeStore(KnowledgeStore):
    """Process-local store. Contents are lost on restart."""

    def __init__(self) -> None:
        self._learnings: dict[int, Learning] = {}
        self._patterns: dict[int, QueryPattern] = {}
        self._documents: dict[str, list[dict[str, Any]]] = {}
        self._tables: dict[tuple[str | None, str], TableSchema] = {}
        self._rules: list[BusinessRule] = []
        self._ids = itertools.count(1)

    async def add_learning(self, learning: Learning) -> Learning:
        stored = learning.model_copy(update={"id": next(self._ids)}, deep=True)
        self._learnings[stored.id] = stored
        logger.debug(f"Stored learning {stored.id}: {stored.title}")
        return stored

    async def get_learning(self, learning_id: int) -> Learning | None:
        return self._learnings.get(learning_id)

    async def list_learnings(self, category: LearningCategory | None = None) -> list[Learning]:
        learnings = sorted(self._learnings.values(), key=lambda item: (item.created_at, item.id))
        if category is not None:
            learnings = [item for item in learnings if item.category == category]
        return learnings

    async def delete_learning(self, learning_id: int) -> bool:
        return self._learnings.pop(learning_id, None) is not None

    async def learning_exists(self, *, title: str | None = None, sql: str | None = None) -> bool:
        for learning in self._learnings.values():
            if title is not None and learning.title == title:
                return True
            if sql is not None and learning.sql == sql:
                return True
        return False

    async def count_learnings_since(self, since: datetime, source: str | None = None) -> int:
        return sum(
            1
            for learning in self._learnings.values()
            if learning.created_at >= since and (source is None or learning.source == source)
        )

    async def prune_learnings(self, cutoff: datetime, keep_used: bool = True) -> int:
        doomed = [
            learning_id
            for learning_id, learning in self._learnings.items()
            if learning.created_at < cutoff
            and not (keep_used and learning.metadata.get("last_used_at"))
        ]
        for learning_id in doomed:
            del self._learnings[learning_id]
        return len(doomed)

    async def add_pattern(self, pattern: QueryPattern) -> QueryPattern:
        stored = pattern.model_copy(update={"id": next(self._ids)}, deep=True)
        self._patterns[stored.id] = stored
        return stored

    async def list_patterns(self) -> list[QueryPattern]:
        return list(self._patterns.values())

    async def add_document(self, index: str, document: dict[str, Any]) -> None:
        self._documents.setdefault(index, []).append(dict(document))

    async def list_documents(self, index: str) -> list[dict[str, Any]]:
        return list(self._documents.get(index, []))

    async def save_table(self, table: TableSchema) -> None:
        self._tables[(table.connection, table.table_name)] = table

    async def list_tables(self, connection: str | None = None) -> list[TableSchema]:
        return [
            table
            for (table_connection, _), table in self._tables.items()
            if table_connection is None or table_connection == connection
        ]

    async def save_business_rule(self, rule: BusinessRule) -> None:
        self._rules.append(rule)

    async def list_business_rules(self) -> list[BusinessRule]:
        return list(self._rules)
