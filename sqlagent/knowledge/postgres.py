"""PostgreSQL-backed knowledge store."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import asyncpg

from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.models.errors import KnowledgeError
from sqlagent.models.knowledge import (
    BusinessRule,
    Learning,
    LearningCategory,
    QueryPattern,
    TableSchema,
)

logger = logging.getLogger(__name__)

_CREATE_LEARNINGS_TABLE = """
CREATE TABLE IF NOT EXISTS sql_agent_learnings (
    id BIGSERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT NOT NULL,
    sql TEXT,
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL
);
"""

_CREATE_LEARNINGS_TITLE_INDEX = """
CREATE INDEX IF NOT EXISTS sql_agent_learnings_title_idx
ON sql_agent_learnings (title);
"""

_CREATE_PATTERNS_TABLE = """
CREATE TABLE IF NOT EXISTS sql_agent_query_patterns (
    id BIGSERIAL PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    question TEXT NOT NULL,
    sql TEXT NOT NULL,
    summary TEXT,
    tables_used JSONB NOT NULL DEFAULT '[]'::jsonb,
    data_quality_notes TEXT,
    created_at TIMESTAMPTZ NOT NULL
);
"""

_CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS sql_agent_documents (
    id BIGSERIAL PRIMARY KEY,
    index_name TEXT NOT NULL,
    data JSONB NOT NULL
);
"""

_CREATE_TABLE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS sql_agent_table_metadata (
    connection TEXT NOT NULL DEFAULT '',
    table_name TEXT NOT NULL,
    data JSONB NOT NULL,
    PRIMARY KEY (connection, table_name)
);
"""

_CREATE_BUSINESS_RULES_TABLE = """
CREATE TABLE IF NOT EXISTS sql_agent_business_rules (
    id BIGSERIAL PRIMARY KEY,
    data JSONB NOT NULL
);
"""

_LEARNING_COLUMNS = "id, title, description, category, sql, metadata, created_at"
_PATTERN_COLUMNS = "id, name, question, sql, summary, tables_used, data_quality_notes, created_at"

# Text fed to to_tsvector per index
_FULLTEXT_SOURCES = {
    "learnings": (
        "sql_agent_learnings",
        _LEARNING_COLUMNS,
        "coalesce(title, '') || ' ' || coalesce(description, '')",
    ),
    "query_patterns": (
        "sql_agent_query_patterns",
        _PATTERN_COLUMNS,
        "coalesce(name, '') || ' ' || coalesce(question, '') || ' ' || coalesce(summary, '')",
    ),
}


class PostgresKnowledgeStore(KnowledgeStore):
    """Persist learnings, patterns and knowledge documents in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    async def initialize(self) -> None:
        if self._pool is None:
            dsn = self._normalize_postgres_url(self._database_url)
            try:
                self._pool = await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=5)
            except (asyncpg.PostgresError, OSError) as e:
                logger.error(f"Knowledge store connection failed: {e}")
                raise KnowledgeError(f"Failed to connect to knowledge store: {e}") from e
        for statement in (
            _CREATE_LEARNINGS_TABLE,
            _CREATE_LEARNINGS_TITLE_INDEX,
            _CREATE_PATTERNS_TABLE,
            _CREATE_DOCUMENTS_TABLE,
            _CREATE_TABLE_METADATA_TABLE,
            _CREATE_BUSINESS_RULES_TABLE,
        ):
            await self._pool.execute(statement)
        logger.info("Knowledge store initialized")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Learnings

    async def add_learning(self, learning: Learning) -> Learning:
        self._ensure_pool()
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO sql_agent_learnings (title, description, category, sql, metadata, created_at)
            VALUES ($1, $2, $3, $4, $5::jsonb, $6)
            RETURNING {_LEARNING_COLUMNS}
            """,
            learning.title,
            learning.description,
            learning.category.value,
            learning.sql,
            json.dumps(learning.metadata, default=str),
            learning.created_at,
        )
        return self._row_to_learning(row)

    async def get_learning(self, learning_id: int) -> Learning | None:
        self._ensure_pool()
        row = await self._pool.fetchrow(
            f"SELECT {_LEARNING_COLUMNS} FROM sql_agent_learnings WHERE id = $1",
            learning_id,
        )
        return self._row_to_learning(row) if row else None

    async def list_learnings(self, category: LearningCategory | None = None) -> list[Learning]:
        self._ensure_pool()
        if category is None:
            rows = await self._pool.fetch(
                f"SELECT {_LEARNING_COLUMNS} FROM sql_agent_learnings ORDER BY created_at, id"
            )
        else:
            rows = await self._pool.fetch(
                f"""
                SELECT {_LEARNING_COLUMNS} FROM sql_agent_learnings
                WHERE category = $1
                ORDER BY created_at, id
                """,
                category.value,
            )
        return [self._row_to_learning(row) for row in rows]

    async def delete_learning(self, learning_id: int) -> bool:
        self._ensure_pool()
        result = await self._pool.execute(
            "DELETE FROM sql_agent_learnings WHERE id = $1", learning_id
        )
        return self._affected_rows(result) > 0

    async def learning_exists(self, *, title: str | None = None, sql: str | None = None) -> bool:
        self._ensure_pool()
        if title is None and sql is None:
            return False
        return bool(
            await self._pool.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM sql_agent_learnings
                    WHERE ($1::text IS NOT NULL AND title = $1)
                    OR ($2::text IS NOT NULL AND sql = $2)
                )
                """,
                title,
                sql,
            )
        )

    async def count_learnings_since(self, since: datetime, source: str | None = None) -> int:
        self._ensure_pool()
        count = await self._pool.fetchval(
            """
            SELECT COUNT(*) FROM sql_agent_learnings
            WHERE created_at >= $1
            AND ($2::text IS NULL OR metadata->>'source' = $2)
            """,
            since,
            source,
        )
        return int(count or 0)

    async def prune_learnings(self, cutoff: datetime, keep_used: bool = True) -> int:
        self._ensure_pool()
        result = await self._pool.execute(
            """
            DELETE FROM sql_agent_learnings
            WHERE created_at < $1
            AND (NOT $2 OR metadata->>'last_used_at' IS NULL)
            """,
            cutoff,
            keep_used,
        )
        return self._affected_rows(result)

    # Query patterns

    async def add_pattern(self, pattern: QueryPattern) -> QueryPattern:
        self._ensure_pool()
        row = await self._pool.fetchrow(
            f"""
            INSERT INTO sql_agent_query_patterns
                (name, question, sql, summary, tables_used, data_quality_notes, created_at)
            VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7)
            RETURNING {_PATTERN_COLUMNS}
            """,
            pattern.name,
            pattern.question,
            pattern.sql,
            pattern.summary,
            json.dumps(pattern.tables_used),
            pattern.data_quality_notes,
            pattern.created_at,
        )
        return self._row_to_pattern(row)

    async def list_patterns(self) -> list[QueryPattern]:
        self._ensure_pool()
        rows = await self._pool.fetch(
            f"SELECT {_PATTERN_COLUMNS} FROM sql_agent_query_patterns ORDER BY id"
        )
        return [self._row_to_pattern(row) for row in rows]

    # Custom knowledge documents

    async def add_document(self, index: str, document: dict[str, Any]) -> None:
        self._ensure_pool()
        await self._pool.execute(
            "INSERT INTO sql_agent_documents (index_name, data) VALUES ($1, $2::jsonb)",
            index,
            json.dumps(document, default=str),
        )

    async def list_documents(self, index: str) -> list[dict[str, Any]]:
        self._ensure_pool()
        rows = await self._pool.fetch(
            "SELECT data FROM sql_agent_documents WHERE index_name = $1 ORDER BY id",
            index,
        )
        return [self._decode_json_field(row["data"]) or {} for row in rows]

    # Semantic model

    async def save_table(self, table: TableSchema) -> None:
        self._ensure_pool()
        await self._pool.execute(
            """
            INSERT INTO sql_agent_table_metadata (connection, table_name, data)
            VALUES ($1, $2, $3::jsonb)
            ON CONFLICT (connection, table_name) DO UPDATE SET data = EXCLUDED.data
            """,
            table.connection or "",
            table.table_name,
            table.model_dump_json(),
        )

    async def list_tables(self, connection: str | None = None) -> list[TableSchema]:
        self._ensure_pool()
        rows = await self._pool.fetch(
            """
            SELECT data FROM sql_agent_table_metadata
            WHERE connection = '' OR connection = $1
            ORDER BY table_name
            """,
            connection or "",
        )
        return [TableSchema.model_validate(self._decode_json_field(row["data"])) for row in rows]

    async def save_business_rule(self, rule: BusinessRule) -> None:
        self._ensure_pool()
        await self._pool.execute(
            "INSERT INTO sql_agent_business_rules (data) VALUES ($1::jsonb)",
            rule.model_dump_json(),
        )

    async def list_business_rules(self) -> list[BusinessRule]:
        self._ensure_pool()
        rows = await self._pool.fetch("SELECT data FROM sql_agent_business_rules ORDER BY id")
        return [BusinessRule.model_validate(self._decode_json_field(row["data"])) for row in rows]

    # Full-text search

    async def fulltext_search(
        self,
        index: str,
        term: str,
        limit: int,
        language: str = "english",
    ) -> list[tuple[Learning | QueryPattern | dict[str, Any], float]]:
        """Rank rows of one index with to_tsvector/plainto_tsquery/ts_rank."""
        self._ensure_pool()
        if not term:
            return []

        if index in _FULLTEXT_SOURCES:
            table, columns, text_expression = _FULLTEXT_SOURCES[index]
            where = ""
            params: list[Any] = [language, term, limit]
        else:
            table, columns, text_expression = (
                "sql_agent_documents",
                "data",
                "coalesce(data::text, '')",
            )
            where = "AND index_name = $4"
            params = [language, term, limit, index]

        vector = f"to_tsvector($1::regconfig, {text_expression})"
        query = "plainto_tsquery($1::regconfig, $2)"
        rows = await self._pool.fetch(
            f"""
            SELECT {columns}, ts_rank({vector}, {query}) AS search_score
            FROM {table}
            WHERE {vector} @@ {query} {where}
            ORDER BY search_score DESC
            LIMIT $3
            """,
            *params,
        )

        if index == "learnings":
            return [(self._row_to_learning(row), float(row["search_score"])) for row in rows]
        if index == "query_patterns":
            return [(self._row_to_pattern(row), float(row["search_score"])) for row in rows]
        return [
            (self._decode_json_field(row["data"]) or {}, float(row["search_score"]))
            for row in rows
        ]

    def _ensure_pool(self) -> None:
        if self._pool is None:
            raise KnowledgeError("PostgresKnowledgeStore not initialized")

    @staticmethod
    def _normalize_postgres_url(url: str) -> str:
        if url.startswith("postgresql+asyncpg://"):
            return "postgresql://" + url[len("postgresql+asyncpg://") :]
        return url

    @staticmethod
    def _affected_rows(status: str) -> int:
        try:
            return int(str(status).split()[-1])
        except (ValueError, IndexError):
            return 0

    @staticmethod
    def _decode_json_field(value: Any) -> Any:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return None
        return value

    @classmethod
    def _row_to_learning(cls, row: asyncpg.Record) -> Learning:
        return Learning(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            category=LearningCategory(row["category"]),
            sql=row["sql"],
            metadata=cls._decode_json_field(row["metadata"]) or {},
            created_at=row["created_at"],
        )

    @classmethod
    def _row_to_pattern(cls, row: asyncpg.Record) -> QueryPattern:
        return QueryPattern(
            id=row["id"],
            name=row["name"],
            question=row["question"],
            sql=row["sql"],
            summary=row["summary"],
            tables_used=cls._decode_json_field(row["tables_used"]) or [],
            data_quality_notes=row["data_quality_notes"],
            created_at=row["created_at"],
        )
