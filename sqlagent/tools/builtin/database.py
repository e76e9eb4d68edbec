"""Built-in database tools: run_sql and introspect_schema."""

from __future__ import annotations

import logging
from typing import Any

from sqlagent.config import SQLSettings
from sqlagent.connectors import ConnectorError
from sqlagent.models.agent import ExecutedQuery
from sqlagent.models.errors import KnowledgeError, SQLExecutionError, ToolError
from sqlagent.services.access_control import TableAccessControl
from sqlagent.services.connection_registry import ConnectionRegistry
from sqlagent.services.learning import LearningMachine
from sqlagent.services.schema_introspector import SchemaIntrospector, format_default_value
from sqlagent.services.sql_validator import SqlValidator, referenced_tables
from sqlagent.tools.base import Tool

logger = logging.getLogger(__name__)

SAMPLE_ROWS = 3


def _connection_enum(registry: ConnectionRegistry) -> dict[str, dict[str, Any]]:
    names = registry.get_connection_names()
    return {"connection": {"enum": names}} if names else {}


class RunSqlTool(Tool):
    """
    Executes validated, read-only SQL.

    Holds per-run state (last statement, its rows, every executed query),
    so each agent run gets its own instance.
    """

    name = "run_sql"

    def __init__(
        self,
        settings: SQLSettings,
        registry: ConnectionRegistry,
        validator: SqlValidator,
        access_control: TableAccessControl,
        learning: LearningMachine | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.validator = validator
        self.access_control = access_control
        self.learning = learning
        self.connection: str | None = None
        self.question: str | None = None
        self.last_sql: str | None = None
        self.last_results: list[dict[str, Any]] | None = None
        self.executed_queries: list[ExecutedQuery] = []

    @property
    def description(self) -> str:
        allowed = ", ".join(self.settings.allowed_statements)
        return (
            f"Execute a SQL query against the database. Only {allowed} statements are allowed. "
            "Returns query results as JSON."
        )

    @property
    def param_descriptions(self) -> dict[str, str]:
        allowed = ", ".join(self.settings.allowed_statements)
        return {
            "sql": f"The SQL query to execute. Must be a {allowed} statement.",
            "connection": "The database connection to query.",
        }

    def schema_overrides(self) -> dict[str, dict[str, Any]]:
        return _connection_enum(self.registry)

    def set_question(self, question: str | None) -> None:
        self.question = question

    def set_connection(self, connection: str | None) -> None:
        """Connection used when the model does not name one."""
        self.connection = connection

    def reset(self) -> None:
        self.last_sql = None
        self.last_results = None
        self.executed_queries = []

    async def handle(self, sql: str, connection: str | None = None) -> dict[str, Any]:
        sql = sql.strip()
        if not sql:
            raise ToolError("SQL query cannot be empty.", tool=self.name)

        resolved = self.registry.resolve_name(connection or self.connection)
        self.validator.validate(sql, resolved)

        connector = await self.registry.connector(resolved)
        try:
            result = await connector.execute(sql)
        except ConnectorError as e:
            await self._learn_from_error(sql, str(e))
            raise SQLExecutionError(str(e), context={"sql": sql, "connection": resolved}) from e

        rows = self._strip_hidden_columns(sql, result.rows, resolved)
        total_rows = len(rows)
        rows = rows[: self.settings.max_rows]

        self.last_sql = sql
        self.last_results = rows
        self.executed_queries.append(ExecutedQuery(sql=sql, connection=resolved))

        return {
            "rows": rows,
            "row_count": len(rows),
            "total_rows": total_rows,
            "truncated": total_rows > self.settings.max_rows,
        }

    def _strip_hidden_columns(
        self, sql: str, rows: list[dict[str, Any]], connection: str | None
    ) -> list[dict[str, Any]]:
        hidden: set[str] = set()
        for table in referenced_tables(sql):
            hidden.update(column.lower() for column in self.access_control.get_hidden_columns(table, connection))
        if not hidden:
            return rows
        return [{key: value for key, value in row.items() if key.lower() not in hidden} for row in rows]

    async def _learn_from_error(self, sql: str, error: str) -> None:
        if self.learning is None or self.question is None:
            return
        try:
            await self.learning.learn_from_error(sql, error, self.question)
        except KnowledgeError as e:
            logger.error(f"Could not record learning for failed query: {e}")


class IntrospectSchemaTool(Tool):
    name = "introspect_schema"
    description = (
        "Get detailed schema information about database tables. "
        "Can inspect a specific table or list all available tables."
    )
    param_descriptions = {
        "table_name": "Optional: The name of a specific table to inspect. If not provided, lists all tables.",
        "include_sample_data": (
            "Whether to include sample data from the table (up to 3 rows). This data is for "
            "understanding the schema only - never use it directly in responses to the user."
        ),
        "connection": "The database connection to inspect.",
    }

    def __init__(
        self,
        registry: ConnectionRegistry,
        introspector: SchemaIntrospector,
        access_control: TableAccessControl,
    ):
        self.registry = registry
        self.introspector = introspector
        self.access_control = access_control
        self.connection: str | None = None

    def set_connection(self, connection: str | None) -> None:
        self.connection = connection

    def schema_overrides(self) -> dict[str, dict[str, Any]]:
        return _connection_enum(self.registry)

    async def handle(
        self,
        table_name: str | None = None,
        include_sample_data: bool = False,
        connection: str | None = None,
    ) -> dict[str, Any]:
        resolved = self.registry.resolve_name(connection or self.connection)

        if not table_name:
            tables = await self.introspector.get_table_names(resolved)
            return {"tables": tables, "count": len(tables)}

        if not self.access_control.is_table_allowed(table_name, resolved):
            raise ToolError(f"Access denied: table '{table_name}' is restricted.", tool=self.name)

        table = await self.introspector.describe_table(table_name, resolved)
        if table is None:
            available = await self.introspector.get_table_names(resolved)
            raise ToolError(
                f"Table '{table_name}' does not exist. Available tables: {', '.join(available)}",
                tool=self.name,
            )

        result: dict[str, Any] = {
            "table": table_name,
            "description": table.description,
            "columns": [
                {
                    "name": column.name,
                    "type": column.data_type,
                    "nullable": column.is_nullable,
                    "primary_key": column.is_primary_key,
                    "foreign_key": column.is_foreign_key,
                    "references": column.references,
                    "default": format_default_value(column.default_value),
                    "description": column.comment,
                }
                for column in table.columns
            ],
            "relationships": [
                {
                    "type": "belongsTo",
                    "related_table": column.foreign_table,
                    "foreign_key": column.name,
                    "local_key": column.foreign_column or "id",
                }
                for column in table.foreign_keys
            ],
        }

        if include_sample_data:
            connector = await self.registry.connector(resolved)
            rows = await connector.sample_rows(table_name, SAMPLE_ROWS)
            result["sample_data"] = [
                self.access_control.filter_row(table_name, row, resolved) for row in rows
            ]

        return result
