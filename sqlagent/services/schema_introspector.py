"""
Schema Introspector

Live schema lookups through the connection's connector, filtered by the
access policy. Used by the introspect_schema tool and to add the tables a
question mentions to the prompt context.
"""

import logging
from typing import Any

from sqlagent.connectors import ConnectorError, TableInfo
from sqlagent.models.knowledge import TableSchema
from sqlagent.services.access_control import TableAccessControl
from sqlagent.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def format_default_value(default: Any) -> str | None:
    if default is None:
        return None
    if isinstance(default, bool):
        return "true" if default else "false"
    return str(default)


class SchemaIntrospector:
    """Reads table structure from the target databases."""

    def __init__(self, registry: ConnectionRegistry, access_control: TableAccessControl):
        self.registry = registry
        self.access_control = access_control

    async def get_table_names(self, connection_name: str | None = None) -> list[str]:
        """Accessible table names; empty when the database cannot be read."""
        resolved = self.registry.resolve_name(connection_name)
        if resolved is None:
            return []
        try:
            connector = await self.registry.connector(resolved)
            names = await connector.get_table_names()
        except ConnectorError as e:
            logger.error(f"Could not list tables for {resolved}: {e}")
            return []
        return self.access_control.filter_tables(names, resolved)

    async def describe_table(self, table_name: str, connection_name: str | None = None) -> TableInfo | None:
        """Raw table description with hidden columns removed, or None if denied/missing."""
        resolved = self.registry.resolve_name(connection_name)
        if not self.access_control.is_table_allowed(table_name, resolved):
            return None

        connector = await self.registry.connector(resolved)
        table = await connector.get_table(table_name)
        if table is None:
            return None

        hidden = self.access_control.get_hidden_columns(table_name, resolved)
        if hidden:
            table = table.model_copy(
                update={"columns": [c for c in table.columns if c.name not in hidden]}
            )
        return table

    async def introspect_table(self, table_name: str, connection_name: str | None = None) -> TableSchema | None:
        """Prompt-ready schema for one table, or None if denied, missing or unreadable."""
        try:
            table = await self.describe_table(table_name, connection_name)
        except ConnectorError as e:
            logger.error(f"Could not introspect {table_name}: {e}")
            return None
        if table is None:
            return None
        return self.to_table_schema(table)

    @staticmethod
    def to_table_schema(table: TableInfo) -> TableSchema:
        columns: dict[str, str] = {}
        for column in table.columns:
            parts = [column.data_type]
            if column.is_primary_key:
                parts.append("Primary key")
            if column.references:
                parts.append(f"FK → {column.references}")
            if not column.is_nullable:
                parts.append("NOT NULL")
            default = format_default_value(column.default_value)
            if default is not None:
                parts.append(f"default: {default}")
            if column.comment:
                parts.append(column.comment)
            columns[column.name] = ", ".join(parts)

        relationships = [
            f"belongsTo {column.foreign_table} via {column.name} → {column.references}"
            for column in table.foreign_keys
        ]

        return TableSchema(
            table_name=table.table_name,
            description=table.description,
            columns=columns,
            relationships=relationships,
        )

    async def get_relevant_schema(self, question: str, connection_name: str | None = None) -> str | None:
        """Schemas of tables the question appears to mention, joined for the prompt."""
        tables = self.extract_potential_table_names(
            question, await self.get_table_names(connection_name)
        )
        if not tables:
            return None

        schemas = []
        for table_name in tables:
            schema = await self.introspect_table(table_name, connection_name)
            if schema is not None:
                schemas.append(schema.to_prompt_string())
        return "\n\n---\n\n".join(schemas) or None

    @staticmethod
    def extract_potential_table_names(question: str, table_names: list[str]) -> list[str]:
        """
        Match table names against the question text.

        Tries the name itself, the name without a trailing "s", and the
        name with underscores turned into spaces or removed.
        """
        question_lower = question.lower()
        matches = []
        for table_name in table_names:
            name = table_name.lower()
            singular = name[:-1] if name.endswith("s") else name
            candidates = [name, singular, name.replace("_", " "), name.replace("_", "")]
            if any(candidate and candidate in question_lower for candidate in candidates):
                if table_name not in matches:
                    matches.append(table_name)
        return matches

    async def format(self, connection_name: str | None = None) -> str:
        schemas = []
        for table_name in await self.get_table_names(connection_name):
            schema = await self.introspect_table(table_name, connection_name)
            if schema is not None:
                schemas.append(schema.to_prompt_string())
        if not schemas:
            return "No tables found in the database."
        return "\n\n---\n\n".join(schemas)
