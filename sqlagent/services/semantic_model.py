"""
Semantic Model Loader

Curated table metadata (descriptions, column meanings, relationships,
data-quality notes) read from ``<knowledge path>/tables/*.{json,yaml,yml}``
or from the knowledge store.

A table file looks like:

    table_name: orders
    description: One row per checkout
    connection: shop            # optional, applies to every connection if omitted
    columns:
      - name: status
        type: text
        description: pending | paid | refunded
    relationships:
      - belongsTo customers via customer_id
    data_quality_notes:
      - Orders before 2021 have no currency
    use_cases:
      - Revenue reporting
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sqlagent.config import KnowledgeSettings
from sqlagent.knowledge.store import KnowledgeStore
from sqlagent.models.knowledge import TableSchema
from sqlagent.services.access_control import TableAccessControl

logger = logging.getLogger(__name__)

NO_TABLE_METADATA = "No table metadata available."
KNOWLEDGE_FILE_PATTERNS = ("*.json", "*.yaml", "*.yml")


def read_knowledge_file(path: Path) -> Any:
    """Parse a JSON or YAML knowledge file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def knowledge_files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    files: list[Path] = []
    for pattern in KNOWLEDGE_FILE_PATTERNS:
        files.extend(directory.glob(pattern))
    return sorted(files)


def _describe_column(column: dict[str, Any]) -> str:
    parts = []
    if column.get("type"):
        parts.append(str(column["type"]))
    if column.get("primary_key") or column.get("is_primary_key"):
        parts.append("Primary key")
    foreign_table = column.get("foreign_table")
    if foreign_table:
        parts.append(f"FK → {foreign_table}.{column.get('foreign_column') or 'id'}")
    if column.get("description"):
        parts.append(str(column["description"]))
    return ", ".join(parts)


def _describe_relationship(relationship: Any) -> str:
    if isinstance(relationship, str):
        return relationship
    description = f"{relationship.get('type', 'related')} {relationship.get('related_table', '')}"
    if relationship.get("foreign_key"):
        description += f" via {relationship['foreign_key']}"
    if relationship.get("description"):
        description += f" ({relationship['description']})"
    return description


def parse_table_data(data: dict[str, Any]) -> TableSchema:
    """Build a TableSchema from a table file's contents."""
    raw_columns = data.get("table_columns", data.get("columns")) or {}
    if isinstance(raw_columns, dict):
        columns = {name: str(description or "") for name, description in raw_columns.items()}
    else:
        columns = {column["name"]: _describe_column(column) for column in raw_columns}

    return TableSchema(
        table_name=data["table_name"],
        description=data.get("table_description") or data.get("description"),
        columns=columns,
        relationships=[_describe_relationship(item) for item in data.get("relationships") or []],
        data_quality_notes=list(data.get("data_quality_notes") or []),
        use_cases=list(data.get("use_cases") or []),
        connection=data.get("connection"),
    )


class SemanticModelLoader:
    """Loads and renders the semantic model for a connection."""

    def __init__(
        self,
        settings: KnowledgeSettings,
        store: KnowledgeStore,
        access_control: TableAccessControl,
    ):
        self.settings = settings
        self.store = store
        self.access_control = access_control

    async def load(self, connection: str | None = None) -> list[TableSchema]:
        """Tables visible on ``connection`` with hidden columns removed."""
        if self.settings.source == "store":
            tables = await self.store.list_tables(connection)
        else:
            tables = [
                table
                for table in self._load_files()
                if table.connection is None or table.connection == connection
            ]

        visible = []
        for table in tables:
            if not self.access_control.is_table_allowed(table.table_name, connection):
                continue
            columns = self.access_control.filter_columns(table.table_name, table.columns, connection)
            if columns is not table.columns:
                table = table.model_copy(update={"columns": columns})
            visible.append(table)
        return visible

    async def format(self, connection: str | None = None) -> str:
        tables = await self.load(connection)
        if not tables:
            return NO_TABLE_METADATA
        return "\n\n---\n\n".join(table.to_prompt_string() for table in tables)

    async def get_table(self, table_name: str, connection: str | None = None) -> TableSchema | None:
        for table in await self.load(connection):
            if table.table_name == table_name:
                return table
        return None

    async def get_table_names(self, connection: str | None = None) -> list[str]:
        return [table.table_name for table in await self.load(connection)]

    def _load_files(self) -> list[TableSchema]:
        tables = []
        for path in knowledge_files(Path(self.settings.path) / "tables"):
            try:
                data = read_knowledge_file(path)
                tables.append(parse_table_data(data))
            except (OSError, ValueError, yaml.YAMLError, KeyError, TypeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable table file {path}: {e}")
        return tables
