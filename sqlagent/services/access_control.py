"""Table and column access policy per logical connection."""

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from sqlagent.services.connection_registry import ConnectionRegistry

Columns = TypeVar("Columns", Mapping[str, Any], list[str])


class TableAccessControl:
    """
    Answers "may the agent see this table / column?".

    Deny lists win over allow lists, an empty allow list allows everything
    not denied, and a missing or unknown connection name has no policy.
    Table and column names compare case-insensitively.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def _policy(self, connection_name: str | None) -> tuple[list[str], list[str], dict[str, list[str]]]:
        if connection_name is None or not self.registry.has(connection_name):
            return [], [], {}
        config = self.registry.get(connection_name)
        return config.allowed_tables, config.denied_tables, config.hidden_columns

    def is_table_allowed(self, table: str, connection_name: str | None = None) -> bool:
        allowed, denied, _ = self._policy(connection_name)
        name = table.lower()
        if name in {entry.lower() for entry in denied}:
            return False
        if not allowed:
            return True
        return name in {entry.lower() for entry in allowed}

    def filter_tables(self, tables: Iterable[str], connection_name: str | None = None) -> list[str]:
        return [table for table in tables if self.is_table_allowed(table, connection_name)]

    def get_hidden_columns(self, table: str, connection_name: str | None = None) -> list[str]:
        _, _, hidden = self._policy(connection_name)
        name = table.lower()
        return [column for key, columns in hidden.items() if key.lower() == name for column in columns]

    def filter_columns(self, table: str, columns: Columns, connection_name: str | None = None) -> Columns:
        """
        Drop hidden columns from a name->info mapping or a list of names.

        Returns the very same object when the table has no hidden columns.
        """
        hidden = {column.lower() for column in self.get_hidden_columns(table, connection_name)}
        if not hidden or not any(column.lower() in hidden for column in columns):
            return columns

        if isinstance(columns, Mapping):
            return {name: info for name, info in columns.items() if name.lower() not in hidden}
        return [name for name in columns if name.lower() not in hidden]

    def filter_row(self, table: str, row: dict[str, Any], connection_name: str | None = None) -> dict[str, Any]:
        return self.filter_columns(table, row, connection_name)
