"""
Base Database Connector

Abstract base class for the target database connectors the agent queries.
Provides a consistent async interface for connecting, running read-only
queries and introspecting tables.

All connectors must implement:
- connect(): Establish connection (pool)
- execute(): Run a query with optional parameters and timeout
- get_table_names(): List tables in the target schema
- get_table(): Describe one table (columns, keys, comments)
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class ColumnInfo(BaseModel):
    """Information about a database column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Column data type")
    is_nullable: bool = Field(default=True, description="Whether column can be NULL")
    default_value: str | None = Field(None, description="Default value if any")
    is_primary_key: bool = Field(default=False, description="Is part of primary key")
    is_foreign_key: bool = Field(default=False, description="Is a foreign key")
    foreign_table: str | None = Field(None, description="Referenced table if FK")
    foreign_column: str | None = Field(None, description="Referenced column if FK")
    comment: str | None = Field(None, description="Column comment from the catalog")

    @property
    def references(self) -> str | None:
        if not self.is_foreign_key or not self.foreign_table:
            return None
        return f"{self.foreign_table}.{self.foreign_column or 'id'}"


class TableInfo(BaseModel):
    """Information about a database table."""

    schema_name: str = Field(..., alias="schema", description="Schema/database name")
    table_name: str = Field(..., description="Table name")
    columns: list[ColumnInfo] = Field(default_factory=list, description="List of columns")
    row_count: int | None = Field(None, description="Approximate row count")
    table_type: str = Field(default="TABLE", description="TABLE, VIEW, etc.")
    description: str | None = Field(None, description="Table comment from the catalog")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def foreign_keys(self) -> list[ColumnInfo]:
        return [column for column in self.columns if column.is_foreign_key]


class QueryResult(BaseModel):
    """Result from query execution."""

    rows: list[dict[str, Any]] = Field(..., description="Query result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Query execution time in ms")


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """Error executing database query."""

    pass


class SchemaError(ConnectorError):
    """Error introspecting database schema."""

    pass


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Features:
    - Async interface throughout
    - Query timeout configuration
    - Table listing and single-table introspection
    - Sample rows for schema exploration
    - Automatic resource cleanup

    Usage:
        connector = PostgresConnector(host="localhost", ...)
        await connector.connect()

        result = await connector.execute("SELECT * FROM users LIMIT 10")
        print(f"Found {result.row_count} rows")

        table = await connector.get_table("users")
        await connector.close()
    """

    identifier_quote = '"'

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ):
        """
        Initialize connector.

        Args:
            host: Database host
            port: Database port
            database: Database/schema name
            user: Database user
            password: Database password
            pool_size: Connection pool size (default: 10)
            timeout: Query timeout in seconds (default: 30)
            **kwargs: Additional connector-specific parameters
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._pool = None
        self._connected = False

        logger.info(f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection.

        Should be idempotent.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def execute(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """
        Execute a SQL query.

        Args:
            query: SQL query string
            params: Query parameters (optional)
            timeout: Query timeout in seconds (overrides default)

        Returns:
            QueryResult with rows, columns, and metadata

        Raises:
            QueryError: If query execution fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def get_table_names(self, schema_name: str | None = None) -> list[str]:
        """
        List base tables and views in a schema.

        Raises:
            SchemaError: If the catalog cannot be read
        """
        pass

    @abstractmethod
    async def get_table(self, table_name: str, schema_name: str | None = None) -> TableInfo | None:
        """
        Describe one table, or return None when it does not exist.

        Raises:
            SchemaError: If the catalog cannot be read
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close database connection and clean up resources.

        Should be idempotent - safe to call multiple times.
        """
        pass

    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        """Introspect every table in a schema."""
        tables = []
        for table_name in await self.get_table_names(schema_name):
            table = await self.get_table(table_name, schema_name)
            if table is not None:
                tables.append(table)
        return tables

    async def table_exists(self, table_name: str, schema_name: str | None = None) -> bool:
        return table_name in await self.get_table_names(schema_name)

    async def sample_rows(self, table_name: str, limit: int = 3) -> list[dict[str, Any]]:
        """Return up to ``limit`` rows from a table."""
        result = await self.execute(
            f"SELECT * FROM {self.quote_identifier(table_name)} LIMIT {int(limit)}"
        )
        return result.rows

    def quote_identifier(self, name: str) -> str:
        quote = self.identifier_quote
        return f"{quote}{name.replace(quote, quote * 2)}{quote}"

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
        return False

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.user}@{self.host}:{self.port}/{self.database} ({status})>"
