"""
PostgreSQL Connector

Async PostgreSQL connector using asyncpg.

Features:
- Connection pooling with asyncpg
- Read-only transactions for agent queries
- Per-query statement timeout
- Table and column comments from pg_catalog
- Foreign key and primary key discovery

Usage:
    connector = PostgresConnector(
        host="localhost",
        port=5432,
        database="mydb",
        user="postgres",
        password="secret"
    )

    await connector.connect()
    result = await connector.execute("SELECT * FROM users WHERE age > $1", params=[18])
    table = await connector.get_table("users")
    await connector.close()
"""

import logging
import time
from typing import Any

import asyncpg

from sqlagent.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    QueryError,
    QueryResult,
    SchemaError,
    TableInfo,
)

logger = logging.getLogger(__name__)

_TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1
    AND table_type IN ('BASE TABLE', 'VIEW')
    ORDER BY table_name
"""

_TABLE_QUERY = """
    SELECT
        t.table_type,
        obj_description(c.oid, 'pg_class') AS table_comment,
        c.reltuples::bigint AS estimate
    FROM information_schema.tables t
    JOIN pg_namespace n ON n.nspname = t.table_schema
    JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
    WHERE t.table_schema = $1 AND t.table_name = $2
"""

_COLUMNS_QUERY = """
    SELECT
        cols.column_name,
        cols.data_type,
        cols.is_nullable,
        cols.column_default,
        col_description(c.oid, cols.ordinal_position::int) AS column_comment
    FROM information_schema.columns cols
    JOIN pg_namespace n ON n.nspname = cols.table_schema
    JOIN pg_class c ON c.relname = cols.table_name AND c.relnamespace = n.oid
    WHERE cols.table_schema = $1 AND cols.table_name = $2
    ORDER BY cols.ordinal_position
"""

_PRIMARY_KEY_QUERY = """
    SELECT a.attname
    FROM pg_index i
    JOIN pg_attribute a ON a.attrelid = i.indrelid
        AND a.attnum = ANY(i.indkey)
    WHERE i.indrelid = $1::regclass
    AND i.indisprimary
"""

_FOREIGN_KEY_QUERY = """
    SELECT
        kcu.column_name,
        ccu.table_name AS foreign_table_name,
        ccu.column_name AS foreign_column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
    AND tc.table_schema = $1
    AND tc.table_name = $2
"""


class PostgresConnector(BaseConnector):
    """
    PostgreSQL database connector using asyncpg.

    Agent queries run inside read-only transactions so that a statement
    slipping past the validator still cannot modify data.
    """

    async def connect(self) -> None:
        """
        Establish connection to PostgreSQL and create connection pool.

        Raises:
            ConnectionError: If connection fails
        """
        if self._connected and self._pool:
            logger.debug("Already connected, skipping connection")
            return

        try:
            logger.info(f"Connecting to PostgreSQL at {self.host}:{self.port}/{self.database}")

            self._pool = await asyncpg.create_pool(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                min_size=1,
                max_size=self.pool_size,
                command_timeout=self.timeout,
                **self.kwargs,
            )

            async with self._pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                logger.info(f"Connected to PostgreSQL: {version.split(',')[0]}")

            self._connected = True

        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

    async def execute(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """
        Execute a SQL query in a read-only transaction.

        Args:
            query: SQL query (use $1, $2, ... for parameters)
            params: Query parameters
            timeout: Query timeout in seconds (overrides default)

        Returns:
            QueryResult with rows and metadata

        Raises:
            QueryError: If query fails
            ConnectionError: If not connected
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout

        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction(readonly=True):
                    await conn.execute(f"SET LOCAL statement_timeout = {query_timeout * 1000}")
                    rows = await conn.fetch(query, *(params or []))

            result_rows = [dict(row) for row in rows]
            columns = list(rows[0].keys()) if rows else []
            execution_time_ms = (time.perf_counter() - start_time) * 1000

            logger.debug(
                f"Query executed in {execution_time_ms:.2f}ms, "
                f"returned {len(result_rows)} rows"
            )

            return QueryResult(
                rows=result_rows,
                row_count=len(result_rows),
                columns=columns,
                execution_time_ms=execution_time_ms,
            )

        except asyncpg.QueryCanceledError as e:
            logger.error(f"Query timed out after {query_timeout}s: {query[:100]}...")
            raise QueryError(f"Query timeout ({query_timeout}s)") from e
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(str(e)) from e

    async def get_table_names(self, schema_name: str | None = None) -> list[str]:
        """List tables and views in a schema (default: public)."""
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(_TABLES_QUERY, schema_name or "public")
        except asyncpg.PostgresError as e:
            logger.error(f"Listing tables failed: {e}")
            raise SchemaError(f"Failed to list tables: {e}") from e

        return [row["table_name"] for row in rows]

    async def get_table(self, table_name: str, schema_name: str | None = None) -> TableInfo | None:
        """
        Introspect one table.

        Retrieves columns, data types, keys and comments from
        information_schema and pg_catalog.

        Returns:
            TableInfo, or None if the table does not exist

        Raises:
            SchemaError: If introspection fails
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        table_schema = schema_name or "public"

        try:
            async with self._pool.acquire() as conn:
                table_row = await conn.fetchrow(_TABLE_QUERY, table_schema, table_name)
                if table_row is None:
                    return None

                columns = await conn.fetch(_COLUMNS_QUERY, table_schema, table_name)
                full_table_name = f'"{table_schema}"."{table_name}"'
                pk_rows = await conn.fetch(_PRIMARY_KEY_QUERY, full_table_name)
                fk_rows = await conn.fetch(_FOREIGN_KEY_QUERY, table_schema, table_name)

        except asyncpg.PostgresError as e:
            logger.error(f"Schema introspection failed for {table_name}: {e}")
            raise SchemaError(f"Failed to introspect table {table_name}: {e}") from e

        pk_columns = {row["attname"] for row in pk_rows}
        fk_map = {
            row["column_name"]: (row["foreign_table_name"], row["foreign_column_name"])
            for row in fk_rows
        }

        column_infos = []
        for col in columns:
            col_name = col["column_name"]
            fk_target = fk_map.get(col_name)
            column_infos.append(
                ColumnInfo(
                    name=col_name,
                    data_type=col["data_type"],
                    is_nullable=col["is_nullable"] == "YES",
                    default_value=col["column_default"],
                    is_primary_key=col_name in pk_columns,
                    is_foreign_key=fk_target is not None,
                    foreign_table=fk_target[0] if fk_target else None,
                    foreign_column=fk_target[1] if fk_target else None,
                    comment=col["column_comment"],
                )
            )

        estimate = table_row["estimate"]
        return TableInfo(
            schema=table_schema,
            table_name=table_name,
            columns=column_infos,
            row_count=int(estimate) if estimate and estimate > 0 else None,
            table_type=table_row["table_type"],
            description=table_row["table_comment"],
        )

    async def close(self) -> None:
        """
        Close connection pool and clean up resources.

        Safe to call multiple times.
        """
        if not self._pool:
            logger.debug("No connection pool to close")
            return

        await self._pool.close()
        self._pool = None
        self._connected = False
        logger.info("PostgreSQL connection closed")
