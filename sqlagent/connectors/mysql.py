"""
MySQL Connector

Async-compatible MySQL connector using mysql-connector-python.

The underlying driver is synchronous, so query and schema operations are
executed in worker threads via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import mysql.connector
from mysql.connector import Error as MySQLError

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


class MySQLConnector(BaseConnector):
    """MySQL database connector using mysql-connector-python."""

    identifier_quote = "`"

    def __init__(
        self,
        host: str,
        port: int = 3306,
        database: str = "",
        user: str = "root",
        password: str = "",
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ) -> None:
        super().__init__(
            host=host,
            port=port,
            database=database,
            user=user,
            password=password,
            pool_size=pool_size,
            timeout=timeout,
            **kwargs,
        )

    async def connect(self) -> None:
        """Validate connection credentials."""
        if self._connected:
            return
        try:
            await asyncio.to_thread(self._test_connection_sync)
            self._connected = True
        except MySQLError as exc:
            logger.error(f"MySQL connection failed: {exc}")
            raise ConnectionError(f"Failed to connect to MySQL: {exc}") from exc

    async def execute(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """Execute SQL query and return rows."""
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout
        try:
            rows, columns = await asyncio.to_thread(
                self._execute_sync,
                query,
                params,
                query_timeout,
            )
        except MySQLError as exc:
            logger.error(f"MySQL query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(str(exc)) from exc

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        return QueryResult(
            rows=rows,
            row_count=len(rows),
            columns=columns,
            execution_time_ms=execution_time_ms,
        )

    async def get_table_names(self, schema_name: str | None = None) -> list[str]:
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")
        try:
            return await asyncio.to_thread(self._table_names_sync, schema_name or self.database)
        except MySQLError as exc:
            logger.error(f"MySQL table listing failed: {exc}")
            raise SchemaError(f"Failed to list tables: {exc}") from exc

    async def get_table(self, table_name: str, schema_name: str | None = None) -> TableInfo | None:
        """Introspect one table via information_schema."""
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")
        try:
            return await asyncio.to_thread(
                self._get_table_sync, schema_name or self.database, table_name
            )
        except MySQLError as exc:
            logger.error(f"MySQL schema introspection failed: {exc}")
            raise SchemaError(f"Failed to introspect table {table_name}: {exc}") from exc

    async def close(self) -> None:
        """Close connector state."""
        self._connected = False

    def _connection_kwargs(self, query_timeout: int | None = None) -> dict[str, Any]:
        kwargs = {
            "host": self.host,
            "port": self.port,
            "database": self.database or None,
            "user": self.user,
            "password": self.password,
            "autocommit": True,
            "connection_timeout": query_timeout or self.timeout,
        }
        kwargs.update(self.kwargs)
        return kwargs

    def _test_connection_sync(self) -> None:
        conn = mysql.connector.connect(**self._connection_kwargs())
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT VERSION()")
            cursor.fetchone()
        finally:
            cursor.close()
            conn.close()

    def _execute_sync(
        self,
        query: str,
        params: list[Any] | None,
        query_timeout: int,
    ) -> tuple[list[dict[str, Any]], list[str]]:
        conn = mysql.connector.connect(**self._connection_kwargs(query_timeout))
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute("SET SESSION TRANSACTION READ ONLY")
            cursor.execute(f"SET SESSION MAX_EXECUTION_TIME = {int(query_timeout) * 1000}")
            if params is None:
                cursor.execute(query)
            else:
                cursor.execute(query, tuple(params))
            if cursor.with_rows:
                rows = cursor.fetchall()
                columns = list(rows[0].keys()) if rows else [col[0] for col in cursor.description]
                return rows, columns
            return [], []
        finally:
            cursor.close()
            conn.close()

    def _table_names_sync(self, schema_name: str) -> list[str]:
        conn = mysql.connector.connect(**self._connection_kwargs())
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(
                """
                SELECT table_name AS table_name
                FROM information_schema.tables
                WHERE table_schema = %s
                ORDER BY table_name
                """,
                (schema_name,),
            )
            return [str(row["table_name"]) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def _get_table_sync(self, schema_name: str, table_name: str) -> TableInfo | None:
        conn = mysql.connector.connect(**self._connection_kwargs())
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(
                """
                SELECT table_type, table_rows, table_comment
                FROM information_schema.tables
                WHERE table_schema = %s AND table_name = %s
                """,
                (schema_name, table_name),
            )
            table_row = cursor.fetchone()
            if table_row is None:
                return None

            cursor.execute(
                """
                SELECT
                    c.column_name AS column_name,
                    c.column_type AS column_type,
                    c.is_nullable AS is_nullable,
                    c.column_default AS column_default,
                    c.column_key AS column_key,
                    c.column_comment AS column_comment
                FROM information_schema.columns c
                WHERE c.table_schema = %s AND c.table_name = %s
                ORDER BY c.ordinal_position
                """,
                (schema_name, table_name),
            )
            columns_rows = cursor.fetchall()

            cursor.execute(
                """
                SELECT
                    kcu.column_name AS column_name,
                    kcu.referenced_table_name AS foreign_table_name,
                    kcu.referenced_column_name AS foreign_column_name
                FROM information_schema.key_column_usage kcu
                WHERE kcu.table_schema = %s
                AND kcu.table_name = %s
                AND kcu.referenced_table_name IS NOT NULL
                """,
                (schema_name, table_name),
            )
            fk_map = {
                str(row["column_name"]): (
                    str(row["foreign_table_name"]),
                    str(row["foreign_column_name"]),
                )
                for row in cursor.fetchall()
            }
        finally:
            cursor.close()
            conn.close()

        columns: list[ColumnInfo] = []
        for col_row in columns_rows:
            col_name = str(col_row["column_name"])
            fk_target = fk_map.get(col_name)
            columns.append(
                ColumnInfo(
                    name=col_name,
                    data_type=str(col_row["column_type"]),
                    is_nullable=str(col_row["is_nullable"]).upper() == "YES",
                    default_value=(
                        str(col_row["column_default"])
                        if col_row["column_default"] is not None
                        else None
                    ),
                    is_primary_key=str(col_row["column_key"]).upper() == "PRI",
                    is_foreign_key=fk_target is not None,
                    foreign_table=fk_target[0] if fk_target else None,
                    foreign_column=fk_target[1] if fk_target else None,
                    comment=col_row["column_comment"] or None,
                )
            )

        return TableInfo(
            schema=schema_name,
            table_name=table_name,
            columns=columns,
            row_count=int(table_row["table_rows"]) if table_row.get("table_rows") is not None else None,
            table_type=str(table_row["table_type"]),
            description=table_row.get("table_comment") or None,
        )
