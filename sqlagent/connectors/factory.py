"""Connector factory for supported database URLs."""

from __future__ import annotations

from urllib.parse import ParseResult, unquote, urlparse

from sqlagent.connectors.base import BaseConnector
from sqlagent.connectors.mysql import MySQLConnector
from sqlagent.connectors.postgres import PostgresConnector

_POSTGRES_SCHEMES = {"postgres", "postgresql"}
_MYSQL_SCHEMES = {"mysql"}


def infer_database_type(database_url: str) -> str:
    """Infer logical database type from connection URL scheme."""
    parsed = _parse_url(database_url)
    scheme = parsed.scheme.split("+")[0].lower()
    if scheme in _POSTGRES_SCHEMES:
        return "postgresql"
    if scheme in _MYSQL_SCHEMES:
        return "mysql"
    raise ValueError(f"Unsupported database URL scheme: {parsed.scheme}")


def create_connector(
    *,
    database_url: str,
    pool_size: int = 10,
    timeout: int = 30,
    **kwargs,
) -> BaseConnector:
    """Create a typed connector instance from a database URL."""
    parsed = _parse_url(database_url)
    if not parsed.hostname:
        raise ValueError("Invalid database URL: host is required.")

    target_type = infer_database_type(database_url)
    db_name = parsed.path.lstrip("/")
    password = unquote(parsed.password) if parsed.password else ""

    if target_type == "postgresql":
        return PostgresConnector(
            host=parsed.hostname,
            port=parsed.port or 5432,
            database=db_name or "postgres",
            user=parsed.username or "postgres",
            password=password,
            pool_size=pool_size,
            timeout=timeout,
            **kwargs,
        )

    return MySQLConnector(
        host=parsed.hostname,
        port=parsed.port or 3306,
        database=db_name or "",
        user=parsed.username or "root",
        password=password,
        pool_size=pool_size,
        timeout=timeout,
        **kwargs,
    )


def _parse_url(database_url: str) -> ParseResult:
    normalized = database_url.replace("postgresql+asyncpg://", "postgresql://")
    return urlparse(normalized)
