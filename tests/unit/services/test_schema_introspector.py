"""Unit tests for live schema introspection."""

import pytest

from sqlagent.connectors.base import SchemaError
from sqlagent.services.access_control import TableAccessControl
from sqlagent.services.schema_introspector import SchemaIntrospector, format_default_value


@pytest.fixture
def introspector(connection_registry):
    return SchemaIntrospector(connection_registry, TableAccessControl(connection_registry))


class TestTableNames:
    @pytest.mark.asyncio
    async def test_denied_tables_are_filtered(self, introspector):
        assert await introspector.get_table_names() == ["orders", "customers"]

    @pytest.mark.asyncio
    async def test_catalog_error_returns_empty(self, introspector, fake_connector, monkeypatch):
        async def broken(schema_name=None):
            raise SchemaError("catalog unavailable")

        monkeypatch.setattr(fake_connector, "get_table_names", broken)

        assert await introspector.get_table_names("shop") == []


class TestDescribe:
    @pytest.mark.asyncio
    async def test_hidden_columns_removed(self, introspector):
        table = await introspector.describe_table("customers")

        assert [column.name for column in table.columns] == ["id", "name"]

    @pytest.mark.asyncio
    async def test_denied_or_missing_table(self, introspector):
        assert await introspector.describe_table("payment_tokens") is None
        assert await introspector.describe_table("missing") is None

    @pytest.mark.asyncio
    async def test_introspect_table_schema(self, introspector):
        schema = await introspector.introspect_table("orders")

        assert schema.table_name == "orders"
        assert schema.columns["id"] == "integer, Primary key, NOT NULL"
        assert schema.columns["customer_id"] == "integer, FK → customers.id"
        assert schema.columns["status"] == "text, default: pending"
        assert schema.relationships == ["belongsTo customers via customer_id → customers.id"]


class TestRelevantSchema:
    def test_extract_potential_table_names(self):
        tables = ["orders", "customers", "order_items"]

        matches = SchemaIntrospector.extract_potential_table_names(
            "Which customer placed the most order items?", tables
        )

        assert matches == ["orders", "customers", "order_items"]

    @pytest.mark.asyncio
    async def test_relevant_schema_for_question(self, introspector):
        schema = await introspector.get_relevant_schema("How many customers are there?")

        assert "## Table: customers" in schema
        assert "password_hash" not in schema
        assert "## Table: orders" not in schema

    @pytest.mark.asyncio
    async def test_no_relevant_tables(self, introspector):
        assert await introspector.get_relevant_schema("What time is it?") is None

    @pytest.mark.asyncio
    async def test_format_all_tables(self, introspector):
        formatted = await introspector.format()

        assert "## Table: orders" in formatted
        assert "payment_tokens" not in formatted


def test_format_default_value():
    assert format_default_value(None) is None
    assert format_default_value(True) == "true"
    assert format_default_value(0) == "0"
