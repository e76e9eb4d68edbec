"""Unit tests for run_sql and introspect_schema."""

import pytest

from sqlagent.config import LearningSettings, SQLSettings
from sqlagent.connectors.base import QueryError
from sqlagent.knowledge import KeywordSearchDriver, SearchManager
from sqlagent.models.errors import SQLExecutionError, SQLValidationError, ToolError
from sqlagent.services.access_control import TableAccessControl
from sqlagent.services.learning import LearningMachine
from sqlagent.services.schema_introspector import SchemaIntrospector
from sqlagent.services.sql_validator import SqlValidator
from sqlagent.tools import IntrospectSchemaTool, RunSqlTool


@pytest.fixture
def access_control(connection_registry):
    return TableAccessControl(connection_registry)


@pytest.fixture
def learning(knowledge_store):
    return LearningMachine(LearningSettings(), knowledge_store, SearchManager(KeywordSearchDriver(knowledge_store)))


@pytest.fixture
def run_sql(connection_registry, access_control, learning):
    settings = SQLSettings(max_rows=1)
    return RunSqlTool(
        settings,
        connection_registry,
        SqlValidator(settings, access_control),
        access_control,
        learning,
    )


@pytest.fixture
def introspect(connection_registry, access_control):
    return IntrospectSchemaTool(
        connection_registry, SchemaIntrospector(connection_registry, access_control), access_control
    )


class TestRunSql:
    """Test validated query execution."""

    @pytest.mark.asyncio
    async def test_runs_on_default_connection(self, run_sql, fake_connector):
        result = await run_sql.handle("  SELECT id, name FROM customers  ")

        assert fake_connector.queries == ["SELECT id, name FROM customers"]
        assert result["rows"] == [{"id": 1, "name": "Ada"}]
        assert result["total_rows"] == 2
        assert result["truncated"] is True
        assert run_sql.last_sql == "SELECT id, name FROM customers"
        assert run_sql.executed_queries[0].connection == "shop"

    @pytest.mark.asyncio
    async def test_hidden_columns_removed(self, run_sql):
        result = await run_sql.handle("SELECT * FROM customers")

        assert "password_hash" not in result["rows"][0]

    @pytest.mark.asyncio
    async def test_aliased_hidden_column_never_reaches_database(self, run_sql, fake_connector):
        with pytest.raises(SQLValidationError, match="column 'password_hash' of table 'customers' is hidden"):
            await run_sql.handle("SELECT name, password_hash AS secret FROM customers")

        assert fake_connector.queries == []

    @pytest.mark.asyncio
    async def test_uppercase_table_still_strips_hidden_columns(self, run_sql, fake_connector):
        fake_connector.responses["FROM CUSTOMERS"] = [{"id": 1, "name": "Ada", "PASSWORD_HASH": "x1"}]

        result = await run_sql.handle("SELECT * FROM CUSTOMERS")

        assert result["rows"][0] == {"id": 1, "name": "Ada"}

    @pytest.mark.asyncio
    async def test_denied_table_never_reaches_database(self, run_sql, fake_connector):
        with pytest.raises(SQLValidationError, match="payment_tokens"):
            await run_sql.handle('SELECT * FROM "payment_tokens"')

        assert fake_connector.queries == []

    @pytest.mark.asyncio
    async def test_write_statement_rejected(self, run_sql):
        with pytest.raises(SQLValidationError, match="Only SELECT and WITH"):
            await run_sql.handle("DELETE FROM orders")

    @pytest.mark.asyncio
    async def test_empty_sql(self, run_sql):
        with pytest.raises(ToolError, match="cannot be empty"):
            await run_sql.handle("   ")

    @pytest.mark.asyncio
    async def test_unknown_connection(self, run_sql):
        with pytest.raises(ValueError, match="Unknown connection: warehouse"):
            await run_sql.handle("SELECT 1", connection="warehouse")

    @pytest.mark.asyncio
    async def test_database_error_is_learned(self, run_sql, fake_connector, knowledge_store):
        fake_connector.error = QueryError('column "totl" does not exist')
        run_sql.set_question("What is the order total?")

        with pytest.raises(SQLExecutionError, match="totl"):
            await run_sql.handle("SELECT totl FROM orders")

        learnings = await knowledge_store.list_learnings()
        assert len(learnings) == 1
        assert learnings[0].metadata["original_question"] == "What is the order total?"
        assert run_sql.last_sql is None

    @pytest.mark.asyncio
    async def test_reset_clears_run_state(self, run_sql):
        await run_sql.handle("SELECT name FROM customers")

        run_sql.reset()

        assert run_sql.last_sql is None
        assert run_sql.last_results is None
        assert run_sql.executed_queries == []

    def test_definition_lists_connections(self, run_sql):
        definition = run_sql.definition()

        assert definition.parameters["properties"]["connection"]["enum"] == ["shop"]
        assert definition.parameters["required"] == ["sql"]
        assert "SELECT, WITH" in definition.description


class TestIntrospectSchema:
    """Test schema inspection."""

    @pytest.mark.asyncio
    async def test_lists_accessible_tables(self, introspect):
        result = await introspect.handle()

        assert result == {"tables": ["orders", "customers"], "count": 2}

    @pytest.mark.asyncio
    async def test_describes_table(self, introspect):
        result = await introspect.handle("orders")

        assert result["description"] == "One row per checkout"
        columns = {column["name"]: column for column in result["columns"]}
        assert columns["id"]["primary_key"] is True
        assert columns["customer_id"]["references"] == "customers.id"
        assert columns["total_cents"]["description"] == "Total in cents"
        assert result["relationships"] == [
            {
                "type": "belongsTo",
                "related_table": "customers",
                "foreign_key": "customer_id",
                "local_key": "id",
            }
        ]

    @pytest.mark.asyncio
    async def test_sample_data_hides_columns(self, introspect):
        result = await introspect.handle("customers", include_sample_data=True)

        assert [column["name"] for column in result["columns"]] == ["id", "name"]
        assert result["sample_data"] == [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Grace"}]

    @pytest.mark.asyncio
    async def test_denied_table(self, introspect):
        with pytest.raises(ToolError, match="Access denied"):
            await introspect.handle("payment_tokens")

    @pytest.mark.asyncio
    async def test_missing_table_lists_alternatives(self, introspect):
        with pytest.raises(ToolError, match="Available tables: orders, customers"):
            await introspect.handle("invoices")
