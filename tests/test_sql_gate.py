"""Tests for the read-only SQL gate and the execute_sql tool."""

import pytest

from steward.db.repositories import TaskConfigRepository
from steward.tools.sql import ExecuteSqlInput, execute_sql, validate_select_query


class TestValidateSelectQuery:
    @pytest.mark.parametrize(
        "query",
        [
            "SELECT COUNT(*) FROM reports",
            "select * from task_configs where enabled = true",
            "  SELECT task_name FROM task_configs  ",
            "SELECT created_at, updated_at FROM task_configs",
            "SELECT deleted_flag FROM things",
        ],
    )
    def test_allowed(self, query):
        assert validate_select_query(query) is None

    @pytest.mark.parametrize(
        "query, keyword",
        [
            ("SELECT 1; DROP TABLE reports", "DROP"),
            ("SELECT * FROM t; delete from t", "DELETE"),
            ("select 1 where exists (update t set a = 1)", "UPDATE"),
            ("SELECT 1; INSERT INTO t VALUES (1)", "INSERT"),
            ("SELECT 1; TRUNCATE reports", "TRUNCATE"),
            ("SELECT 1; GRANT ALL ON t TO x", "GRANT"),
        ],
    )
    def test_forbidden_keywords(self, query, keyword):
        error = validate_select_query(query)
        assert error is not None
        assert keyword in error

    @pytest.mark.parametrize(
        "query",
        ["DELETE FROM reports", "WITH x AS (SELECT 1) SELECT * FROM x", "selectx from t", ""],
    )
    def test_must_start_with_select(self, query):
        assert validate_select_query(query).startswith("Only SELECT queries are allowed")


class TestExecuteSql:
    async def test_returns_rows(self, session_factory, tool_context):
        async with session_factory() as session:
            await TaskConfigRepository(session).create("alpha", "0 * * * *", "p", "m")
            await session.commit()

        result = await execute_sql(
            ExecuteSqlInput(query="SELECT task_name, max_retries FROM task_configs"), tool_context
        )

        assert result["success"] is True
        assert result["row_count"] == 1
        assert result["data"] == [{"task_name": "alpha", "max_retries": 3}]

    async def test_rejected_query_never_executes(self, tool_context):
        result = await execute_sql(ExecuteSqlInput(query="DROP TABLE reports"), tool_context)

        assert result["success"] is False
        assert "Only SELECT" in result["error"]
        assert result["query"] == "DROP TABLE reports"

    async def test_database_error_is_returned(self, tool_context):
        result = await execute_sql(ExecuteSqlInput(query="SELECT * FROM no_such_table"), tool_context)

        assert result["success"] is False
        assert "no_such_table" in result["error"]
