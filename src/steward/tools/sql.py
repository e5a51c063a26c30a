"""Read-only SQL tool."""

import logging
import re

from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from steward.tools.registry import Tool, ToolContext
from steward.tools.serialize import to_jsonable

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = (
    "drop",
    "delete",
    "update",
    "insert",
    "alter",
    "create",
    "truncate",
    "grant",
    "revoke",
)

_SELECT_PREFIX = re.compile(r"^select\s", re.IGNORECASE)
_FORBIDDEN = [
    (keyword, re.compile(rf"\b{keyword}\b", re.IGNORECASE)) for keyword in FORBIDDEN_KEYWORDS
]


def validate_select_query(query: str) -> str | None:
    """Return an error message if `query` is not an allowed read-only query."""
    trimmed = query.strip()
    if not _SELECT_PREFIX.match(trimmed):
        return "Only SELECT queries are allowed. Raw SQL cannot modify production data."
    for keyword, pattern in _FORBIDDEN:
        if pattern.search(trimmed):
            return (
                f"Query contains forbidden keyword: {keyword.upper()}. "
                "Only SELECT queries are allowed."
            )
    return None


class ExecuteSqlInput(BaseModel):
    query: str = Field(description="The SELECT query to execute")


async def execute_sql(params: ExecuteSqlInput, context: ToolContext) -> dict:
    query = params.query.strip()
    error = validate_select_query(query)
    if error:
        logger.warning(f"Rejected SQL query: {query[:200]}")
        return {"success": False, "error": error, "query": query}

    async with context.session_factory() as session:
        try:
            result = await session.execute(text(query))
            rows = [to_jsonable(dict(row._mapping)) for row in result]
        except SQLAlchemyError as e:
            logger.error(f"SQL execution error: {e}")
            return {"success": False, "error": str(e.orig if getattr(e, "orig", None) else e), "query": query}
        finally:
            await session.rollback()

    return {"success": True, "data": rows, "row_count": len(rows), "query": query}


TOOLS = [
    Tool(
        name="execute_sql",
        description=(
            "Execute a read-only SQL query against the operations database. Only SELECT "
            "queries are allowed. Use this to check counts, activity, stats or any other "
            "operational data."
        ),
        input_model=ExecuteSqlInput,
        handler=execute_sql,
    ),
]
