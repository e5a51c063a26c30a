"""Report search and ad-hoc report tools."""

import json
import logging

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from steward.db.repositories import ReportRepository
from steward.tools.registry import Tool, ToolContext
from steward.tools.serialize import row_to_dict

logger = logging.getLogger(__name__)


class SearchReportsInput(BaseModel):
    query: str | None = Field(default=None, description="Search keyword or phrase")
    report_type: str | None = Field(
        default=None,
        description='Filter by report type (e.g. "daily_briefing", "weekly_audit", "ad_hoc")',
    )
    limit: int = Field(default=10, ge=1, le=100, description="Maximum reports to return (default: 10)")


class WriteReportInput(BaseModel):
    report_type: str = Field(description='Report type (e.g. "ad_hoc", "status_check", "analysis")')
    summary: str = Field(description="Brief summary (1-2 sentences)")
    content: str = Field(description="Full report content (markdown formatted)")
    metadata: str | None = Field(default=None, description="Additional metadata as a JSON string")


async def search_reports(params: SearchReportsInput, context: ToolContext) -> dict:
    try:
        async with context.session_factory() as session:
            reports = await ReportRepository(session).search(
                query=params.query, report_type=params.report_type, limit=params.limit
            )
    except SQLAlchemyError as e:
        logger.error(f"Report search failed: {e}")
        return {"success": False, "error": str(e)}

    logger.info(f"Found {len(reports)} report(s)")
    return {
        "success": True,
        "reports": [row_to_dict(report) for report in reports],
        "count": len(reports),
    }


async def write_report(params: WriteReportInput, context: ToolContext) -> dict:
    metadata = None
    if params.metadata:
        try:
            metadata = json.loads(params.metadata)
        except json.JSONDecodeError as e:
            return {"success": False, "error": f"metadata is not valid JSON: {e}"}

    try:
        async with context.session_factory() as session:
            report = await ReportRepository(session).create(
                content=params.content,
                report_type=params.report_type,
                summary=params.summary,
                metadata=metadata,
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Report write failed: {e}")
        return {"success": False, "error": str(e)}

    logger.info(f"Report written: {params.report_type} - {params.summary}")
    return {
        "success": True,
        "id": report.id,
        "report_type": params.report_type,
        "summary": params.summary,
        "created_at": report.created_at.isoformat(),
    }


TOOLS = [
    Tool(
        name="search_reports",
        description="Search past reports by keyword or report type.",
        input_model=SearchReportsInput,
        handler=search_reports,
    ),
    Tool(
        name="write_report",
        description=(
            "Write an ad-hoc report during the conversation (for status checks, analysis, "
            "etc.). This saves to the reports table."
        ),
        input_model=WriteReportInput,
        handler=write_report,
    ),
]
