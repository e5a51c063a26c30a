"""Escalation tool."""

import json
import logging

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from steward.db.models import EscalationSeverity
from steward.db.repositories import EscalationRepository
from steward.tools.registry import Tool, ToolContext

logger = logging.getLogger(__name__)

# Scheduled-task prompts use the report vocabulary; fold it into the canonical enum.
SEVERITY_ALIASES = {
    "info": EscalationSeverity.LOW,
    "warning": EscalationSeverity.MEDIUM,
}


def normalize_severity(value: str) -> EscalationSeverity:
    """Map any accepted severity word onto the canonical escalation severity."""
    key = value.strip().lower()
    if key in SEVERITY_ALIASES:
        return SEVERITY_ALIASES[key]
    return EscalationSeverity(key)


class CreateEscalationInput(BaseModel):
    title: str = Field(description="Short escalation title")
    description: str = Field(description="Detailed description of the issue")
    severity: str = Field(
        description="Escalation severity: critical, high, medium or low (info and warning are also accepted)"
    )
    category: str | None = Field(
        default=None, description='Category (e.g. "generation", "cost", "quality", "error")'
    )
    metadata: str | None = Field(default=None, description="Additional metadata as a JSON string")
    source_task: str | None = Field(default=None, description="Task that raised the escalation")


async def create_escalation(params: CreateEscalationInput, context: ToolContext) -> dict:
    try:
        severity = normalize_severity(params.severity)
    except ValueError:
        return {
            "success": False,
            "error": f"Unknown severity: {params.severity}",
            "title": params.title,
        }

    metadata = None
    if params.metadata:
        try:
            metadata = json.loads(params.metadata)
        except json.JSONDecodeError:
            metadata = {"raw": params.metadata}

    try:
        async with context.session_factory() as session:
            escalation = await EscalationRepository(session).create(
                title=params.title,
                description=params.description,
                severity=severity,
                source_task=params.source_task or context.task_name,
                category=params.category,
                metadata=metadata,
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Escalation creation failed: {e}")
        return {"success": False, "error": str(e), "title": params.title}

    logger.info(f"Escalation created: [{severity.value.upper()}] {params.title}")

    if context.notifier is not None:
        await context.notifier.notify_escalation(escalation)

    return {
        "success": True,
        "id": escalation.id,
        "title": params.title,
        "severity": severity.value,
        "created_at": escalation.created_at.isoformat(),
    }


TOOLS = [
    Tool(
        name="create_escalation",
        description=(
            "Create an escalation to flag something that needs the operator's attention. "
            "Use this for critical issues, anomalies, or decisions that require human judgment."
        ),
        input_model=CreateEscalationInput,
        handler=create_escalation,
    ),
]
