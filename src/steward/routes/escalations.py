"""Escalation listing endpoint."""

from fastapi import APIRouter, HTTPException

from steward.db.repositories import EscalationRepository
from steward.dependencies import DbSessionDep
from steward.models.api import EscalationItem, EscalationList
from steward.tools.escalations import normalize_severity

router = APIRouter(prefix="/escalations", tags=["escalations"])


@router.get("")
async def list_escalations(
    session: DbSessionDep,
    resolved: bool = False,
    severity: str | None = None,
) -> EscalationList:
    try:
        level = normalize_severity(severity) if severity else None
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown severity: {severity}")

    rows = await EscalationRepository(session).list_filtered(resolved=resolved, severity=level)
    escalations = [
        EscalationItem(
            id=e.id,
            title=e.title,
            description=e.description,
            severity=e.severity.value,
            category=e.category,
            source_task=e.source_task,
            acknowledged=e.acknowledged,
            resolved=e.resolved,
            created_at=e.created_at.isoformat(),
        )
        for e in rows
    ]
    return EscalationList(
        escalations=escalations,
        count=len(escalations),
        filters={"resolved": resolved, "severity": severity},
    )
