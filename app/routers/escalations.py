"""Escalation events — acknowledge / resolve / stats for managers."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.exceptions import EscalationNotFound
from app.schemas.escalation import (
    EscalationOut, EscalationAcknowledgeRequest, EscalationResolveRequest, EscalationStatsOut,
)
from app.services.escalation_store import EscalationStore
from typing import Optional

router = APIRouter()


@router.get("/escalations/stats", response_model=EscalationStatsOut, summary="Escalation counts per reason")
def get_escalation_stats(supervisor_id: Optional[int] = None, db: Session = Depends(get_db)):
    return EscalationStore(db).stats(supervisor_id)


@router.put("/escalations/{escalation_id}/acknowledge", response_model=EscalationOut)
def acknowledge_escalation(escalation_id: int, body: EscalationAcknowledgeRequest, db: Session = Depends(get_db)):
    try:
        return EscalationStore(db).acknowledge(escalation_id, body.acknowledged_by)
    except EscalationNotFound:
        raise HTTPException(status_code=404, detail="Escalation not found")


@router.put("/escalations/{escalation_id}/resolve", response_model=EscalationOut)
def resolve_escalation(escalation_id: int, body: EscalationResolveRequest, db: Session = Depends(get_db)):
    """Records the manager's outcome. Does not acknowledge the underlying alert."""
    try:
        return EscalationStore(db).resolve(escalation_id, body.resolution, body.notes)
    except EscalationNotFound:
        raise HTTPException(status_code=404, detail="Escalation not found")
