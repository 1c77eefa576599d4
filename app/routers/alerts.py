"""Supervisor alert feed — list + acknowledge endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.exceptions import AlertNotFound
from app.schemas.alert import AlertOut, AcknowledgeRequest
from app.schemas.escalation import EscalationOut
from app.services.alert_store import AlertStore
from app.services.escalation_store import EscalationStore
from typing import Optional

router = APIRouter()


@router.get("/alerts", response_model=list[AlertOut], summary="Alerts — filterable, critical first")
def get_alerts(
    supervisor_id: Optional[int] = None,
    alert_type: Optional[str] = None,
    priority: Optional[str] = None,
    is_read: Optional[bool] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """Newest 'limit' alerts matching the filters, ordered critical → warning → info."""
    return AlertStore(db).list_alerts(supervisor_id, alert_type, priority, is_read, limit)


@router.put("/alerts/{alert_id}/acknowledge", response_model=AlertOut, summary="Acknowledge an alert")
def acknowledge_alert(alert_id: int, body: AcknowledgeRequest, db: Session = Depends(get_db)):
    """Marks the alert read. Stops any further escalation of it."""
    try:
        return AlertStore(db).acknowledge(alert_id, body.acknowledged_by)
    except AlertNotFound:
        raise HTTPException(status_code=404, detail="Alert not found")


@router.get("/alerts/{alert_id}/escalations", response_model=list[EscalationOut], summary="Escalation history")
def get_alert_escalations(alert_id: int, db: Session = Depends(get_db)):
    return EscalationStore(db).list_for_alert(alert_id)
