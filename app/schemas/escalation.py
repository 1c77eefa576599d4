from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Literal


class EscalationOut(BaseModel):
    id: int
    alert_id: int
    original_supervisor_id: int
    escalation_level: int
    escalated_to: int
    escalated_at: datetime
    escalation_reason: str
    timeout_duration_minutes: Optional[int]
    acknowledged: bool
    acknowledged_at: Optional[datetime]
    acknowledged_by: Optional[int]
    resolution: str
    resolution_notes: Optional[str]
    resolved_at: Optional[datetime]
    notifications_sent: list[dict]
    next_escalation_level: Optional[int]
    next_escalation_at: Optional[datetime]

    class Config:
        from_attributes = True


class EscalationAcknowledgeRequest(BaseModel):
    acknowledged_by: int


class EscalationResolveRequest(BaseModel):
    resolution: Literal["resolved", "forwarded", "dismissed"]
    notes: Optional[str] = None


class ReasonStatsOut(BaseModel):
    reason: str
    count: int
    avg_resolution_minutes: Optional[float]


class EscalationStatsOut(BaseModel):
    total_escalations: int
    by_reason: list[ReasonStatsOut]
