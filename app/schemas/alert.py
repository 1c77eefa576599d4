from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class AlertOut(BaseModel):
    id: int
    type: str
    priority: str
    message: str
    timestamp: datetime
    supervisor_id: int
    related_worker_id: Optional[int]
    related_project_id: Optional[int]
    is_read: bool
    acknowledged_at: Optional[datetime]
    acknowledged_by: Optional[int]
    alert_identifier: str
    metadata: dict = Field(default_factory=dict, validation_alias="metadata_")
    escalation_level: int
    last_escalated_at: Optional[datetime]
    expires_at: Optional[datetime]

    class Config:
        from_attributes = True


class AcknowledgeRequest(BaseModel):
    acknowledged_by: int
