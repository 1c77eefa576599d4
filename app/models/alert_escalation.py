# app/models/alert_escalation.py
"""
Alert escalation events — one row per tier an unacknowledged critical alert
was pushed to. Created only by the escalation scheduler; afterwards only the
acknowledgment / resolution fields and the notification log change.
"""

from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON
from app.database import Base


class EscalationReason(str, Enum):
    TIMEOUT = "timeout"
    SECOND_LEVEL_TIMEOUT = "second_level_timeout"
    MANUAL = "manual"
    CRITICAL_PRIORITY = "critical_priority"
    SYSTEM_RULE = "system_rule"


class Resolution(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FORWARDED = "forwarded"
    DISMISSED = "dismissed"


class NotificationMethod(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    SYSTEM = "system"


class NotificationStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    PENDING = "pending"


class AlertEscalation(Base):
    __tablename__ = "alert_escalations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_id = Column(Integer, nullable=False, index=True)   # no FK: events outlive pruned alerts
    original_supervisor_id = Column(Integer, nullable=False, index=True)
    escalation_level = Column(Integer, nullable=False, default=1)
    escalated_to = Column(Integer, nullable=False, index=True)
    escalated_at = Column(DateTime, nullable=False, index=True)
    escalation_reason = Column(String(50), nullable=False)
    timeout_duration_minutes = Column(Integer, default=15)
    acknowledged = Column(Boolean, default=False, nullable=False)
    acknowledged_at = Column(DateTime)
    acknowledged_by = Column(Integer)
    resolution = Column(String(20), default=Resolution.PENDING.value, nullable=False, index=True)
    resolution_notes = Column(Text)
    resolved_at = Column(DateTime)
    notifications_sent = Column(JSON, default=list, nullable=False)   # [{recipient, method, sentAt, status}]
    next_escalation_level = Column(Integer)
    next_escalation_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<AlertEscalation {self.id} alert={self.alert_id} level={self.escalation_level} to={self.escalated_to}>"
