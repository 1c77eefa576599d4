# app/models/alert.py
"""
Alerts table — operational alerts raised by the detector.
Written by alert_store (create / acknowledge / bump escalation / cleanup).
"""

from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON
from app.database import Base


class AlertType(str, Enum):
    GEOFENCE_VIOLATION = "geofence_violation"
    WORKER_ABSENCE = "worker_absence"
    ATTENDANCE_ANOMALY = "attendance_anomaly"
    SAFETY_ALERT = "safety_alert"


class AlertPriority(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


# Higher sorts first in supervisor listings
PRIORITY_RANK = {AlertPriority.CRITICAL.value: 3, AlertPriority.WARNING.value: 2, AlertPriority.INFO.value: 1}


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(50), nullable=False, index=True)
    priority = Column(String(20), nullable=False, index=True)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    supervisor_id = Column(Integer, nullable=False, index=True)
    related_worker_id = Column(Integer)
    related_project_id = Column(Integer)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    acknowledged_at = Column(DateTime)
    acknowledged_by = Column(Integer)
    alert_identifier = Column(String(200), nullable=False, index=True)  # dedup key, also in metadata
    metadata_ = Column("metadata", JSON, default=dict, nullable=False)
    is_system_generated = Column(Boolean, default=True, nullable=False)
    escalation_level = Column(Integer, default=0, nullable=False, index=True)
    last_escalated_at = Column(DateTime)
    expires_at = Column(DateTime, index=True)

    def __repr__(self):
        return f"<Alert {self.id} type={self.type} priority={self.priority} read={self.is_read}>"
