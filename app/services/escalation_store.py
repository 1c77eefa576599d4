# app/services/escalation_store.py
"""
Escalation event persistence.
Rows are created by the escalation scheduler; afterwards only acknowledgment,
resolution and the append-only notification log change.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from app.exceptions import EscalationNotFound
from app.models.alert import Alert
from app.models.alert_escalation import (
    AlertEscalation, EscalationReason, Resolution, NotificationMethod, NotificationStatus,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)

PRUNABLE_RESOLUTIONS = (Resolution.RESOLVED.value, Resolution.DISMISSED.value)


class EscalationStore:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        alert: Alert,
        level: int,
        escalated_to: int,
        reason: EscalationReason,
        now: Optional[datetime] = None,
        timeout_minutes: int = 15,
        next_escalation_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> AlertEscalation:
        now = now or datetime.utcnow()
        escalation = AlertEscalation(
            alert_id=alert.id,
            original_supervisor_id=alert.supervisor_id,
            escalation_level=level,
            escalated_to=escalated_to,
            escalated_at=now,
            escalation_reason=EscalationReason(reason).value,
            timeout_duration_minutes=timeout_minutes,
            acknowledged=False,
            resolution=Resolution.PENDING.value,
            notifications_sent=[],
            next_escalation_level=level + 1 if next_escalation_at else None,
            next_escalation_at=next_escalation_at,
            created_at=now,
        )
        self.db.add(escalation)
        self.db.flush()
        if commit:
            self.db.commit()
        return escalation

    def get(self, escalation_id: int) -> AlertEscalation:
        escalation = self.db.get(AlertEscalation, escalation_id)
        if not escalation:
            raise EscalationNotFound(escalation_id)
        return escalation

    def list_for_alert(self, alert_id: int) -> list[AlertEscalation]:
        return (
            self.db.query(AlertEscalation)
            .filter(AlertEscalation.alert_id == alert_id)
            .order_by(AlertEscalation.escalation_level)
            .all()
        )

    def record_notification(
        self,
        escalation_id: int,
        recipient: int,
        method: NotificationMethod = NotificationMethod.SYSTEM,
        status: NotificationStatus = NotificationStatus.SENT,
        now: Optional[datetime] = None,
    ) -> AlertEscalation:
        escalation = self.get(escalation_id)
        entry = {
            "recipient": recipient,
            "method": NotificationMethod(method).value,
            "sentAt": (now or datetime.utcnow()).isoformat(),
            "status": NotificationStatus(status).value,
        }
        # New list so the JSON column registers the change
        escalation.notifications_sent = [*(escalation.notifications_sent or []), entry]
        self.db.commit()
        return escalation

    def acknowledge(self, escalation_id: int, by_id: int, now: Optional[datetime] = None) -> AlertEscalation:
        escalation = self.get(escalation_id)
        if not escalation.acknowledged:
            escalation.acknowledged = True
            escalation.acknowledged_at = now or datetime.utcnow()
            escalation.acknowledged_by = by_id
            self.db.commit()
        return escalation

    def resolve(
        self,
        escalation_id: int,
        resolution: Resolution,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AlertEscalation:
        resolution = Resolution(resolution)
        if resolution is Resolution.PENDING:
            raise ValueError("An escalation cannot be resolved back to pending")

        escalation = self.get(escalation_id)
        escalation.resolution = resolution.value
        escalation.resolution_notes = notes
        escalation.resolved_at = now or datetime.utcnow()
        self.db.commit()
        logger.info(f"Escalation {escalation_id} (alert {escalation.alert_id}) → {resolution.value}")
        return escalation

    def delete_resolved_older_than(self, cutoff: datetime) -> int:
        """Pending and forwarded events are never pruned."""
        deleted = (
            self.db.query(AlertEscalation)
            .filter(
                AlertEscalation.escalated_at < cutoff,
                AlertEscalation.resolution.in_(PRUNABLE_RESOLUTIONS),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def stats(self, supervisor_id: Optional[int] = None) -> dict:
        q = self.db.query(AlertEscalation)
        if supervisor_id is not None:
            q = q.filter(AlertEscalation.original_supervisor_id == supervisor_id)

        counts = defaultdict(int)
        durations = defaultdict(list)
        for escalation in q.all():
            counts[escalation.escalation_reason] += 1
            if escalation.resolved_at:
                durations[escalation.escalation_reason].append(
                    (escalation.resolved_at - escalation.escalated_at) / timedelta(minutes=1)
                )

        by_reason = [
            {
                "reason": reason,
                "count": count,
                "avg_resolution_minutes": (
                    round(sum(durations[reason]) / len(durations[reason]), 1) if durations[reason] else None
                ),
            }
            for reason, count in sorted(counts.items())
        ]
        return {"total_escalations": sum(counts.values()), "by_reason": by_reason}
