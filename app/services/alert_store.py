# app/services/alert_store.py
"""
Alert persistence — the only place that mutates the alerts table.
Used by the detector (create / dedup probe), the escalation scheduler
(stale scan / bump), the cleanup job, and the alerts router (list / acknowledge).

Ids come from the database sequence, so concurrent creators never collide.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.exceptions import AlertNotFound, DuplicateAlertError, StaleAlertError
from app.models.alert import Alert, AlertPriority, PRIORITY_RANK
from app.schemas.alert_metadata import AlertCandidate
from app.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 100


class AlertStore:
    def __init__(self, db: Session):
        self.db = db

    # ── Create / read ─────────────────────────────────────────────────────
    def create(self, candidate: AlertCandidate, now: Optional[datetime] = None) -> Alert:
        """Persist a new unread alert. Always commits immediately."""
        alert = Alert(
            type=candidate.alert_type.value,
            priority=candidate.priority.value,
            message=candidate.message,
            timestamp=now or datetime.utcnow(),
            supervisor_id=candidate.supervisor_id,
            related_worker_id=candidate.worker_id,
            related_project_id=candidate.project_id,
            alert_identifier=candidate.alert_identifier,
            metadata_=candidate.metadata(),
            is_read=False,
            is_system_generated=True,
            escalation_level=0,
            expires_at=candidate.expires_at,
        )
        self.db.add(alert)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateAlertError(f"Alert {candidate.alert_identifier} rejected by store") from e

        self.db.refresh(alert)
        logger.warning(f"[ALERT][{alert.type.upper()}] {alert.message}")
        return alert

    def get(self, alert_id: int) -> Alert:
        alert = self.db.get(Alert, alert_id)
        if not alert:
            raise AlertNotFound(alert_id)
        return alert

    def find_unread_by_identifier(
        self, identifier: str, since: datetime, include_acknowledged: bool = False
    ) -> Optional[Alert]:
        """Newest alert with this identifier created at or after since."""
        q = self.db.query(Alert).filter(Alert.alert_identifier == identifier, Alert.timestamp >= since)
        if not include_acknowledged:
            q = q.filter(Alert.is_read.is_(False))
        return q.order_by(Alert.timestamp.desc()).first()

    def list_alerts(
        self,
        supervisor_id: Optional[int] = None,
        alert_type: Optional[str] = None,
        priority: Optional[str] = None,
        is_read: Optional[bool] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[Alert]:
        """Newest alerts first, then re-ordered critical → warning → info."""
        q = self.db.query(Alert)
        if supervisor_id is not None:
            q = q.filter(Alert.supervisor_id == supervisor_id)
        if alert_type:
            q = q.filter(Alert.type == alert_type)
        if priority:
            q = q.filter(Alert.priority == priority)
        if is_read is not None:
            q = q.filter(Alert.is_read.is_(is_read))
        alerts = q.order_by(Alert.timestamp.desc(), Alert.id.desc()).limit(limit).all()
        # sorted() is stable, so recency order survives within a priority
        return sorted(alerts, key=lambda a: PRIORITY_RANK.get(a.priority, 0), reverse=True)

    # ── Acknowledgment ────────────────────────────────────────────────────
    def acknowledge(self, alert_id: int, by_id: int, now: Optional[datetime] = None) -> Alert:
        alert = self.get(alert_id)
        if alert.is_read:
            logger.debug(f"Alert {alert_id} already acknowledged by {alert.acknowledged_by}")
            return alert

        alert.is_read = True
        alert.acknowledged_at = now or datetime.utcnow()
        alert.acknowledged_by = by_id
        self.db.commit()
        logger.info(f"Alert {alert_id} acknowledged by {by_id} at level {alert.escalation_level}")
        return alert

    # ── Escalation support ────────────────────────────────────────────────
    def find_stale_critical(self, escalation_level: int, older_than: datetime) -> list[Alert]:
        """
        Unread critical alerts sitting at escalation_level since before older_than.
        Level 0 is aged by creation time; higher levels by their last escalation.
        """
        q = self.db.query(Alert).filter(
            Alert.priority == AlertPriority.CRITICAL.value,
            Alert.is_read.is_(False),
            Alert.escalation_level == escalation_level,
            Alert.timestamp <= older_than,
        )
        if escalation_level > 0:
            q = q.filter(Alert.last_escalated_at <= older_than)
        return q.order_by(Alert.timestamp).all()

    def bump_escalation(
        self,
        alert_id: int,
        now: Optional[datetime] = None,
        expected_level: Optional[int] = None,
        commit: bool = True,
    ) -> Alert:
        """
        escalation_level += 1, last_escalated_at = now.
        With expected_level the bump only applies to an unread alert still at that
        level; otherwise StaleAlertError is raised and nothing changes.
        """
        q = self.db.query(Alert).filter(Alert.id == alert_id)
        if expected_level is not None:
            q = q.filter(Alert.escalation_level == expected_level, Alert.is_read.is_(False))

        updated = q.update(
            {
                Alert.escalation_level: Alert.escalation_level + 1,
                Alert.last_escalated_at: now or datetime.utcnow(),
            },
            synchronize_session="fetch",
        )
        if not updated:
            if self.db.get(Alert, alert_id) is None:
                raise AlertNotFound(alert_id)
            raise StaleAlertError(f"Alert {alert_id} is no longer unread at level {expected_level}")

        if commit:
            self.db.commit()
        return self.db.get(Alert, alert_id)

    # ── Cleanup ───────────────────────────────────────────────────────────
    def delete_older_than(self, cutoff: datetime, only_read: bool = True) -> int:
        q = self.db.query(Alert)
        if only_read:
            q = q.filter(Alert.is_read.is_(True), Alert.acknowledged_at < cutoff)
        else:
            q = q.filter(Alert.timestamp < cutoff)
        deleted = q.delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def delete_expired(self, now: Optional[datetime] = None) -> int:
        deleted = (
            self.db.query(Alert)
            .filter(Alert.expires_at.isnot(None), Alert.expires_at <= (now or datetime.utcnow()))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def delete_duplicate_unread(self) -> int:
        """
        Among unread alerts sharing (type, supervisor, worker, project, identifier)
        keep the most recent one and delete the rest.
        """
        unread = (
            self.db.query(Alert)
            .filter(Alert.is_read.is_(False))
            .order_by(Alert.timestamp.desc(), Alert.id.desc())
            .all()
        )
        seen = set()
        duplicate_ids = []
        for alert in unread:
            key = (alert.type, alert.supervisor_id, alert.related_worker_id,
                   alert.related_project_id, alert.alert_identifier)
            if key in seen:
                duplicate_ids.append(alert.id)
            else:
                seen.add(key)

        if not duplicate_ids:
            return 0

        deleted = (
            self.db.query(Alert)
            .filter(Alert.id.in_(duplicate_ids), Alert.is_read.is_(False))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
