# app/services/cleanup_service.py
"""
Periodic compaction of the alert tables.

Steps (independent, a failing step never blocks the others):
  1. escalation events older than ESCALATION_RETENTION_DAYS that are resolved/dismissed
  2. read alerts acknowledged more than ACKNOWLEDGED_ALERT_RETENTION_DAYS ago
  3. alerts past their expires_at
  4. duplicate unread alerts (keeps the newest per identifier)

Unread alerts are only ever removed by step 3 (explicit TTL) or step 4 (an
identical newer twin exists). Pending escalations are never removed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from app.services.alert_store import AlertStore
from app.services.engine_config import EngineConfig
from app.services.escalation_store import EscalationStore
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CleanupReport:
    escalations_deleted: Optional[int] = None
    acknowledged_alerts_deleted: Optional[int] = None
    expired_alerts_deleted: Optional[int] = None
    duplicates_deleted: Optional[int] = None
    failed_steps: list[str] = field(default_factory=list)


class CleanupJob:
    def __init__(self, alerts: AlertStore, escalations: EscalationStore, config: EngineConfig):
        self.alerts = alerts
        self.escalations = escalations
        self.config = config

    async def run(self, now: datetime = None) -> CleanupReport:
        now = now or datetime.utcnow()
        report = CleanupReport()
        escalation_cutoff = now - timedelta(days=self.config.escalation_retention_days)
        alert_cutoff = now - timedelta(days=self.config.acknowledged_alert_retention_days)

        steps = [
            ("escalations_deleted", lambda: self.escalations.delete_resolved_older_than(escalation_cutoff)),
            ("acknowledged_alerts_deleted", lambda: self.alerts.delete_older_than(alert_cutoff, only_read=True)),
            ("expired_alerts_deleted", lambda: self.alerts.delete_expired(now)),
            ("duplicates_deleted", self.alerts.delete_duplicate_unread),
        ]
        for name, step in steps:
            try:
                setattr(report, name, step())
            except Exception as e:
                self.alerts.db.rollback()
                report.failed_steps.append(name)
                logger.error(f"[CLEANUP] Step {name} failed: {e}", exc_info=True)

        logger.info(
            f"🧹 Cleanup: {report.escalations_deleted} escalations, "
            f"{report.acknowledged_alerts_deleted} acknowledged alerts, "
            f"{report.expired_alerts_deleted} expired, {report.duplicates_deleted} duplicates removed"
        )
        return report
