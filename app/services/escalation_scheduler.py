# app/services/escalation_scheduler.py
"""
Time-driven escalation of unacknowledged critical alerts.

    level 0 ──(T since creation)──▶ level 1 ──(T since last escalation)──▶ level 2

Each transition writes one AlertEscalation and bumps Alert.escalation_level in
the same transaction. Acknowledged alerts drop out of the scan (is_read filter),
which is the only way escalation stops. One failing alert never aborts the
batch: its level/timestamps are unchanged, so the next tick retries it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import ObjectDeletedError
from app.exceptions import AlertNotFound, StaleAlertError
from app.models.alert_escalation import EscalationReason, NotificationMethod, NotificationStatus
from app.services.alert_store import AlertStore
from app.services.engine_config import EngineConfig
from app.services.escalation_store import EscalationStore
from app.services.recipient_directory import RecipientDirectory
from app.utils.logger import get_logger

logger = get_logger(__name__)

MAX_ESCALATION_LEVEL = 2
REASON_BY_LEVEL = {
    1: EscalationReason.TIMEOUT,
    2: EscalationReason.SECOND_LEVEL_TIMEOUT,
}


@dataclass
class EscalationReport:
    scanned: int = 0
    escalated: int = 0
    skipped: int = 0
    failed: int = 0
    escalation_ids: list[int] = field(default_factory=list)


class EscalationScheduler:
    def __init__(
        self,
        alerts: AlertStore,
        escalations: EscalationStore,
        directory: RecipientDirectory,
        config: EngineConfig,
        db: Session = None,
    ):
        self.alerts = alerts
        self.escalations = escalations
        self.directory = directory
        self.config = config
        self.db = db or alerts.db

    @property
    def timeout(self) -> timedelta:
        return timedelta(minutes=self.config.escalation_timeout_minutes)

    async def run(self, now: datetime = None) -> EscalationReport:
        now = now or datetime.utcnow()
        cutoff = now - self.timeout
        report = EscalationReport()

        # Lower level first; an alert promoted here has last_escalated_at = now,
        # so the next level's scan cannot pick it up in the same tick.
        for current_level in range(MAX_ESCALATION_LEVEL):
            # Ids only: every commit expires the scanned rows, and cleanup may delete some mid-batch
            alert_ids = [a.id for a in self.alerts.find_stale_critical(current_level, cutoff)]
            for alert_id in alert_ids:
                report.scanned += 1
                await self._escalate(alert_id, current_level + 1, now, report)

        if report.scanned:
            logger.info(
                f"[ESCALATION] Tick done: {report.escalated}/{report.scanned} escalated, "
                f"{report.skipped} skipped, {report.failed} failed"
            )
        return report

    async def _escalate(self, alert_id: int, level: int, now: datetime, report: EscalationReport):
        reason = REASON_BY_LEVEL[level]
        try:
            alert = self.alerts.get(alert_id)
            target = await self.directory.resolve(alert, level)
            if target is None:
                report.skipped += 1
                logger.warning(f"[ESCALATION] No level-{level} recipient for alert {alert_id} "
                               f"(supervisor {alert.supervisor_id}) — retry next tick")
                return

            next_at = now + self.timeout if level < MAX_ESCALATION_LEVEL else None
            escalation = self.escalations.create(
                alert, level, target, reason,
                now=now,
                timeout_minutes=int(self.config.escalation_timeout_minutes),
                next_escalation_at=next_at,
                commit=False,
            )
            self.alerts.bump_escalation(alert_id, now=now, expected_level=level - 1, commit=False)
            self.db.commit()
            escalation_id = escalation.id
        except (AlertNotFound, ObjectDeletedError) as e:
            self.db.rollback()
            report.skipped += 1
            logger.info(f"[ESCALATION] Alert {alert_id} deleted before level {level} escalation: {e}")
            return
        except StaleAlertError as e:
            self.db.rollback()
            report.skipped += 1
            logger.debug(f"[ESCALATION] {e}")
            return
        except Exception as e:
            self.db.rollback()
            report.failed += 1
            logger.error(f"[ESCALATION] Alert {alert_id} level {level} failed: {e}", exc_info=True)
            return

        report.escalated += 1
        report.escalation_ids.append(escalation_id)
        logger.warning(f"[ESCALATION] Alert {alert_id} → level {level} (to {target}, reason={reason.value})")

        try:
            self.escalations.record_notification(
                escalation_id, recipient=target,
                method=NotificationMethod.SYSTEM, status=NotificationStatus.SENT, now=now,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"[ESCALATION] Could not log notification for escalation {escalation_id}: {e}",
                         exc_info=True)
