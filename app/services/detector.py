# app/services/detector.py
"""
Alert detector — one pass per project per detection tick.

Rules (independent of each other):
  1. Geofence violation  — check-in/out outside the project boundary in the last N minutes  (critical)
  2. Worker absence      — assigned today, no check-in, after ABSENCE_CHECK_HOUR          (warning)
  3. Missing checkout    — still checked in after MISSING_CHECKOUT_HOUR                   (warning)
  4. Overtime            — open session longer than STANDARD_WORKDAY_HOURS                (info)

Every candidate goes through a dedup probe on its alert identifier before it is
created. A failing project is logged and skipped; the tick carries on.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.orm import Session
from app.exceptions import DuplicateAlertError, ProjectNotFound
from app.models.alert import AlertPriority
from app.models.project import Project
from app.schemas.alert_metadata import (
    AlertCandidate, GeofenceMetadata, AbsenceMetadata, MissingCheckoutMetadata, OvertimeMetadata,
)
from app.services.alert_store import AlertStore
from app.services.engine_config import EngineConfig
from app.services.fact_source import FactSource
from app.utils.clock import to_local, start_of_local_day, hours_between
from app.utils.logger import get_logger

logger = get_logger(__name__)


def round_half_up(hours: float) -> float:
    """Rounds to 0.1h with exact halves going up (0.25 -> 0.3)."""
    return float(Decimal(str(hours)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass
class ProjectScan:
    """Everything the rules need to know about one project at one instant."""
    project_id: int
    supervisor_id: int
    now: datetime             # naive UTC
    local_hour: int
    day: date                 # local calendar day
    day_start: datetime       # local midnight as naive UTC


@dataclass
class DetectionReport:
    projects_scanned: int = 0
    projects_skipped: int = 0
    projects_failed: int = 0
    candidates: int = 0
    created: int = 0
    duplicates: int = 0
    created_alert_ids: list[int] = field(default_factory=list)


class Detector:
    def __init__(self, facts: FactSource, alerts: AlertStore, config: EngineConfig, db: Session = None):
        self.facts = facts
        self.alerts = alerts
        self.config = config
        self.db = db or alerts.db
        self.tz = config.tz

    async def run(self, now: datetime = None) -> DetectionReport:
        """One detection tick across every active project with a supervisor."""
        now = now or datetime.utcnow()
        report = DetectionReport()

        for project in self.facts.active_projects():
            try:
                await self.detect_project(project, now, report)
            except ProjectNotFound as e:
                report.projects_failed += 1
                self.db.rollback()
                logger.warning(f"[DETECT] {e} — skipped this tick")
            except Exception as e:
                report.projects_failed += 1
                self.db.rollback()
                logger.error(f"[DETECT] Project {project.id} failed: {e}", exc_info=True)

        logger.info(
            f"[DETECT] Tick done: {report.projects_scanned} projects, "
            f"{report.created} new alerts, {report.duplicates} duplicates skipped, "
            f"{report.projects_failed} failed"
        )
        return report

    async def detect_project(self, project: Project, now: datetime, report: DetectionReport = None) -> int:
        report = report if report is not None else DetectionReport()
        if not self.facts.employee_exists(project.supervisor_id):
            report.projects_skipped += 1
            logger.warning(
                f"[DETECT] Project {project.id} references missing supervisor {project.supervisor_id} — skipped"
            )
            return 0

        local_now = to_local(now, self.tz)
        scan = ProjectScan(
            project_id=project.id,
            supervisor_id=project.supervisor_id,
            now=now,
            local_hour=local_now.hour,
            day=local_now.date(),
            day_start=start_of_local_day(now, self.tz),
        )
        report.projects_scanned += 1

        candidates = self.geofence_candidates(scan)
        if scan.local_hour >= self.config.absence_check_hour:
            candidates += self.absence_candidates(scan)
        if scan.local_hour >= self.config.missing_checkout_hour:
            candidates += self.missing_checkout_candidates(scan)
        candidates += self.overtime_candidates(scan)

        created = 0
        for candidate in candidates:
            report.candidates += 1
            alert_id = self._create_if_new(candidate, scan)
            if alert_id is None:
                report.duplicates += 1
            else:
                report.created += 1
                report.created_alert_ids.append(alert_id)
                created += 1
        return created

    # ── Rules ─────────────────────────────────────────────────────────────
    def geofence_candidates(self, scan: ProjectScan) -> list[AlertCandidate]:
        since = scan.now - timedelta(minutes=self.config.geofence_lookback_minutes)
        candidates = []
        for breach in self.facts.recent_geofence_breaches(scan.project_id, since):
            name = self.facts.worker_name(breach.worker_id)
            candidates.append(AlertCandidate(
                priority=AlertPriority.CRITICAL,
                message=f"Geofence violation: {name} {breach.breach_kind} outside project boundary",
                supervisor_id=scan.supervisor_id,
                worker_id=breach.worker_id,
                project_id=scan.project_id,
                day=scan.day,
                details=GeofenceMetadata(
                    breach_kind=breach.breach_kind,
                    latitude=breach.latitude,
                    longitude=breach.longitude,
                    attendance_id=breach.attendance_id,
                ),
            ))
        return candidates

    def absence_candidates(self, scan: ProjectScan) -> list[AlertCandidate]:
        assigned = self.facts.assigned_worker_ids(scan.project_id, scan.day)
        if not assigned:
            return []
        checked_in = self.facts.checked_in_worker_ids(scan.project_id, scan.day)

        return [
            AlertCandidate(
                priority=AlertPriority.WARNING,
                message=f"{self.facts.worker_name(worker_id)} has not checked in for scheduled work",
                supervisor_id=scan.supervisor_id,
                worker_id=worker_id,
                project_id=scan.project_id,
                day=scan.day,
                details=AbsenceMetadata(
                    expected_check_in_hour=self.config.absence_check_hour,
                    assignment_date=scan.day,
                ),
            )
            for worker_id in sorted(assigned - checked_in)
        ]

    def missing_checkout_candidates(self, scan: ProjectScan) -> list[AlertCandidate]:
        return [
            AlertCandidate(
                priority=AlertPriority.WARNING,
                message=f"{self.facts.worker_name(session.worker_id)} has not checked out after work hours",
                supervisor_id=scan.supervisor_id,
                worker_id=session.worker_id,
                project_id=scan.project_id,
                day=scan.day,
                details=MissingCheckoutMetadata(
                    check_in_time=session.check_in_at,
                    expected_check_out_hour=self.config.missing_checkout_hour,
                    attendance_id=session.attendance_id,
                ),
            )
            for session in self.facts.open_attendance_sessions(scan.project_id, scan.day)
        ]

    def overtime_candidates(self, scan: ProjectScan) -> list[AlertCandidate]:
        standard = self.config.standard_workday_hours
        candidates = []
        for session in self.facts.open_attendance_sessions(scan.project_id, scan.day):
            worked = hours_between(session.check_in_at, scan.now)
            if worked <= standard:
                continue
            overtime = round_half_up(worked - standard)
            candidates.append(AlertCandidate(
                priority=AlertPriority.INFO,
                message=(
                    f"{self.facts.worker_name(session.worker_id)} is working overtime "
                    f"({overtime} hours over standard)"
                ),
                supervisor_id=scan.supervisor_id,
                worker_id=session.worker_id,
                project_id=scan.project_id,
                day=scan.day,
                details=OvertimeMetadata(
                    overtime_hours=overtime,
                    check_in_time=session.check_in_at,
                    standard_work_hours=standard,
                    attendance_id=session.attendance_id,
                ),
            ))
        return candidates

    # ── Dedup ─────────────────────────────────────────────────────────────
    def dedup_window_start(self, candidate: AlertCandidate, scan: ProjectScan) -> datetime:
        if isinstance(candidate.details, GeofenceMetadata):
            return scan.now - timedelta(minutes=self.config.geofence_dedup_window_minutes)
        return scan.day_start

    def _create_if_new(self, candidate: AlertCandidate, scan: ProjectScan):
        """Returns the new alert id, or None if an unread twin already exists."""
        identifier = candidate.alert_identifier
        # Acknowledged twins count too: an acknowledged absence must not re-fire the same day
        existing = self.alerts.find_unread_by_identifier(
            identifier, self.dedup_window_start(candidate, scan), include_acknowledged=True,
        )
        if existing:
            logger.debug(f"[DETECT] {identifier} already raised as alert {existing.id} — skipped")
            return None
        try:
            return self.alerts.create(candidate, now=scan.now).id
        except DuplicateAlertError:
            logger.debug(f"[DETECT] {identifier} rejected by store — treated as existing")
            return None
