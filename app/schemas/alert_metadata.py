# app/schemas/alert_metadata.py
"""
Typed alert payloads — one variant per detected condition.

Each variant knows its alert type and dedup prefix; the alert identifier is a
pure function of (variant, worker, project, day). The persisted metadata JSON
is the variant payload plus the derived alertIdentifier.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from app.models.alert import AlertType, AlertPriority


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class GeofenceMetadata:
    breach_kind: str                  # check-in | check-out
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    attendance_id: Optional[int] = None

    alert_type = AlertType.GEOFENCE_VIOLATION
    identifier_prefix = "geofence"
    sub_kind = None

    def payload(self) -> dict:
        return {
            "violationType": self.breach_kind,
            "attendanceId": self.attendance_id,
            "location": {"latitude": self.latitude, "longitude": self.longitude},
        }


@dataclass(frozen=True)
class AbsenceMetadata:
    expected_check_in_hour: int
    assignment_date: date

    alert_type = AlertType.WORKER_ABSENCE
    identifier_prefix = "absence"
    sub_kind = None

    def payload(self) -> dict:
        return {
            "expectedCheckInTime": f"{self.expected_check_in_hour:02d}:00",
            "assignmentDate": self.assignment_date.isoformat(),
        }


@dataclass(frozen=True)
class MissingCheckoutMetadata:
    check_in_time: datetime
    expected_check_out_hour: int
    attendance_id: Optional[int] = None

    alert_type = AlertType.ATTENDANCE_ANOMALY
    identifier_prefix = "missing_checkout"
    sub_kind = "missing_checkout"

    def payload(self) -> dict:
        return {
            "checkInTime": _iso(self.check_in_time),
            "expectedCheckOutTime": f"{self.expected_check_out_hour:02d}:00",
            "attendanceId": self.attendance_id,
        }


@dataclass(frozen=True)
class OvertimeMetadata:
    overtime_hours: float             # rounded to 0.1h
    check_in_time: datetime
    standard_work_hours: float
    attendance_id: Optional[int] = None

    alert_type = AlertType.ATTENDANCE_ANOMALY
    identifier_prefix = "overtime"
    sub_kind = "overtime"

    def payload(self) -> dict:
        return {
            "overtimeHours": self.overtime_hours,
            "checkInTime": _iso(self.check_in_time),
            "standardWorkHours": self.standard_work_hours,
            "attendanceId": self.attendance_id,
        }


AlertMetadata = Union[GeofenceMetadata, AbsenceMetadata, MissingCheckoutMetadata, OvertimeMetadata]


def alert_identifier(details: AlertMetadata, worker_id: int, project_id: int, day: date) -> str:
    return f"{details.identifier_prefix}_{worker_id}_{project_id}_{day.isoformat()}"


@dataclass
class AlertCandidate:
    """An alert the detector wants to raise, before the dedup probe."""
    priority: AlertPriority
    message: str
    supervisor_id: int
    worker_id: int
    project_id: int
    day: date
    details: AlertMetadata
    expires_at: Optional[datetime] = None

    @property
    def alert_type(self) -> AlertType:
        return self.details.alert_type

    @property
    def alert_identifier(self) -> str:
        return alert_identifier(self.details, self.worker_id, self.project_id, self.day)

    def metadata(self) -> dict:
        data = self.details.payload()
        if self.details.sub_kind:
            data["type"] = self.details.sub_kind
        data["alertIdentifier"] = self.alert_identifier
        return data
