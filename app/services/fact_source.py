# app/services/fact_source.py
"""
Read-only attendance / assignment / project facts consumed by the detector.

FactSource is the contract; SqlFactSource reads the ERP tables directly.
Queries return empty collections when there is no data; an unknown project
raises ProjectNotFound so the detector can skip it for the tick.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.exceptions import ProjectNotFound
from app.models.attendance import Attendance
from app.models.employee import Employee
from app.models.project import Project
from app.models.task_assignment import WorkerTaskAssignment
from app.utils.geo import LatLon, is_inside
from app.utils.logger import get_logger

logger = get_logger(__name__)

CHECK_IN = "check-in"
CHECK_OUT = "check-out"
UNKNOWN_WORKER = "Unknown Worker"


@dataclass(frozen=True)
class OpenSession:
    worker_id: int
    check_in_at: datetime
    attendance_id: Optional[int] = None


@dataclass(frozen=True)
class GeofenceBreach:
    worker_id: int
    breach_kind: str          # check-in | check-out
    at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    attendance_id: Optional[int] = None


class FactSource(ABC):
    """Contract the detector reads through."""

    @abstractmethod
    def active_projects(self) -> list[Project]:
        ...

    @abstractmethod
    def employee_exists(self, employee_id: int) -> bool:
        ...

    @abstractmethod
    def worker_name(self, worker_id: int) -> str:
        ...

    @abstractmethod
    def assigned_worker_ids(self, project_id: int, day: date) -> set[int]:
        ...

    @abstractmethod
    def checked_in_worker_ids(self, project_id: int, day: date) -> set[int]:
        ...

    @abstractmethod
    def open_attendance_sessions(self, project_id: int, day: date) -> list[OpenSession]:
        ...

    @abstractmethod
    def recent_geofence_breaches(self, project_id: int, since: datetime) -> list[GeofenceBreach]:
        ...


class SqlFactSource(FactSource):
    def __init__(self, db: Session):
        self.db = db

    def _require_project(self, project_id: int) -> Project:
        project = self.db.get(Project, project_id)
        if not project:
            raise ProjectNotFound(project_id)
        return project

    def active_projects(self) -> list[Project]:
        return (
            self.db.query(Project)
            .filter(Project.is_active.is_(True), Project.supervisor_id.isnot(None))
            .order_by(Project.id)
            .all()
        )

    def employee_exists(self, employee_id: int) -> bool:
        return self.db.get(Employee, employee_id) is not None

    def worker_name(self, worker_id: int) -> str:
        employee = self.db.get(Employee, worker_id)
        return employee.full_name if employee else UNKNOWN_WORKER

    def assigned_worker_ids(self, project_id: int, day: date) -> set[int]:
        self._require_project(project_id)
        rows = (
            self.db.query(WorkerTaskAssignment.employee_id)
            .filter(WorkerTaskAssignment.project_id == project_id, WorkerTaskAssignment.date == day)
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def checked_in_worker_ids(self, project_id: int, day: date) -> set[int]:
        self._require_project(project_id)
        rows = (
            self.db.query(Attendance.employee_id)
            .filter(
                Attendance.project_id == project_id,
                Attendance.date == day,
                Attendance.check_in.isnot(None),
            )
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def open_attendance_sessions(self, project_id: int, day: date) -> list[OpenSession]:
        self._require_project(project_id)
        rows = (
            self.db.query(Attendance)
            .filter(
                Attendance.project_id == project_id,
                Attendance.date == day,
                Attendance.check_in.isnot(None),
                Attendance.check_out.is_(None),
            )
            .order_by(Attendance.check_in)
            .all()
        )
        return [OpenSession(worker_id=r.employee_id, check_in_at=r.check_in, attendance_id=r.id) for r in rows]

    def recent_geofence_breaches(self, project_id: int, since: datetime) -> list[GeofenceBreach]:
        project = self._require_project(project_id)
        rows = (
            self.db.query(Attendance)
            .filter(
                Attendance.project_id == project_id,
                or_(Attendance.check_in >= since, Attendance.check_out >= since),
            )
            .order_by(Attendance.id)
            .all()
        )

        breaches = []
        for row in rows:
            if row.check_in and row.check_in >= since and _outside(
                row.inside_geofence_at_checkin, row.latitude, row.longitude, project
            ):
                breaches.append(GeofenceBreach(
                    worker_id=row.employee_id, breach_kind=CHECK_IN, at=row.check_in,
                    latitude=row.latitude, longitude=row.longitude, attendance_id=row.id,
                ))
            if row.check_out and row.check_out >= since and _outside(
                row.inside_geofence_at_checkout, row.checkout_latitude, row.checkout_longitude, project
            ):
                breaches.append(GeofenceBreach(
                    worker_id=row.employee_id, breach_kind=CHECK_OUT, at=row.check_out,
                    latitude=row.checkout_latitude, longitude=row.checkout_longitude, attendance_id=row.id,
                ))
        return breaches


def _outside(flag: Optional[bool], lat: Optional[float], lon: Optional[float], project: Project) -> bool:
    """Stored flag wins; otherwise measure against the project geofence if we can."""
    if flag is not None:
        return not flag
    if None in (lat, lon, project.latitude, project.longitude) or not project.geofence_radius_meters:
        return False
    return not is_inside(LatLon(lat, lon), LatLon(project.latitude, project.longitude),
                         project.geofence_radius_meters)
