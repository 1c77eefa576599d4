"""Unit tests for the SQL-backed attendance fact source."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, datetime, timedelta
from app.exceptions import ProjectNotFound
from app.models.project import Project
from app.services.fact_source import SqlFactSource, UNKNOWN_WORKER
from conftest import PROJECT_ID, SUPERVISOR_ID, WORKER_ID, assign, attend

DAY = date(2026, 3, 2)
NOON = datetime(2026, 3, 2, 12, 0)


@pytest.fixture
def facts(site):
    return SqlFactSource(site)


class TestProjectsAndPeople:
    def test_active_projects_need_a_supervisor(self, site, facts):
        site.add_all([
            Project(id=11, project_name="Closed", supervisor_id=SUPERVISOR_ID, is_active=False),
            Project(id=12, project_name="Unstaffed", supervisor_id=None, is_active=True),
        ])
        site.commit()
        assert [p.id for p in facts.active_projects()] == [PROJECT_ID]

    def test_worker_name_falls_back(self, facts):
        assert facts.worker_name(WORKER_ID) == "Ali Hassan"
        assert facts.worker_name(999) == UNKNOWN_WORKER

    def test_employee_exists(self, facts):
        assert facts.employee_exists(SUPERVISOR_ID)
        assert not facts.employee_exists(999)


class TestAssignmentsAndAttendance:
    def test_assigned_workers_are_distinct_per_day(self, site, facts):
        assign(site)
        assign(site)
        assign(site, worker_id=3)
        assign(site, worker_id=4, day=date(2026, 3, 3))
        assert facts.assigned_worker_ids(PROJECT_ID, DAY) == {WORKER_ID, 3}

    def test_empty_project_returns_empty_sets(self, facts):
        assert facts.assigned_worker_ids(PROJECT_ID, DAY) == set()
        assert facts.checked_in_worker_ids(PROJECT_ID, DAY) == set()
        assert facts.open_attendance_sessions(PROJECT_ID, DAY) == []

    def test_checked_in_ignores_rows_without_check_in(self, site, facts):
        attend(site, check_in=None)
        attend(site, worker_id=3, check_in=NOON)
        assert facts.checked_in_worker_ids(PROJECT_ID, DAY) == {3}

    def test_open_sessions_exclude_checked_out(self, site, facts):
        open_row = attend(site, check_in=NOON - timedelta(hours=3))
        attend(site, worker_id=3, check_in=NOON - timedelta(hours=4), check_out=NOON)
        sessions = facts.open_attendance_sessions(PROJECT_ID, DAY)
        assert len(sessions) == 1
        assert sessions[0].worker_id == WORKER_ID
        assert sessions[0].attendance_id == open_row.id
        assert sessions[0].check_in_at == NOON - timedelta(hours=3)

    @pytest.mark.parametrize("method,arg", [
        ("assigned_worker_ids", DAY),
        ("checked_in_worker_ids", DAY),
        ("open_attendance_sessions", DAY),
        ("recent_geofence_breaches", NOON),
    ])
    def test_unknown_project_raises(self, facts, method, arg):
        with pytest.raises(ProjectNotFound):
            getattr(facts, method)(404, arg)


class TestGeofenceBreaches:
    def test_flag_wins_over_coordinates(self, site, facts):
        # coordinates are on site, but the check-in flow said outside
        attend(site, check_in=NOON, inside_geofence_at_checkin=False, latitude=25.2048, longitude=55.2708)
        breaches = facts.recent_geofence_breaches(PROJECT_ID, NOON - timedelta(minutes=10))
        assert [(b.worker_id, b.breach_kind) for b in breaches] == [(WORKER_ID, "check-in")]

    def test_inside_flag_is_not_a_breach(self, site, facts):
        attend(site, check_in=NOON, inside_geofence_at_checkin=True, latitude=30.0, longitude=50.0)
        assert facts.recent_geofence_breaches(PROJECT_ID, NOON - timedelta(minutes=10)) == []

    def test_missing_flag_and_coordinates_is_not_a_breach(self, site, facts):
        attend(site, check_in=NOON)
        assert facts.recent_geofence_breaches(PROJECT_ID, NOON - timedelta(minutes=10)) == []

    def test_check_out_coordinates_measured(self, site, facts):
        attend(site, check_in=NOON - timedelta(hours=5), check_out=NOON,
               inside_geofence_at_checkin=True, checkout_latitude=25.3, checkout_longitude=55.2708)
        breaches = facts.recent_geofence_breaches(PROJECT_ID, NOON - timedelta(minutes=10))
        assert len(breaches) == 1
        assert breaches[0].breach_kind == "check-out"
        assert breaches[0].latitude == 25.3
        assert breaches[0].at == NOON

    def test_events_before_since_are_ignored(self, site, facts):
        attend(site, check_in=NOON - timedelta(minutes=11), inside_geofence_at_checkin=False)
        assert facts.recent_geofence_breaches(PROJECT_ID, NOON - timedelta(minutes=10)) == []

    def test_project_without_geofence_only_uses_flags(self, site, facts):
        site.add(Project(id=11, project_name="No fence", supervisor_id=SUPERVISOR_ID, is_active=True))
        site.commit()
        attend(site, project_id=11, check_in=NOON, latitude=0.0, longitude=0.0)
        attend(site, project_id=11, worker_id=3, check_in=NOON, inside_geofence_at_checkin=False)
        breaches = facts.recent_geofence_breaches(11, NOON - timedelta(minutes=1))
        assert [b.worker_id for b in breaches] == [3]
