"""Unit tests for the alert detector (geofence / absence / missing checkout / overtime)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from zoneinfo import ZoneInfoNotFoundError
from app.exceptions import DuplicateAlertError, ProjectNotFound
from app.models.alert import Alert
from app.models.project import Project
from app.services.alert_store import AlertStore
from app.services.detector import Detector
from app.services.engine_config import EngineConfig
from app.services.fact_source import SqlFactSource
from app.utils.clock import resolve_timezone
from conftest import PROJECT_ID, SUPERVISOR_ID, WORKER_ID, assign, attend

TEN_AM = datetime(2026, 3, 2, 10, 0)


def make_detector(db, config=None):
    return Detector(SqlFactSource(db), AlertStore(db), config or EngineConfig(timezone="UTC"), db)


def alerts_of(db, alert_type=None):
    q = db.query(Alert)
    if alert_type:
        q = q.filter(Alert.type == alert_type)
    return q.order_by(Alert.id).all()


class TestAbsence:
    @pytest.mark.asyncio
    async def test_absent_worker_after_nine_raises_one_warning(self, site):
        assign(site)
        report = await make_detector(site).run(TEN_AM)

        alerts = alerts_of(site)
        assert report.created == 1
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == "worker_absence"
        assert alert.priority == "warning"
        assert alert.related_worker_id == WORKER_ID
        assert alert.related_project_id == PROJECT_ID
        assert alert.supervisor_id == SUPERVISOR_ID
        assert alert.alert_identifier == f"absence_{WORKER_ID}_{PROJECT_ID}_2026-03-02"
        assert "Ali Hassan has not checked in" in alert.message

    @pytest.mark.asyncio
    async def test_second_tick_creates_nothing(self, site):
        assign(site)
        detector = make_detector(site)
        await detector.run(TEN_AM)
        report = await detector.run(TEN_AM + timedelta(seconds=1))

        assert report.created == 0
        assert report.duplicates == 1
        assert len(alerts_of(site)) == 1

    @pytest.mark.asyncio
    async def test_before_absence_hour_no_alert(self, site):
        assign(site)
        await make_detector(site).run(datetime(2026, 3, 2, 8, 59))
        assert alerts_of(site) == []

    @pytest.mark.asyncio
    async def test_exactly_at_absence_hour_alerts(self, site):
        assign(site)
        await make_detector(site).run(datetime(2026, 3, 2, 9, 0))
        assert len(alerts_of(site, "worker_absence")) == 1

    @pytest.mark.asyncio
    async def test_checked_in_worker_not_absent(self, site):
        assign(site)
        attend(site, check_in=datetime(2026, 3, 2, 8, 0), check_out=datetime(2026, 3, 2, 9, 30),
               inside_geofence_at_checkin=True, inside_geofence_at_checkout=True)
        await make_detector(site).run(TEN_AM)
        assert alerts_of(site) == []

    @pytest.mark.asyncio
    async def test_acknowledged_absence_does_not_refire_same_day(self, site):
        assign(site)
        detector = make_detector(site)
        await detector.run(TEN_AM)
        AlertStore(site).acknowledge(alerts_of(site)[0].id, by_id=SUPERVISOR_ID)

        await detector.run(TEN_AM + timedelta(minutes=5))
        assert len(alerts_of(site)) == 1

    @pytest.mark.asyncio
    async def test_next_day_gets_a_new_alert(self, site):
        from datetime import date
        assign(site)
        assign(site, day=date(2026, 3, 3))
        detector = make_detector(site)
        await detector.run(TEN_AM)
        AlertStore(site).acknowledge(alerts_of(site)[0].id, by_id=SUPERVISOR_ID)

        await detector.run(TEN_AM + timedelta(days=1))
        identifiers = [a.alert_identifier for a in alerts_of(site)]
        assert identifiers == [
            f"absence_{WORKER_ID}_{PROJECT_ID}_2026-03-02",
            f"absence_{WORKER_ID}_{PROJECT_ID}_2026-03-03",
        ]

    @pytest.mark.asyncio
    async def test_project_without_assignments_is_quiet(self, site):
        report = await make_detector(site).run(datetime(2026, 3, 2, 21, 0))
        assert report.projects_scanned == 1
        assert report.projects_failed == 0
        assert alerts_of(site) == []


class TestOvertime:
    @pytest.mark.asyncio
    async def test_eleven_hours_open_session(self, site):
        now = datetime(2026, 3, 2, 18, 30)
        attend(site, check_in=now - timedelta(hours=11), inside_geofence_at_checkin=True)
        await make_detector(site).run(now)

        alerts = alerts_of(site, "attendance_anomaly")
        assert len(alerts) == 1
        assert alerts[0].priority == "info"
        assert alerts[0].metadata_["type"] == "overtime"
        assert alerts[0].metadata_["overtimeHours"] == pytest.approx(1.0)
        assert "(1.0 hours over standard)" in alerts[0].message

    @pytest.mark.asyncio
    async def test_under_threshold_no_alert(self, site):
        now = datetime(2026, 3, 2, 17, 0)
        attend(site, check_in=now - timedelta(hours=9, minutes=59), inside_geofence_at_checkin=True)
        await make_detector(site).run(now)
        assert alerts_of(site) == []

    @pytest.mark.asyncio
    async def test_rounds_to_tenth_of_an_hour(self, site):
        now = datetime(2026, 3, 2, 18, 0)
        attend(site, check_in=now - timedelta(hours=12, minutes=20), inside_geofence_at_checkin=True)
        await make_detector(site).run(now)
        assert alerts_of(site)[0].metadata_["overtimeHours"] == pytest.approx(2.3)

    @pytest.mark.asyncio
    async def test_exact_half_tenth_rounds_up(self, site):
        now = datetime(2026, 3, 2, 18, 0)
        attend(site, check_in=now - timedelta(hours=10, minutes=15), inside_geofence_at_checkin=True)
        await make_detector(site).run(now)

        alert = alerts_of(site)[0]
        assert alert.metadata_["overtimeHours"] == 0.3
        assert "(0.3 hours over standard)" in alert.message



class TestMissingCheckout:
    @pytest.mark.asyncio
    async def test_open_session_after_checkout_hour(self, site):
        now = datetime(2026, 3, 2, 19, 30)
        attend(site, check_in=datetime(2026, 3, 2, 10, 0), inside_geofence_at_checkin=True)
        await make_detector(site).run(now)

        alerts = alerts_of(site, "attendance_anomaly")
        assert len(alerts) == 1
        assert alerts[0].priority == "warning"
        assert alerts[0].metadata_["type"] == "missing_checkout"
        assert alerts[0].alert_identifier == f"missing_checkout_{WORKER_ID}_{PROJECT_ID}_2026-03-02"

    @pytest.mark.asyncio
    async def test_before_checkout_hour_no_alert(self, site):
        attend(site, check_in=datetime(2026, 3, 2, 10, 0), inside_geofence_at_checkin=True)
        await make_detector(site).run(datetime(2026, 3, 2, 18, 59))
        assert alerts_of(site) == []

    @pytest.mark.asyncio
    async def test_overtime_and_missing_checkout_are_separate(self, site):
        attend(site, check_in=datetime(2026, 3, 2, 7, 0), inside_geofence_at_checkin=True)
        await make_detector(site).run(datetime(2026, 3, 2, 19, 0))
        kinds = sorted(a.metadata_["type"] for a in alerts_of(site, "attendance_anomaly"))
        assert kinds == ["missing_checkout", "overtime"]


class TestGeofence:
    @pytest.mark.asyncio
    async def test_flagged_check_in_is_critical(self, site):
        attend(site, check_in=TEN_AM - timedelta(minutes=5), inside_geofence_at_checkin=False,
               latitude=25.3, longitude=55.3)
        await make_detector(site).run(TEN_AM)

        alerts = alerts_of(site, "geofence_violation")
        assert len(alerts) == 1
        assert alerts[0].priority == "critical"
        assert alerts[0].message == "Geofence violation: Ali Hassan check-in outside project boundary"
        assert alerts[0].metadata_["location"] == {"latitude": 25.3, "longitude": 55.3}

    @pytest.mark.asyncio
    async def test_check_out_breach(self, site):
        attend(site, check_in=datetime(2026, 3, 2, 8, 0), check_out=TEN_AM - timedelta(minutes=2),
               inside_geofence_at_checkin=True, inside_geofence_at_checkout=False)
        await make_detector(site).run(TEN_AM)
        alerts = alerts_of(site, "geofence_violation")
        assert len(alerts) == 1
        assert "check-out" in alerts[0].message

    @pytest.mark.asyncio
    async def test_old_breach_outside_lookback_ignored(self, site):
        attend(site, check_in=TEN_AM - timedelta(minutes=20), inside_geofence_at_checkin=False)
        await make_detector(site).run(TEN_AM)
        assert alerts_of(site, "geofence_violation") == []

    @pytest.mark.asyncio
    async def test_unflagged_coordinates_measured_against_geofence(self, site):
        attend(site, check_in=TEN_AM - timedelta(minutes=1), latitude=25.2148, longitude=55.2708)  # ~1.1km
        attend(site, worker_id=3, check_in=TEN_AM - timedelta(minutes=1), latitude=25.2049, longitude=55.2708)
        await make_detector(site).run(TEN_AM)

        alerts = alerts_of(site, "geofence_violation")
        assert [a.related_worker_id for a in alerts] == [WORKER_ID]

    @pytest.mark.asyncio
    async def test_repeated_ticks_keep_one_unread_alert(self, site):
        attend(site, check_in=TEN_AM - timedelta(minutes=1), inside_geofence_at_checkin=False)
        detector = make_detector(site)
        for minute in range(0, 9, 2):
            await detector.run(TEN_AM + timedelta(minutes=minute))
        assert len(alerts_of(site, "geofence_violation")) == 1


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_missing_supervisor_skips_project(self, site):
        site.add(Project(id=11, project_name="Orphan", supervisor_id=999, is_active=True))
        site.commit()
        assign(site)
        assign(site, project_id=11)

        report = await make_detector(site).run(TEN_AM)
        assert report.projects_skipped == 1
        assert [a.related_project_id for a in alerts_of(site)] == [PROJECT_ID]

    @pytest.mark.asyncio
    async def test_failing_project_does_not_stop_the_tick(self, site):
        assign(site)
        facts = SqlFactSource(site)
        orphan = MagicMock(id=77, supervisor_id=SUPERVISOR_ID)
        real_projects = facts.active_projects()
        facts.active_projects = MagicMock(return_value=[orphan, *real_projects])

        detector = Detector(facts, AlertStore(site), EngineConfig(timezone="UTC"), site)
        report = await detector.run(TEN_AM)

        assert report.projects_failed == 1
        assert report.created == 1

    @pytest.mark.asyncio
    async def test_unknown_project_raises_from_fact_source(self, site):
        with pytest.raises(ProjectNotFound):
            SqlFactSource(site).assigned_worker_ids(12345, TEN_AM.date())

    @pytest.mark.asyncio
    async def test_store_rejecting_a_twin_counts_as_duplicate(self, site):
        assign(site)
        store = AlertStore(site)
        store.create = MagicMock(side_effect=DuplicateAlertError("absence_2_2026-03-02"))

        report = await Detector(SqlFactSource(site), store, EngineConfig(timezone="UTC"), site).run(TEN_AM)

        assert report.candidates == 1
        assert report.duplicates == 1
        assert report.created == 0
        assert report.projects_failed == 0
        assert alerts_of(site) == []



class TestTimezone:
    @pytest.mark.asyncio
    async def test_hour_threshold_uses_configured_zone(self, site):
        try:
            resolve_timezone("Asia/Dubai")
        except ZoneInfoNotFoundError:
            pytest.skip("tz database not available")
        config = EngineConfig(timezone="Asia/Dubai")   # UTC+4
        config.validate()
        assign(site)
        # 05:30 UTC = 09:30 in Dubai
        await make_detector(site, config).run(datetime(2026, 3, 2, 5, 30))
        assert len(alerts_of(site, "worker_absence")) == 1
