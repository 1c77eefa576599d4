"""Shared test fixtures — in-memory SQLite standing in for PostgreSQL."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Alert, AlertEscalation, Attendance, Employee, Project, WorkerTaskAssignment  # noqa
from app.services.engine_config import EngineConfig

SUPERVISOR_ID = 1
WORKER_ID = 2
MANAGER_ID = 3
ADMIN_ID = 4
PROJECT_ID = 10
SITE = (25.2048, 55.2708)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config():
    return EngineConfig(timezone="UTC")


@pytest.fixture
def site(db_session):
    """Supervisor, one worker, a manager, an admin and one active project with a 100m geofence."""
    db_session.add_all([
        Employee(id=SUPERVISOR_ID, full_name="Sara Supervisor", role="supervisor"),
        Employee(id=WORKER_ID, full_name="Ali Hassan", role="worker"),
        Employee(id=MANAGER_ID, full_name="Maya Manager", role="manager"),
        Employee(id=ADMIN_ID, full_name="Omar Admin", role="admin"),
        Project(id=PROJECT_ID, project_name="Tower A", supervisor_id=SUPERVISOR_ID,
                latitude=SITE[0], longitude=SITE[1], geofence_radius_meters=100, is_active=True),
    ])
    db_session.commit()
    return db_session


def assign(db, worker_id=WORKER_ID, project_id=PROJECT_ID, day=date(2026, 3, 2)):
    db.add(WorkerTaskAssignment(employee_id=worker_id, project_id=project_id, date=day))
    db.commit()


def attend(db, check_in, check_out=None, worker_id=WORKER_ID, project_id=PROJECT_ID, day=date(2026, 3, 2), **fields):
    row = Attendance(employee_id=worker_id, project_id=project_id, date=day,
                     check_in=check_in, check_out=check_out, created_at=check_in or datetime(2026, 3, 2), **fields)
    db.add(row)
    db.commit()
    return row
