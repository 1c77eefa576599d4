# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite accepted for local runs). All models are auto-imported here
so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings


def build_engine(url: str):
    """PostgreSQL gets a pooled engine; SQLite (local runs, scripts) a thread-shareable one."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,                # three engine loops + API requests
        max_overflow=20,
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    # Engine-owned tables
    from app.models.alert import Alert                         # noqa
    from app.models.alert_escalation import AlertEscalation    # noqa
    # Attendance facts (owned by the ERP, read-only here)
    from app.models.project import Project                     # noqa
    from app.models.employee import Employee                   # noqa
    from app.models.attendance import Attendance               # noqa
    from app.models.task_assignment import WorkerTaskAssignment  # noqa

    Base.metadata.create_all(bind=engine)
