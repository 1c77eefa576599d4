"""
Initialize database — creates all tables, optionally seeds a demo site.
Run once before first launch, or after adding new models.

Usage:
  python scripts/setup/init_db.py
  python scripts/setup/init_db.py --demo     # + supervisor/worker/manager/admin, one project, today's assignment
"""

import argparse
import sys
import os
from datetime import datetime
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import SessionLocal, create_tables, engine
from app.config import settings
from app.models import Employee, Project, WorkerTaskAssignment
from app.utils.clock import local_day, resolve_timezone
from sqlalchemy import inspect, text

DEMO_EMPLOYEES = [
    (1, "Demo Supervisor", "supervisor"),
    (2, "Demo Worker", "worker"),
    (3, "Demo Manager", "manager"),
    (4, "Demo Admin", "admin"),
]
DEMO_PROJECT_ID = 1


def seed_demo():
    db = SessionLocal()
    try:
        for emp_id, name, role in DEMO_EMPLOYEES:
            if not db.get(Employee, emp_id):
                db.add(Employee(id=emp_id, full_name=name, role=role))
        if not db.get(Project, DEMO_PROJECT_ID):
            db.add(Project(id=DEMO_PROJECT_ID, project_name="Demo Site", supervisor_id=1,
                           latitude=25.2048, longitude=55.2708, geofence_radius_meters=150))
        today = local_day(datetime.utcnow(), resolve_timezone(settings.ENGINE_TIMEZONE))
        db.add(WorkerTaskAssignment(employee_id=2, project_id=DEMO_PROJECT_ID, date=today))
        db.commit()
        print(f"🌱 Demo site seeded: worker 2 assigned to project {DEMO_PROJECT_ID} for {today}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create alert engine tables")
    parser.add_argument("--demo", action="store_true", help="Seed a demo project with one assigned worker")
    args = parser.parse_args()

    print("🗄️  Workforce Alert Engine DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nCheck DATABASE_URL in .env, or point it at SQLite for a local run:")
        print("  DATABASE_URL=sqlite:///./workforce.db")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()

    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ {len(tables)} tables ready: {', '.join(tables)}")

    if args.demo:
        seed_demo()

    print("\n🎉 Done. Start the API (engine loops start with it):")
    print(f"   uvicorn app.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT}")
    print("   or run single ticks: python scripts/test/run_engine_once.py")


if __name__ == "__main__":
    main()
