# app/models/attendance.py
"""
Attendance table (ERP-owned). One row per worker per project per day.
Geofence flags are set by the mobile check-in flow; NULL means "not evaluated"
and the fact source falls back to the stored coordinates.
"""

from sqlalchemy import Column, Integer, Date, DateTime, Float, Boolean
from app.database import Base


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    check_in = Column(DateTime)
    check_out = Column(DateTime)
    latitude = Column(Float)                  # check-in position
    longitude = Column(Float)
    checkout_latitude = Column(Float)
    checkout_longitude = Column(Float)
    inside_geofence_at_checkin = Column(Boolean)
    inside_geofence_at_checkout = Column(Boolean)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<Attendance {self.id} emp={self.employee_id} project={self.project_id} date={self.date}>"
