# app/models/project.py
"""
Projects table (owned by the ERP project module — read-only for the engine).
The geofence is a circle: (latitude, longitude) + geofence_radius_meters.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean
from app.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_name = Column(String(200), nullable=False)
    supervisor_id = Column(Integer, index=True)          # employees.id, nullable until assigned
    latitude = Column(Float)
    longitude = Column(Float)
    geofence_radius_meters = Column(Float, default=100)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Project {self.id} {self.project_name} supervisor={self.supervisor_id}>"
