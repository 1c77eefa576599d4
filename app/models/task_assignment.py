# app/models/task_assignment.py
"""Worker task assignments (ERP-owned). Defines who is expected on site per day."""

from sqlalchemy import Column, Integer, Date, String
from app.database import Base


class WorkerTaskAssignment(Base):
    __tablename__ = "worker_task_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, nullable=False, index=True)
    project_id = Column(Integer, nullable=False, index=True)
    task_id = Column(Integer)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(50), default="queued")

    def __repr__(self):
        return f"<WorkerTaskAssignment {self.id} emp={self.employee_id} project={self.project_id} date={self.date}>"
