# app/models/employee.py
"""Employees table (ERP-owned). role drives escalation target lookup."""

from sqlalchemy import Column, Integer, String, Boolean
from app.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False)
    role = Column(String(50), default="worker", nullable=False)  # worker | supervisor | manager | admin
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Employee {self.id} {self.full_name} role={self.role}>"
