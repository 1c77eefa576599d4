# app/services/recipient_directory.py
"""
Escalation target lookup.

  - EmployeeRoleDirectory  — level 1 → a manager, level 2 → an admin; never the
                             alert's own supervisor; falls back to any admin.
  - HttpRecipientDirectory — asks an external directory service:
                             GET {base}/escalation-targets?supervisor_id=&project_id=&level=
                             → {"recipientId": 42}   (404 = nobody to escalate to)
  - TieredDirectory        — fixed per-tier recipients from config, then the fallback.

resolve() returns None when nobody qualifies; the scheduler skips the alert
and retries on the next tick.
"""

from abc import ABC, abstractmethod
from typing import Optional
import httpx
from sqlalchemy.orm import Session
from app.config import settings
from app.models.alert import Alert
from app.models.employee import Employee
from app.utils.logger import get_logger

logger = get_logger(__name__)

ROLE_BY_LEVEL = {1: "manager", 2: "admin"}


class RecipientDirectory(ABC):
    @abstractmethod
    async def resolve(self, alert: Alert, level: int) -> Optional[int]:
        """Recipient employee id for escalating alert to level, or None."""
        ...


class EmployeeRoleDirectory(RecipientDirectory):
    def __init__(self, db: Session):
        self.db = db

    async def resolve(self, alert: Alert, level: int) -> Optional[int]:
        role = ROLE_BY_LEVEL.get(level, "admin")
        target = (
            self.db.query(Employee)
            .filter(Employee.role == role, Employee.is_active.is_(True), Employee.id != alert.supervisor_id)
            .order_by(Employee.id)
            .first()
        )
        if target is None:
            target = (
                self.db.query(Employee)
                .filter(Employee.role == "admin", Employee.is_active.is_(True))
                .order_by(Employee.id)
                .first()
            )
        return target.id if target else None


class HttpRecipientDirectory(RecipientDirectory):
    def __init__(self, base_url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def resolve(self, alert: Alert, level: int) -> Optional[int]:
        params = {"supervisor_id": alert.supervisor_id, "level": level}
        if alert.related_project_id is not None:
            params["project_id"] = alert.related_project_id

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(f"{self.base_url}/escalation-targets", params=params)

        if response.status_code == 404:
            return None
        response.raise_for_status()
        recipient = response.json().get("recipientId")
        return int(recipient) if recipient is not None else None


class TieredDirectory(RecipientDirectory):
    def __init__(self, fixed: dict[int, Optional[int]], fallback: RecipientDirectory):
        self.fixed = {level: rid for level, rid in fixed.items() if rid is not None}
        self.fallback = fallback

    async def resolve(self, alert: Alert, level: int) -> Optional[int]:
        if level in self.fixed:
            return self.fixed[level]
        return await self.fallback.resolve(alert, level)


def build_directory(db: Session, first_tier: Optional[int] = None, second_tier: Optional[int] = None) -> RecipientDirectory:
    if settings.DIRECTORY_SERVICE_URL:
        fallback = HttpRecipientDirectory(settings.DIRECTORY_SERVICE_URL, settings.DIRECTORY_TIMEOUT_SECONDS)
    else:
        fallback = EmployeeRoleDirectory(db)
    return TieredDirectory({1: first_tier, 2: second_tier}, fallback)
