# app/services/engine_config.py
"""
Engine configuration — an explicit value handed to EscalationManager.
Built from app.config.settings by default; validated when the manager starts.
"""

from dataclasses import dataclass, asdict
from datetime import tzinfo
from typing import Optional
from app.config import Settings, settings as default_settings
from app.exceptions import InvalidEngineConfig
from app.utils.clock import resolve_timezone


@dataclass(frozen=True)
class EngineConfig:
    detection_interval_seconds: float = 5 * 60
    escalation_interval_seconds: float = 2 * 60
    cleanup_interval_seconds: float = 60 * 60
    escalation_timeout_minutes: float = 15
    absence_check_hour: int = 9
    missing_checkout_hour: int = 19
    standard_workday_hours: float = 10
    geofence_lookback_minutes: float = 10
    geofence_dedup_window_minutes: float = 30
    escalation_retention_days: float = 30
    acknowledged_alert_retention_days: float = 7
    timezone: str = "UTC"
    first_tier_recipient_id: Optional[int] = None
    second_tier_recipient_id: Optional[int] = None

    @classmethod
    def from_settings(cls, s: Settings = default_settings) -> "EngineConfig":
        return cls(
            detection_interval_seconds=s.DETECTION_INTERVAL_SECONDS,
            escalation_interval_seconds=s.ESCALATION_CHECK_INTERVAL_SECONDS,
            cleanup_interval_seconds=s.CLEANUP_INTERVAL_SECONDS,
            escalation_timeout_minutes=s.CRITICAL_ESCALATION_TIMEOUT_MINUTES,
            absence_check_hour=s.ABSENCE_CHECK_HOUR,
            missing_checkout_hour=s.MISSING_CHECKOUT_HOUR,
            standard_workday_hours=s.STANDARD_WORKDAY_HOURS,
            geofence_lookback_minutes=s.GEOFENCE_LOOKBACK_MINUTES,
            geofence_dedup_window_minutes=s.GEOFENCE_DEDUP_WINDOW_MINUTES,
            escalation_retention_days=s.ESCALATION_RETENTION_DAYS,
            acknowledged_alert_retention_days=s.ACKNOWLEDGED_ALERT_RETENTION_DAYS,
            timezone=s.ENGINE_TIMEZONE,
            first_tier_recipient_id=s.ESCALATION_FIRST_TIER_RECIPIENT_ID,
            second_tier_recipient_id=s.ESCALATION_SECOND_TIER_RECIPIENT_ID,
        )

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone)

    def validate(self) -> None:
        """Raise InvalidEngineConfig listing every bad value."""
        problems = []
        for name in (
            "detection_interval_seconds", "escalation_interval_seconds", "cleanup_interval_seconds",
            "escalation_timeout_minutes", "standard_workday_hours", "geofence_lookback_minutes",
            "geofence_dedup_window_minutes", "escalation_retention_days",
            "acknowledged_alert_retention_days",
        ):
            if getattr(self, name) <= 0:
                problems.append(f"{name} must be positive (got {getattr(self, name)})")
        for name in ("absence_check_hour", "missing_checkout_hour"):
            if not 0 <= getattr(self, name) <= 23:
                problems.append(f"{name} must be within 0-23 (got {getattr(self, name)})")
        try:
            resolve_timezone(self.timezone)
        except (KeyError, ValueError):
            problems.append(f"unknown timezone {self.timezone!r}")

        if problems:
            raise InvalidEngineConfig("; ".join(problems))

    def as_dict(self) -> dict:
        return asdict(self)
