# app/utils/logger.py
"""
Centralised logging configuration for the alert engine.

  console      — everything at LOG_LEVEL
  engine.log   — everything at LOG_LEVEL, rotating
  alerts.log   — audit trail: only "[ALERT]..." and "[ESCALATION] Alert ..." records
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from app.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_DIR = settings.LOG_DIR or os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
os.makedirs(LOG_DIR, exist_ok=True)

FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
AUDIT_PREFIXES = ("[ALERT]", "[ESCALATION] Alert ")

_configured = False


class AuditFilter(logging.Filter):
    """Passes created-alert and escalation records only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING and record.getMessage().startswith(AUDIT_PREFIXES)


def _rotating(filename: str, max_mb: int, backups: int) -> RotatingFileHandler:
    return RotatingFileHandler(
        filename=os.path.join(LOG_DIR, filename),
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    fmt = logging.Formatter(fmt=FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setLevel(LOG_LEVEL)
    console.setFormatter(fmt)

    engine_file = _rotating("engine.log", max_mb=5, backups=10)
    engine_file.setLevel(LOG_LEVEL)
    engine_file.setFormatter(fmt)

    # Audit records are WARNING, so this file fills even when LOG_LEVEL is ERROR
    audit_file = _rotating("alerts.log", max_mb=10, backups=20)
    audit_file.setLevel(logging.WARNING)
    audit_file.addFilter(AuditFilter())
    audit_file.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(min(logging.getLevelName(LOG_LEVEL), logging.WARNING))
    root.addHandler(console)
    root.addHandler(engine_file)
    root.addHandler(audit_file)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
