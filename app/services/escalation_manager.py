# app/services/escalation_manager.py
"""
Escalation manager — owns the engine's three periodic loops.

    detection  (every DETECTION_INTERVAL_SECONDS)         → Detector
    escalation (every ESCALATION_CHECK_INTERVAL_SECONDS)  → EscalationScheduler
    cleanup    (every CLEANUP_INTERVAL_SECONDS)           → CleanupJob

Constructed once by the host process (app.main) and kept on app.state.
Loops run concurrently with each other; each loop runs its own ticks one at a
time. Tick failures are logged and never end a loop — only stop() does, and
stop() lets an in-flight tick finish instead of cancelling it.
"""

import asyncio
import time
from dataclasses import asdict, replace
from datetime import datetime
from typing import Any, Callable, Optional
from sqlalchemy.orm import Session
from app.database import SessionLocal
from app.services.alert_store import AlertStore
from app.services.cleanup_service import CleanupJob, CleanupReport
from app.services.detector import Detector, DetectionReport
from app.services.engine_config import EngineConfig
from app.services.escalation_scheduler import EscalationScheduler, EscalationReport
from app.services.escalation_store import EscalationStore
from app.services.fact_source import FactSource, SqlFactSource
from app.services.recipient_directory import RecipientDirectory, build_directory
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _default_directory(db: Session, config: EngineConfig) -> RecipientDirectory:
    return build_directory(db, config.first_tier_recipient_id, config.second_tier_recipient_id)


class EscalationManager:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        fact_source_factory: Callable[[Session], FactSource] = SqlFactSource,
        directory_factory: Callable[[Session, EngineConfig], RecipientDirectory] = _default_directory,
    ):
        self.config = config or EngineConfig.from_settings()
        self.session_factory = session_factory
        self.fact_source_factory = fact_source_factory
        self.directory_factory = directory_factory

        self._tasks: dict[str, asyncio.Task] = {}
        self._retired: list[asyncio.Task] = []
        self._stopping: Optional[asyncio.Event] = None
        self._started_at: Optional[float] = None
        self.last_results: dict[str, dict[str, Any]] = {}

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    # ── Lifecycle ─────────────────────────────────────────────────────────
    def start(self) -> None:
        """Start all loops. Safe to call multiple times — only one set will run."""
        if self.is_running:
            logger.warning("EscalationManager already running, skipping start")
            return

        self.config.validate()   # InvalidEngineConfig before any loop exists

        self._stopping = asyncio.Event()
        self._started_at = time.monotonic()
        loops = {
            "detection": (self.config.detection_interval_seconds, self.run_detection_tick),
            "escalation": (self.config.escalation_interval_seconds, self.run_escalation_tick),
            "cleanup": (self.config.cleanup_interval_seconds, self.run_cleanup_tick),
        }
        for name, (interval, tick) in loops.items():
            self._tasks[name] = asyncio.create_task(
                self._loop(name, interval, tick, self._stopping),
                name=f"escalation-manager-{name}",
            )
        logger.info(
            f"🚀 EscalationManager started (detection={self.config.detection_interval_seconds}s "
            f"escalation={self.config.escalation_interval_seconds}s "
            f"cleanup={self.config.cleanup_interval_seconds}s)"
        )

    def stop(self) -> None:
        """Stop scheduling new ticks. Idempotent."""
        if not self.is_running:
            logger.info("EscalationManager is not running")
            return
        self._stopping.set()
        self._retired = [task for task in self._retired if not task.done()]
        self._retired.extend(self._tasks.values())
        self._tasks = {}
        self._started_at = None
        logger.info("🛑 EscalationManager stopped")

    async def wait_closed(self) -> None:
        """Wait for stopped loops to finish their in-flight tick."""
        retired, self._retired = self._retired, []
        if retired:
            await asyncio.gather(*retired, return_exceptions=True)

    async def update_config(self, **changes) -> EngineConfig:
        """Apply new settings. Running loops finish their current tick, then restart with them."""
        new_config = replace(self.config, **changes)
        new_config.validate()
        self.config = new_config
        if self.is_running:
            self.stop()
            await self.wait_closed()
            self.start()
        return new_config

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "config": self.config.as_dict(),
            "loops": {name: not task.done() for name, task in self._tasks.items()},
            "uptime_seconds": round(time.monotonic() - self._started_at, 1) if self._started_at else 0,
            "last_results": self.last_results,
        }

    async def _loop(self, name: str, interval: float, tick, stopping: asyncio.Event) -> None:
        logger.info(f"{name} loop started (interval={interval}s)")
        while not stopping.is_set():
            try:
                await tick()
            except Exception:
                logger.exception(f"Error during {name} tick")
            try:
                await asyncio.wait_for(stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info(f"{name} loop exited")

    # ── Single passes (also used by scripts and tests) ────────────────────
    async def run_detection_tick(self, now: datetime = None) -> DetectionReport:
        db = self.session_factory()
        try:
            detector = Detector(self.fact_source_factory(db), AlertStore(db), self.config, db)
            report = await detector.run(now)
        finally:
            db.close()
        self._remember("detection", report)
        return report

    async def run_escalation_tick(self, now: datetime = None) -> EscalationReport:
        db = self.session_factory()
        try:
            scheduler = EscalationScheduler(
                AlertStore(db), EscalationStore(db), self.directory_factory(db, self.config), self.config, db,
            )
            report = await scheduler.run(now)
        finally:
            db.close()
        self._remember("escalation", report)
        return report

    async def run_cleanup_tick(self, now: datetime = None) -> CleanupReport:
        db = self.session_factory()
        try:
            report = await CleanupJob(AlertStore(db), EscalationStore(db), self.config).run(now)
        finally:
            db.close()
        self._remember("cleanup", report)
        return report

    def _remember(self, name: str, report) -> None:
        self.last_results[name] = {"finished_at": datetime.utcnow().isoformat(), **asdict(report)}
