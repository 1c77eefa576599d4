"""Unit tests for the alert audit log filter."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import logging
import pytest
from app.utils.logger import AuditFilter


def record(message, level=logging.WARNING):
    return logging.LogRecord("app.services.alert_store", level, __file__, 1, message, None, None)


class TestAuditFilter:
    @pytest.mark.parametrize("message", [
        "[ALERT][WORKER_ABSENCE] Ali Hassan has not checked in for scheduled work",
        "[ESCALATION] Alert 7 → level 1 (to 3, reason=timeout)",
    ])
    def test_passes_alert_and_escalation_records(self, message):
        assert AuditFilter().filter(record(message)) is True

    def test_drops_tick_summaries(self):
        assert AuditFilter().filter(record("[ESCALATION] Tick done: 1/1 escalated", logging.INFO)) is False
        assert AuditFilter().filter(record("[DETECT] Project 4 references missing supervisor 9")) is False

    def test_drops_debug_alert_chatter(self):
        assert AuditFilter().filter(record("[ALERT][X] noise", logging.DEBUG)) is False
