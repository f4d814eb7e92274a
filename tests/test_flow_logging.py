from __future__ import annotations

import logging

from app.core.config import settings
from app.core.flow_logging import ALLOCATION, BOOKING, flow_info, flow_logs_enabled

logger = logging.getLogger("tests.flow")


def test_category_defaults(monkeypatch):
    monkeypatch.setattr(settings, "FLOW_LOGS_ENABLED", True)
    monkeypatch.setattr(settings, "FLOW_LOGS_BOOKING_ENABLED", True)
    monkeypatch.setattr(settings, "FLOW_LOGS_ALLOCATION_ENABLED", False)

    assert flow_logs_enabled(BOOKING)
    assert not flow_logs_enabled(ALLOCATION)
    assert flow_logs_enabled(None)
    assert flow_logs_enabled("pipeline")


def test_master_switch_silences_every_category(monkeypatch, caplog):
    monkeypatch.setattr(settings, "FLOW_LOGS_ENABLED", False)
    monkeypatch.setattr(settings, "FLOW_LOGS_ALLOCATION_ENABLED", True)

    with caplog.at_level(logging.INFO, logger="tests.flow"):
        flow_info(logger, "Allocated shipment_id=%s", "ACME-223ABC", category=ALLOCATION)
        flow_info(logger, "Booking shipment_id=%s", "ACME-223ABC", category=BOOKING)

    assert caplog.records == []


def test_enabled_category_logs_at_info(monkeypatch, caplog):
    monkeypatch.setattr(settings, "FLOW_LOGS_ENABLED", True)
    monkeypatch.setattr(settings, "FLOW_LOGS_ALLOCATION_ENABLED", True)

    with caplog.at_level(logging.INFO, logger="tests.flow"):
        flow_info(logger, "Allocated shipment_id=%s", "ACME-223ABC", category=ALLOCATION)

    assert [r.getMessage() for r in caplog.records] == ["Allocated shipment_id=ACME-223ABC"]
    assert caplog.records[0].levelno == logging.INFO
