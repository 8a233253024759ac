import json
from typing import Any, List

import pytest
from slotbook.models import ItemType, ReservationStatus
from slotbook.utils import audit_log
from slotbook.utils.correlation import correlation_scope


def test_emit_audit_log_outputs_json(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    with correlation_scope("corr-123"):
        audit_log.emit_audit_log(
            action="reservation.created",
            initiator="user",
            actor_id="u-1",
            reservation_id="res-1",
            item_id="dev-1",
            item_type=ItemType.DEVICE,
            quantity=2,
            status_from=None,
            status_to=ReservationStatus.APPROVED,
        )
    assert len(messages) == 1
    payload = json.loads(messages[0])
    assert payload["action"] == "reservation.created"
    assert payload["initiator"] == "user"
    assert payload["correlation_id"] == "corr-123"
    assert payload["item_type"] == "device"
    assert payload["status_to"] == "approved"
    assert payload["quantity"] == 2
    assert "status_from" not in payload
    assert "timestamp" in payload


def test_emit_audit_log_merges_extra_fields(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    audit_log.emit_audit_log(
        action="reservation.batch",
        initiator="user",
        actor_id="u-1",
        reservation_id=None,
        message="2 period(s) for Tablet booked successfully.",
        extra={"success_count": 2, "fail_count": 0},
    )
    payload = json.loads(messages[0])
    assert payload["success_count"] == 2
    assert payload["fail_count"] == 0
    assert payload["message"].startswith("2 period(s)")
    assert "reservation_id" not in payload
    assert "correlation_id" not in payload


def test_emit_audit_log_raises_on_logger_failure(monkeypatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    dummy_logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", dummy_logger)

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="reservation.cancelled",
            initiator="user",
            actor_id="u-1",
            reservation_id="res-1",
            status_from=ReservationStatus.APPROVED,
            status_to=ReservationStatus.CANCELLED,
        )
