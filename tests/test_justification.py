"""Tests for hiring.workflow.justification module."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from hiring.lib.config import PipelineConfig
from hiring.store import JsonStore
from hiring.workflow.deadline import overdue_requisitions
from hiring.workflow.engine import PipelineEngine
from hiring.workflow.errors import DanglingReference, PersistenceFailure, ValidationError
from hiring.workflow.justification import JustificationInput, latest_justification, parse_input

NOW = datetime(2026, 10, 17, 10, 0)
TODAY = NOW.date()
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)


class TestJustificationInput:
    """Field-level validation of the submission."""

    def test_valid(self):
        data = parse_input("REQ-0001", "  client delayed  ", "2026-10-18", TODAY)
        assert isinstance(data, JustificationInput)
        assert data.reason == "client delayed"
        assert data.new_due_date == TOMORROW

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reason_required(self, reason):
        with pytest.raises(ValidationError) as exc:
            parse_input("REQ-0001", reason, TOMORROW, TODAY)
        assert exc.value.field == "reason"

    def test_date_required(self):
        with pytest.raises(ValidationError) as exc:
            parse_input("REQ-0001", "reason", None, TODAY)
        assert exc.value.field == "new_due_date"

    def test_past_date_rejected(self):
        with pytest.raises(ValidationError) as exc:
            parse_input("REQ-0001", "reason", YESTERDAY, TODAY)
        assert exc.value.field == "new_due_date"
        assert "today or later" in exc.value.message

    def test_today_accepted(self):
        assert parse_input("REQ-0001", "reason", TODAY, TODAY).new_due_date == TODAY


@pytest.fixture
def engine(tmp_path):
    return PipelineEngine(JsonStore(tmp_path), config=PipelineConfig(notifications=False), clock=lambda: NOW)


class TestOverdueScenario:
    """Due yesterday, still requested: justification clears it."""

    def test_end_to_end(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=YESTERDAY)
        assert [r.id for r in overdue_requisitions(engine.store.load_requisitions(), NOW)] == [req.id]

        justification = engine.submit_justification(req.id, "client delayed", TOMORROW)

        assert overdue_requisitions(engine.store.load_requisitions(), NOW) == []
        assert justification.days_overdue == 1
        stored = engine.store.load_justifications(req.id)
        assert len(stored) == 1
        assert stored[0].reason == "client delayed"
        assert stored[0].new_due_date == TOMORROW

    def test_after_scan_clears_delayed(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=YESTERDAY)
        engine.scan_overdue()

        engine.submit_justification(req.id, "client delayed", TOMORROW)

        stored = engine.store.get_requisition(req.id)
        assert stored.delayed is False
        assert stored.due_date == TOMORROW
        assert engine.scan_overdue() == []

    def test_activity_details(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=YESTERDAY)
        engine.submit_justification(req.id, "client delayed", TOMORROW)

        entry = [e for e in engine.activity.entries(req.id) if e.action == "justified_delay"][0]
        assert entry.details["reason"] == "client delayed"
        assert entry.details["new_due_date"] == TOMORROW.isoformat()
        assert entry.details["days_overdue"] == 1
        assert entry.details["previous_stage"] == "requested"
        assert entry.actor == "Operator"

    def test_latest_is_authoritative(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=YESTERDAY)
        engine.submit_justification(req.id, "first", TODAY)
        later = PipelineEngine(engine.store, config=engine.config, clock=lambda: NOW + timedelta(days=2))
        later.submit_justification(req.id, "second", TODAY + timedelta(days=5))

        latest = latest_justification(engine.store.load_justifications(req.id))
        assert latest.reason == "second"


class TestRejectedSubmissions:
    def test_not_overdue(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=TOMORROW)
        with pytest.raises(ValidationError) as exc:
            engine.submit_justification(req.id, "reason", TOMORROW)
        assert exc.value.field == "requisition_id"
        assert engine.store.load_justifications(req.id) == []

    def test_missing_requisition(self, engine):
        with pytest.raises(DanglingReference):
            engine.submit_justification("REQ-0042", "reason", TOMORROW)

    def test_validation_before_any_write(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=YESTERDAY)
        with pytest.raises(ValidationError):
            engine.submit_justification(req.id, "", TOMORROW)
        assert engine.store.get_requisition(req.id).due_date == YESTERDAY
        assert engine.store.load_justifications(req.id) == []

    def test_record_failure_restores_requisition(self, engine):
        req, _ = engine.create_requisition("Data analyst", due_date=YESTERDAY)
        engine.scan_overdue()

        with patch.object(engine.store, "add_justification",
                          side_effect=PersistenceFailure("write:justifications", "disk full")):
            with pytest.raises(PersistenceFailure):
                engine.submit_justification(req.id, "client delayed", TOMORROW)

        stored = engine.store.get_requisition(req.id)
        assert stored.delayed is True
        assert stored.due_date == YESTERDAY
        assert engine.current_escalation().id == req.id
