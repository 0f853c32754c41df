"""Tests for hiring.workflow.state_machine module."""

import itertools
from datetime import date, datetime

import pytest

from hiring.models import Justification, PROTECTED_STAGES, Requisition, RequisitionStage
from hiring.workflow.errors import GuardViolation
from hiring.workflow.state_machine import (
    apply_automatic_move,
    apply_manual_move,
    board_columns,
    check_manual_move,
    clear_delayed,
    flag_delayed,
    parse_stage,
)

NOW = datetime(2026, 10, 17, 10, 0)


def make_requisition(stage=RequisitionStage.REQUESTED, **kwargs):
    defaults = dict(id="REQ-0001", title="Backend engineer", created_at=datetime(2026, 10, 1, 9, 0))
    defaults.update(kwargs)
    return Requisition(stage=stage, **defaults)


class TestParseStage:
    def test_valid_stages(self):
        for stage in RequisitionStage:
            assert parse_stage(stage.value) == stage

    def test_unknown_returns_none(self):
        assert parse_stage("bogus") is None
        assert parse_stage(None) is None


class TestProtectedSetGuard:
    """Manual moves among requested/registered/announced are always refused."""

    @pytest.mark.parametrize(
        "from_stage,to_stage",
        list(itertools.permutations(sorted(PROTECTED_STAGES, key=lambda s: s.value), 2)),
    )
    def test_moves_within_protected_set_rejected(self, from_stage, to_stage):
        req = make_requisition(from_stage)
        violation = check_manual_move(req, from_stage, to_stage)
        assert isinstance(violation, GuardViolation)
        assert violation.code == "protected"

    @pytest.mark.parametrize("from_stage", [RequisitionStage.IN_SELECTION, RequisitionStage.ARCHIVED])
    def test_direct_move_to_registered_rejected(self, from_stage):
        violation = check_manual_move(make_requisition(from_stage), from_stage, RequisitionStage.REGISTERED)
        assert violation is not None
        assert violation.code == "task_only"

    def test_direct_move_to_announced_rejected(self):
        req = make_requisition(RequisitionStage.IN_SELECTION)
        violation = check_manual_move(req, RequisitionStage.IN_SELECTION, RequisitionStage.ANNOUNCED)
        assert violation is not None
        assert "publish-campaign" in violation.reason

    def test_move_back_into_requested_rejected(self):
        req = make_requisition(RequisitionStage.IN_SELECTION)
        violation = check_manual_move(req, RequisitionStage.IN_SELECTION, RequisitionStage.REQUESTED)
        assert violation is not None
        assert violation.code == "task_only"

    def test_apply_raises_violation(self):
        with pytest.raises(GuardViolation):
            apply_manual_move(make_requisition(), RequisitionStage.REGISTERED, 0, NOW)


class TestManualMoves:
    """Accepted manual moves."""

    def test_reorder_within_stage(self):
        req = make_requisition(RequisitionStage.REGISTERED, position=3)
        assert check_manual_move(req, RequisitionStage.REGISTERED, RequisitionStage.REGISTERED) is None
        moved = apply_manual_move(req, RequisitionStage.REGISTERED, 0, NOW)
        assert moved.stage == RequisitionStage.REGISTERED
        assert moved.position == 0

    def test_leave_protected_set_to_selection(self):
        moved = apply_manual_move(make_requisition(), RequisitionStage.IN_SELECTION, 1, NOW)
        assert moved.stage == RequisitionStage.IN_SELECTION

    def test_archive_stamps_archived_at(self):
        req = make_requisition(RequisitionStage.IN_SELECTION)
        moved = apply_manual_move(req, RequisitionStage.ARCHIVED, 0, NOW)
        assert moved.stage == RequisitionStage.ARCHIVED
        assert moved.archived_at == NOW
        assert req.archived_at is None

    def test_unarchive_clears_archived_at(self):
        req = make_requisition(RequisitionStage.ARCHIVED, archived_at=NOW)
        moved = apply_manual_move(req, RequisitionStage.IN_SELECTION, 0, NOW)
        assert moved.stage == RequisitionStage.IN_SELECTION
        assert moved.archived_at is None

    def test_stale_from_stage_rejected(self):
        req = make_requisition(RequisitionStage.IN_SELECTION)
        violation = check_manual_move(req, RequisitionStage.REQUESTED, RequisitionStage.ARCHIVED)
        assert violation.code == "stale"


class TestAutomaticMoves:
    """Task-triggered moves bypass the protected-set guard."""

    def test_requested_to_registered(self):
        moved = apply_automatic_move(make_requisition(), RequisitionStage.REGISTERED)
        assert moved.stage == RequisitionStage.REGISTERED

    def test_registered_to_selection(self):
        moved = apply_automatic_move(make_requisition(RequisitionStage.REGISTERED), RequisitionStage.IN_SELECTION)
        assert moved.stage == RequisitionStage.IN_SELECTION

    def test_same_stage_is_noop(self):
        req = make_requisition(RequisitionStage.IN_SELECTION)
        assert apply_automatic_move(req, RequisitionStage.IN_SELECTION) is req

    def test_archived_refused(self):
        req = make_requisition(RequisitionStage.ARCHIVED, archived_at=NOW)
        with pytest.raises(GuardViolation) as exc:
            apply_automatic_move(req, RequisitionStage.REGISTERED)
        assert exc.value.code == "archived"


class TestDelayedOverlay:
    """Delayed is a flag next to the stage, never a stage of its own."""

    def test_flag_keeps_stage(self):
        req = make_requisition(RequisitionStage.ANNOUNCED)
        delayed = flag_delayed(req, NOW)
        assert delayed.delayed is True
        assert delayed.delayed_at == NOW
        assert delayed.stage == RequisitionStage.ANNOUNCED

    def test_flag_twice_rejected(self):
        delayed = flag_delayed(make_requisition(), NOW)
        with pytest.raises(GuardViolation) as exc:
            flag_delayed(delayed, NOW)
        assert exc.value.code == "already_delayed"

    def test_archived_never_delayed(self):
        with pytest.raises(GuardViolation):
            flag_delayed(make_requisition(RequisitionStage.ARCHIVED), NOW)

    def test_clear_returns_to_stage(self):
        delayed = flag_delayed(make_requisition(RequisitionStage.REGISTERED), NOW)
        cleared = clear_delayed(delayed)
        assert cleared.delayed is False
        assert cleared.delayed_at is None
        assert cleared.stage == RequisitionStage.REGISTERED


class TestBoardColumns:
    """Board grouping with the virtual justification column."""

    def test_grouping(self):
        plain = make_requisition(RequisitionStage.REGISTERED, id="REQ-0001", due_date=date(2026, 11, 1))
        awaiting = make_requisition(RequisitionStage.REQUESTED, id="REQ-0002",
                                    due_date=date(2026, 10, 1), delayed=True)
        justified = make_requisition(RequisitionStage.ANNOUNCED, id="REQ-0003", due_date=date(2026, 10, 30))
        archived = make_requisition(RequisitionStage.ARCHIVED, id="REQ-0004", archived_at=NOW, delayed=True)
        justifications = [Justification(
            requisition_id="REQ-0003", reason="client delayed", new_due_date=date(2026, 10, 30),
            author="Operator", created_at=datetime(2026, 10, 16, 8, 0), days_overdue=2,
        )]

        board = board_columns([plain, awaiting, justified, archived], justifications, NOW)

        assert [r.id for r in board.columns[RequisitionStage.REGISTERED]] == ["REQ-0001"]
        assert [r.id for r in board.awaiting] == ["REQ-0002"]
        assert [r.id for r in board.justified] == ["REQ-0003"]
        assert [r.id for r in board.columns[RequisitionStage.ARCHIVED]] == ["REQ-0004"]
        assert board.columns[RequisitionStage.REQUESTED] == []
        assert board.columns[RequisitionStage.ANNOUNCED] == []

    def test_lapsed_justification_returns_to_stage_column(self):
        req = make_requisition(RequisitionStage.REQUESTED, due_date=date(2026, 10, 10))
        justifications = [Justification(
            requisition_id=req.id, reason="r", new_due_date=date(2026, 10, 10),
            author="Operator", created_at=datetime(2026, 10, 5),
        )]
        board = board_columns([req], justifications, NOW)
        assert board.justified == []
        assert [r.id for r in board.columns[RequisitionStage.REQUESTED]] == [req.id]
