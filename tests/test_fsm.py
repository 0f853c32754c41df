"""Tests for hiring.workflow.fsm module."""

import pytest
from datetime import datetime
from transitions import MachineError

from hiring.models import Candidate, CandidateStage, Requisition, RequisitionStage
from hiring.workflow.fsm import (
    AUTOMATIC_TRIGGER_FOR,
    CandidateFSM,
    MANUAL_TRIGGER_FOR,
    RequisitionFSM,
    STATES,
)
from hiring.workflow.task_links import LINKS


def make_requisition(stage=RequisitionStage.REQUESTED):
    return Requisition(
        id="REQ-0001",
        title="Backend engineer",
        stage=stage,
        created_at=datetime(2026, 10, 1, 9, 0),
    )


class TestFSMStates:
    """Tests for FSM state and trigger tables."""

    def test_all_states_defined(self):
        assert set(STATES) == {"requested", "registered", "announced", "in_selection", "archived"}

    def test_register_is_automatic_only(self):
        """Nothing reaches registered by hand."""
        assert ("requested", "registered") in AUTOMATIC_TRIGGER_FOR
        assert not any(dest == "registered" for _, dest in MANUAL_TRIGGER_FOR)

    def test_announce_is_automatic_only(self):
        assert not any(dest == "announced" for _, dest in MANUAL_TRIGGER_FOR)

    def test_announced_column_can_be_left(self):
        """No task link enters announced, but its cards still move on."""
        assert all(link is None or link.target_stage != RequisitionStage.ANNOUNCED for link in LINKS.values())
        assert AUTOMATIC_TRIGGER_FOR[("announced", "in_selection")] == "open_selection"
        assert MANUAL_TRIGGER_FOR[("announced", "in_selection")] == "move_to_selection"

    def test_manual_archive_from_every_open_stage(self):
        for source in ("requested", "registered", "announced", "in_selection"):
            assert MANUAL_TRIGGER_FOR[(source, "archived")] == "archive"

    def test_unarchive_returns_to_selection(self):
        assert MANUAL_TRIGGER_FOR[("archived", "in_selection")] == "unarchive"


class TestRequisitionFSM:
    """Tests for RequisitionFSM transitions."""

    def test_initial_state_from_requisition(self):
        fsm = RequisitionFSM(make_requisition(RequisitionStage.ANNOUNCED))
        assert fsm.state == "announced"

    def test_transition_replaces_working_copy(self):
        """The wrapped requisition is never mutated."""
        original = make_requisition()
        fsm = RequisitionFSM(original)
        fsm.register()

        assert fsm.requisition.stage == RequisitionStage.REGISTERED
        assert original.stage == RequisitionStage.REQUESTED

    def test_callback_receives_transition(self):
        calls = []
        fsm = RequisitionFSM(make_requisition(), on_transition=lambda *a: calls.append(a))
        fsm.open_selection()
        assert calls == [("requested", "in_selection", "open_selection")]

    def test_invalid_trigger_raises(self):
        fsm = RequisitionFSM(make_requisition(RequisitionStage.ARCHIVED))
        with pytest.raises(MachineError):
            fsm.register()

    def test_available_triggers(self):
        fsm = RequisitionFSM(make_requisition(RequisitionStage.ARCHIVED))
        assert fsm.get_available_triggers() == ["unarchive"]
        assert fsm.can("unarchive")
        assert not fsm.can("archive")


class TestCandidateFSM:
    """Tests for the candidate machine and its hire condition."""

    @pytest.fixture
    def candidate(self):
        return Candidate(id="CAND-0001", requisition_id="REQ-0001", name="Ada",
                         stage=CandidateStage.INTERVIEW_DONE)

    def test_free_movement(self, candidate):
        fsm = CandidateFSM(candidate)
        fsm.move(CandidateStage.DISCARDED)
        fsm.move(CandidateStage.VIABLE)
        assert fsm.candidate.stage == CandidateStage.VIABLE

    def test_move_refuses_hired(self, candidate):
        with pytest.raises(ValueError):
            CandidateFSM(candidate).move(CandidateStage.HIRED)

    def test_hire_without_confirmation_does_nothing(self, candidate):
        fsm = CandidateFSM(candidate)
        assert fsm.hire() is False
        assert fsm.hire(confirmed=False) is False
        assert fsm.candidate.stage == CandidateStage.INTERVIEW_DONE

    def test_hire_with_confirmation(self, candidate):
        fsm = CandidateFSM(candidate)
        fsm.hire(confirmed=True)
        assert fsm.candidate.stage == CandidateStage.HIRED

    def test_can_leave_hired(self, candidate):
        fsm = CandidateFSM(Candidate(id="CAND-0002", requisition_id="REQ-0001", name="Bo",
                                     stage=CandidateStage.HIRED))
        fsm.move(CandidateStage.NEGOTIATING)
        assert fsm.candidate.stage == CandidateStage.NEGOTIATING
