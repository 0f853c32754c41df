"""Per-requisition candidate board with the hire confirmation gate.

Every move applies immediately except a move into `hired`, which opens a
three-phase dialog instead:

    question --yes--> success   (candidate is hired)
    question --no---> blocked   (nothing applied, form link shown)

Closing the dialog from any phase drops it. The dialog itself is a frozen
value transitioned by pure functions so it can be tested without a UI.
"""

import logging
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from hiring.activity import ActivityRecorder
from hiring.models import Actor, Candidate, CandidateStage
from hiring.store import JsonStore
from hiring.workflow.errors import DanglingReference, GuardViolation, MoveResult, ValidationError
from hiring.workflow.fsm import CandidateFSM

logger = logging.getLogger(__name__)


class DialogPhase(Enum):
    IDLE = "idle"
    QUESTION = "question"
    SUCCESS = "success"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class HireDialog:
    phase: DialogPhase = DialogPhase.IDLE
    candidate_id: Optional[str] = None
    from_stage: Optional[CandidateStage] = None
    position: int = 0


def begin(candidate: Candidate, position: int) -> HireDialog:
    return HireDialog(
        phase=DialogPhase.QUESTION,
        candidate_id=candidate.id,
        from_stage=candidate.stage,
        position=position,
    )


def answer_yes(dialog: HireDialog) -> HireDialog:
    if dialog.phase != DialogPhase.QUESTION:
        raise ValueError(f"cannot answer from phase {dialog.phase.value}")
    return replace(dialog, phase=DialogPhase.SUCCESS)


def answer_no(dialog: HireDialog) -> HireDialog:
    if dialog.phase != DialogPhase.QUESTION:
        raise ValueError(f"cannot answer from phase {dialog.phase.value}")
    return replace(dialog, phase=DialogPhase.BLOCKED)


class CandidateSubPipeline:
    """Candidate moves, the hire gate and candidate-scoped activity."""

    def __init__(
        self,
        store: JsonStore,
        activity: ActivityRecorder,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.activity = activity
        self.clock = clock
        self.dialogs: dict[str, HireDialog] = {}

    def _get(self, candidate_id: str) -> Candidate:
        candidate = self.store.get_candidate(candidate_id)
        if candidate is None:
            raise DanglingReference("candidate", candidate_id)
        return candidate

    def add(self, requisition_id: str, name: str, actor: Actor, **details) -> Candidate:
        """Create a candidate in `applied` at the end of the column."""
        if self.store.get_requisition(requisition_id) is None:
            raise DanglingReference("requisition", requisition_id)
        if not name or not name.strip():
            raise ValidationError("name", "required")
        rating = details.get("rating")
        if rating is not None and not 0 <= rating <= 5:
            raise ValidationError("rating", "must be between 0 and 5")

        column = [c for c in self.store.load_candidates(requisition_id) if c.stage == CandidateStage.APPLIED]
        candidate = Candidate(
            id=self.store.next_id("candidates"),
            requisition_id=requisition_id,
            name=name.strip(),
            position=len(column),
            created_at=self.clock(),
            **details,
        )
        self.store.save_candidate(candidate)
        self.activity.record(requisition_id, actor, "candidate_added",
                             {"name": candidate.name}, candidate_id=candidate.id)
        return candidate

    def move(self, candidate_id: str, to_stage: CandidateStage, position: int, actor: Actor) -> MoveResult:
        """Move a candidate. A move into `hired` only opens the hire dialog."""
        candidate = self._get(candidate_id)

        if to_stage == CandidateStage.HIRED and candidate.stage != CandidateStage.HIRED:
            self.dialogs[candidate.id] = begin(candidate, position)
            logger.info(f"[HIRE] {candidate.id}: confirmation requested")
            return MoveResult(accepted=False, gate_opened=True)

        if to_stage == candidate.stage:
            updated = replace(candidate, position=position)
        else:
            fsm = CandidateFSM(candidate)
            fsm.move(to_stage)
            updated = replace(fsm.candidate, position=position)

        self.store.save_candidate(updated)
        if to_stage != candidate.stage:
            self.activity.record(candidate.requisition_id, actor, "candidate_moved", {
                "from_stage": candidate.stage.value,
                "to_stage": to_stage.value,
            }, candidate_id=candidate.id)
        return MoveResult(accepted=True)

    def dialog(self, candidate_id: str) -> HireDialog:
        return self.dialogs.get(candidate_id, HireDialog())

    def confirm_hire(self, candidate_id: str, confirmed: bool, actor: Actor) -> DialogPhase:
        """Answer the open hire dialog.

        Raises:
            GuardViolation: No dialog awaiting an answer for this candidate
            DanglingReference: Candidate vanished while the dialog was open
            PersistenceFailure: Hire write failed (dialog stays on the question)
        """
        dialog = self.dialog(candidate_id)
        if dialog.phase != DialogPhase.QUESTION:
            raise GuardViolation(
                entity_id=candidate_id,
                from_stage=dialog.from_stage.value if dialog.from_stage else "",
                to_stage=CandidateStage.HIRED.value,
                reason="no hire confirmation is pending",
                code="no_dialog",
            )

        if not confirmed:
            self.dialogs[candidate_id] = answer_no(dialog)
            logger.info(f"[HIRE] {candidate_id}: blocked, intake form not completed")
            return DialogPhase.BLOCKED

        candidate = self._get(candidate_id)
        fsm = CandidateFSM(candidate)
        fsm.hire(confirmed=True)
        hired = replace(fsm.candidate, position=dialog.position)
        self.store.save_candidate(hired)

        self.dialogs[candidate_id] = answer_yes(dialog)
        self.activity.record(candidate.requisition_id, actor, "candidate_hired", {
            "from_stage": candidate.stage.value,
        }, candidate_id=candidate.id)
        return DialogPhase.SUCCESS

    def close_dialog(self, candidate_id: str) -> None:
        """Close the dialog from any phase. Never changes the candidate."""
        dialog = self.dialogs.pop(candidate_id, None)
        if dialog is not None:
            logger.debug(f"[HIRE] {candidate_id}: dialog closed from {dialog.phase.value}")

    def delete(self, candidate_id: str, actor: Actor) -> None:
        candidate = self._get(candidate_id)
        self.store.delete_candidate(candidate_id)
        self.dialogs.pop(candidate_id, None)
        self.activity.record(candidate.requisition_id, actor, "candidate_deleted",
                             {"name": candidate.name}, candidate_id=candidate_id)

    def counts(self, requisition_id: str) -> dict[str, int]:
        """Candidates per stage, every stage present."""
        tally = Counter(c.stage.value for c in self.store.load_candidates(requisition_id))
        return {stage.value: tally.get(stage.value, 0) for stage in CandidateStage}
