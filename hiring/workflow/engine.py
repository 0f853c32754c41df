"""Pipeline engine: the single entry point for every workflow intent.

Each intent is processed to completion (validate -> write -> record) before
returning. In-memory state such as the escalation queue is only replaced
after the corresponding write succeeded.

Usage:
    engine = PipelineEngine(JsonStore(data_dir), config=load_config(data_dir))
    req, task = engine.create_requisition("Backend engineer", due_date=date(2026, 11, 1))
    engine.attempt_move(req.id, RequisitionStage.REQUESTED, RequisitionStage.REGISTERED)  # rejected
    engine.on_task_completed(task.id, registration=form)                                  # registered
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Optional

from hiring.activity import ActivityRecorder
from hiring.lib.config import PipelineConfig
from hiring.models import (
    NON_ESCALATED_STAGES,
    Actor,
    Briefing,
    Candidate,
    CandidateStage,
    Justification,
    Requisition,
    RequisitionStage,
    Task,
    TaskKind,
    TaskStatus,
)
from hiring.notifications import notify_campaign_published, notify_escalation, notify_hired
from hiring.store import JsonStore
from hiring.workflow.candidates import CandidateSubPipeline, DialogPhase, HireDialog
from hiring.workflow.deadline import days_overdue, overdue_requisitions
from hiring.workflow.errors import (
    DanglingReference,
    GuardViolation,
    MoveResult,
    PersistenceFailure,
    ValidationError,
)
from hiring.workflow.escalation import EscalationQueue
from hiring.workflow.justification import JustificationWorkflow
from hiring.workflow.state_machine import (
    Board,
    apply_manual_move,
    board_columns,
    check_manual_move,
    flag_delayed,
)
from hiring.workflow.task_links import LinkOutcome, RegistrationForm, TaskLinkResolver

logger = logging.getLogger(__name__)


class PipelineEngine:
    """Facade over the requisition, task, escalation and candidate workflows."""

    def __init__(
        self,
        store: JsonStore,
        activity: Optional[ActivityRecorder] = None,
        config: Optional[PipelineConfig] = None,
        actor_provider: Optional[Callable[[], Actor]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.config = config or PipelineConfig()
        self.clock = clock
        self.activity = activity or ActivityRecorder(store.data_dir, clock=clock)
        self._actor_provider = actor_provider or (lambda: self.config.actor)

        self.links = TaskLinkResolver(store, self.activity, self.config.platform_ids(), clock=clock)
        self.justifications = JustificationWorkflow(store, self.activity, clock=clock)
        self.candidates = CandidateSubPipeline(store, self.activity, clock=clock)
        self.queue = EscalationQueue.from_record(store.load_escalations())

    def current_actor(self) -> Actor:
        return self._actor_provider()

    def _require(self, requisition_id: str) -> Requisition:
        requisition = self.store.get_requisition(requisition_id)
        if requisition is None:
            raise DanglingReference("requisition", requisition_id)
        return requisition

    def get_requisition(self, requisition_id: str) -> Requisition:
        """Load a requisition, raising DanglingReference if it is gone."""
        return self._require(requisition_id)

    def _require_task(self, task_id: str) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise DanglingReference("task", task_id)
        return task

    # ------------------------------------------------------------------
    # Requisitions

    def create_requisition(
        self,
        title: str,
        due_date: Optional[date] = None,
        briefing: Optional[Briefing] = None,
        description: str = "",
    ) -> tuple[Requisition, Task]:
        """Create a requisition in `requested` with its register task."""
        if not title or not title.strip():
            raise ValidationError("title", "required")

        actor = self.current_actor()
        now = self.clock()
        requisition = Requisition(
            id=self.store.next_id("requisitions"),
            title=title.strip(),
            stage=RequisitionStage.REQUESTED,
            created_at=now,
            due_date=due_date,
            description=description,
            position=len([r for r in self.store.load_requisitions()
                          if r.stage == RequisitionStage.REQUESTED]),
        )
        self.store.save_requisition(requisition)

        try:
            if briefing is not None:
                self.store.save_briefing(replace(briefing, requisition_id=requisition.id))
            task = self.store.create_task(Task(
                id="",
                title=f"Register requisition: {requisition.title}",
                status=TaskStatus.TODO,
                kind=TaskKind.REGISTER_REQUISITION,
                requisition_id=requisition.id,
                due_date=due_date,
                created_by=actor.name or actor.id,
                created_at=now,
            ))
        except PersistenceFailure:
            self.store.delete_requisition(requisition.id)
            raise

        logger.info(f"[ENGINE] Created {requisition.id} '{requisition.title}' with {task.id}")
        self.activity.record(requisition.id, actor, "created", {
            "title": requisition.title,
            "due_date": due_date.isoformat() if due_date else None,
            "task_id": task.id,
        })
        return requisition, task

    def save_briefing(self, briefing: Briefing) -> Briefing:
        """Create or replace the briefing of an existing requisition."""
        self._require(briefing.requisition_id)
        if briefing.openings < 1:
            raise ValidationError("openings", "must be at least 1")
        self.store.save_briefing(briefing)
        self.activity.record(briefing.requisition_id, self.current_actor(), "briefing_updated", {
            "complete": briefing.is_complete(),
        })
        return briefing

    def attempt_move(
        self,
        requisition_id: str,
        from_stage: RequisitionStage,
        to_stage: RequisitionStage,
        position: int = 0,
    ) -> MoveResult:
        """Manual move. Guard violations are returned, never raised.

        Raises:
            DanglingReference: Requisition does not exist
            PersistenceFailure: Write failed (nothing changed)
        """
        requisition = self._require(requisition_id)

        violation = check_manual_move(requisition, from_stage, to_stage)
        if violation is not None:
            logger.info(f"[ENGINE] Rejected move {violation}")
            return MoveResult(accepted=False, reason=violation)

        updated = apply_manual_move(requisition, to_stage, position, self.clock())
        self.store.save_requisition(updated)

        if from_stage != to_stage:
            self.activity.record(requisition.id, self.current_actor(), "moved", {
                "from_stage": from_stage.value,
                "to_stage": to_stage.value,
            })
            if to_stage in NON_ESCALATED_STAGES:
                self._drop_escalation(requisition.id)
        return MoveResult(accepted=True)

    def archive(self, requisition_id: str, positions_filled: bool = False) -> Requisition:
        """Archive a requisition.

        `positions_filled` records the archive as a completed hire round and
        is only valid from in_selection.

        Raises:
            GuardViolation: Already archived, or positions_filled outside selection
        """
        requisition = self._require(requisition_id)
        if positions_filled and requisition.stage != RequisitionStage.IN_SELECTION:
            raise GuardViolation(
                entity_id=requisition.id,
                from_stage=requisition.stage.value,
                to_stage=RequisitionStage.ARCHIVED.value,
                reason="positions can only be filled from in_selection",
                code="not_in_selection",
            )

        result = self._move_or_raise(requisition, RequisitionStage.ARCHIVED)
        if positions_filled:
            self.activity.record(requisition.id, self.current_actor(), "positions_filled", {
                "hired": self.candidates.counts(requisition.id)[CandidateStage.HIRED.value],
            })
        return result

    def unarchive(self, requisition_id: str) -> Requisition:
        """Reopen an archived requisition into in_selection."""
        return self._move_or_raise(self._require(requisition_id), RequisitionStage.IN_SELECTION)

    def _move_or_raise(self, requisition: Requisition, to_stage: RequisitionStage) -> Requisition:
        result = self.attempt_move(requisition.id, requisition.stage, to_stage)
        if not result.accepted:
            raise result.reason
        return self._require(requisition.id)

    def delete_requisition(self, requisition_id: str) -> None:
        """Hard delete. Refused while open tasks still reference the requisition."""
        requisition = self._require(requisition_id)
        open_tasks = [
            t for t in self.store.load_tasks(requisition_id)
            if t.status != TaskStatus.DONE
        ]
        if open_tasks:
            raise GuardViolation(
                entity_id=requisition.id,
                from_stage=requisition.stage.value,
                to_stage="deleted",
                reason=f"referenced by open tasks: {', '.join(t.id for t in open_tasks)}",
                code="referenced",
            )
        self.store.delete_requisition(requisition_id)
        self._drop_escalation(requisition_id)
        logger.info(f"[ENGINE] Deleted {requisition_id}")

    def board_columns(self) -> Board:
        return board_columns(
            self.store.load_requisitions(),
            self.store.load_justifications(),
            self.clock(),
        )

    # ------------------------------------------------------------------
    # Tasks

    def create_task(
        self,
        title: str,
        requisition_id: Optional[str] = None,
        kind: TaskKind = TaskKind.MANUAL,
        **details,
    ) -> Task:
        if not title or not title.strip():
            raise ValidationError("title", "required")
        if requisition_id is not None:
            self._require(requisition_id)
        actor = self.current_actor()
        return self.store.create_task(Task(
            id="",
            title=title.strip(),
            status=TaskStatus.TODO,
            kind=kind,
            requisition_id=requisition_id,
            created_by=actor.name or actor.id,
            created_at=self.clock(),
            **details,
        ))

    def move_task(
        self,
        task_id: str,
        status: TaskStatus,
        registration: Optional[RegistrationForm] = None,
    ) -> LinkOutcome:
        """Change a task's status. Moving to done fires its requisition link."""
        task = self._require_task(task_id)

        if status == TaskStatus.DONE:
            outcome = self.links.complete(task, self.current_actor(), registration)
            if outcome.requisition_effect_applied and outcome.requisition is not None:
                self._after_link(outcome)
            return outcome

        if task.status == status:
            return LinkOutcome(task=task)
        updated = replace(task, status=status)
        self.store.save_task(updated)
        return LinkOutcome(task=updated)

    def on_task_completed(
        self,
        task_id: str,
        registration: Optional[RegistrationForm] = None,
    ) -> LinkOutcome:
        return self.move_task(task_id, TaskStatus.DONE, registration)

    def _after_link(self, outcome: LinkOutcome) -> None:
        requisition = outcome.requisition
        if requisition.stage == RequisitionStage.IN_SELECTION:
            self._drop_escalation(requisition.id)
            if self.config.notifications:
                notify_campaign_published(requisition.id, requisition.title)

    def archive_task(self, task_id: str) -> Task:
        task = self._require_task(task_id)
        if task.archived:
            return task
        updated = replace(task, archived=True, archived_at=self.clock())
        self.store.save_task(updated)
        return updated

    def archive_done_tasks(self) -> int:
        """Archive every done task. Returns the number archived."""
        done = [t for t in self.store.load_tasks() if t.status == TaskStatus.DONE]
        for task in done:
            self.archive_task(task.id)
        return len(done)

    # ------------------------------------------------------------------
    # Escalation

    def _save_queue(self, queue: EscalationQueue) -> None:
        self.store.save_escalations(queue.to_record())
        self.queue = queue

    def _drop_escalation(self, requisition_id: str) -> None:
        if requisition_id not in self.queue:
            return
        queue = EscalationQueue.from_record(self.queue.to_record())
        queue.resolve(requisition_id)
        self._save_queue(queue)

    def scan_overdue(self) -> list[Requisition]:
        """Flag newly overdue requisitions as delayed and queue them.

        Returns the requisitions flagged by this scan.
        """
        now = self.clock()
        actor = self.current_actor()
        requisitions = self.store.load_requisitions()

        queue = EscalationQueue.from_record(self.queue.to_record())
        queue.retain(r.id for r in requisitions if r.delayed and r.stage not in NON_ESCALATED_STAGES)
        previous_current = queue.current()

        overdue = overdue_requisitions(
            requisitions,
            now,
            self.store.load_justifications(),
            self.config.justification_grace_hours,
        )

        flagged = []
        try:
            for requisition in overdue:
                delayed = flag_delayed(requisition, now)
                self.store.save_requisition(delayed)
                flagged.append(delayed)
                self.activity.record(requisition.id, actor, "delayed", {
                    "stage": requisition.stage.value,
                    "due_date": requisition.due_date.isoformat(),
                    "days_overdue": days_overdue(requisition.due_date, now),
                })
        finally:
            queue.offer(r.id for r in flagged)
            self._save_queue(queue)

        if flagged:
            logger.info(f"[ENGINE] Scan flagged {len(flagged)} overdue requisition(s)")
        if queue.current() != previous_current:
            self._notify_current()
        return flagged

    def current_escalation(self) -> Optional[Requisition]:
        """The one escalation shown now, or None."""
        while self.queue.current() is not None:
            requisition = self.store.get_requisition(self.queue.current())
            if requisition is not None and requisition.delayed and requisition.stage not in NON_ESCALATED_STAGES:
                return requisition
            # Justified, deleted or moved out of the overdue stages elsewhere
            self._drop_escalation(self.queue.current())
        return None

    def pending_escalation_count(self) -> int:
        return self.queue.pending_count()

    def dismiss_escalation(self) -> Optional[Requisition]:
        """Hide the current escalation; the requisition stays delayed."""
        current = self.current_escalation()
        if current is None:
            return None
        queue = EscalationQueue.from_record(self.queue.to_record())
        queue.dismiss()
        self._save_queue(queue)
        self.activity.record(current.id, self.current_actor(), "escalation_dismissed", {
            "pending": queue.pending_count(),
        })
        self._notify_current()
        return current

    def submit_justification(self, requisition_id: str, reason: Optional[str], new_due_date) -> Justification:
        """Justify a delay: new deadline, delayed flag cleared, escalation resolved."""
        _, justification = self.justifications.submit(
            requisition_id, reason, new_due_date, self.current_actor(),
        )
        self._drop_escalation(requisition_id)
        return justification

    def _notify_current(self) -> None:
        if not self.config.notifications:
            return
        role = self.current_actor().role
        if role and role not in self.config.escalation_roles:
            return
        current = self.current_escalation()
        if current is None:
            return
        notify_escalation(
            current.id,
            current.title,
            days_overdue(current.due_date, self.clock()),
            self.queue.pending_count(),
        )

    # ------------------------------------------------------------------
    # Candidates

    def add_candidate(self, requisition_id: str, name: str, **details) -> Candidate:
        return self.candidates.add(requisition_id, name, self.current_actor(), **details)

    def move_candidate(
        self,
        candidate_id: str,
        to_stage: CandidateStage,
        position: int = 0,
    ) -> MoveResult:
        return self.candidates.move(candidate_id, to_stage, position, self.current_actor())

    def hire_dialog(self, candidate_id: str) -> HireDialog:
        return self.candidates.dialog(candidate_id)

    def confirm_hire(self, candidate_id: str, confirmed: bool) -> DialogPhase:
        phase = self.candidates.confirm_hire(candidate_id, confirmed, self.current_actor())
        if phase == DialogPhase.SUCCESS and self.config.notifications:
            candidate = self.store.get_candidate(candidate_id)
            requisition = self.store.get_requisition(candidate.requisition_id)
            notify_hired(candidate.name, requisition.title if requisition else candidate.requisition_id)
        return phase

    def close_hire_dialog(self, candidate_id: str) -> None:
        self.candidates.close_dialog(candidate_id)

    def delete_candidate(self, candidate_id: str) -> None:
        self.candidates.delete(candidate_id, self.current_actor())

    def candidate_counts(self, requisition_id: str) -> dict[str, int]:
        self._require(requisition_id)
        return self.candidates.counts(requisition_id)

