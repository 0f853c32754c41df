"""Task -> Requisition side effects.

A Task's kind is decoded through the closed LINKS table into at most one
Requisition effect. Completion is applied as one logical unit, in an order
that keeps the Task reversible until the Requisition update is confirmed:

    1. move the Requisition (plus registration data for register tasks)
    2. create the follow-up Task, if any
    3. mark the completed Task done

If step 2 or 3 fails, the earlier writes are compensated and the Task is
left exactly as it was.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from hiring.activity import ActivityRecorder
from hiring.models import (
    Actor,
    Briefing,
    PlatformAllocation,
    Requisition,
    RequisitionStage,
    Task,
    TaskKind,
    TaskStatus,
)
from hiring.store import JsonStore
from hiring.workflow.errors import DanglingReference, PersistenceFailure, ValidationError
from hiring.workflow.state_machine import apply_automatic_move

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskLink:
    """Requisition effect bound to a task kind."""
    target_stage: RequisitionStage
    action: str
    follow_up_kind: Optional[TaskKind] = None
    follow_up_title: str = ""          # Formatted with the requisition title
    requires_registration: bool = False


# Every TaskKind must appear here; None means "no requisition effect"
LINKS: dict[TaskKind, Optional[TaskLink]] = {
    TaskKind.MANUAL: None,
    TaskKind.REGISTER_REQUISITION: TaskLink(
        target_stage=RequisitionStage.REGISTERED,
        action="registered",
        follow_up_kind=TaskKind.PUBLISH_CAMPAIGN,
        follow_up_title="Publish campaign: {title}",
        requires_registration=True,
    ),
    TaskKind.PUBLISH_CAMPAIGN: TaskLink(
        target_stage=RequisitionStage.IN_SELECTION,
        action="campaign_published",
    ),
}


def _check_links_exhaustive() -> None:
    missing = set(TaskKind) - set(LINKS)
    if missing:
        raise RuntimeError(f"Task kinds without a link entry: {sorted(k.value for k in missing)}")


_check_links_exhaustive()


def link_for(kind: TaskKind) -> Optional[TaskLink]:
    return LINKS[kind]


@dataclass
class RegistrationForm:
    """Briefing and platform plan captured while completing a register task."""
    briefing: Optional[Briefing] = None
    platforms: list[PlatformAllocation] = field(default_factory=list)


@dataclass
class LinkOutcome:
    """Result of completing a task."""
    task: Task
    requisition_effect_applied: bool = False
    requisition: Optional[Requisition] = None
    follow_up: Optional[Task] = None


def validate_registration(
    requisition_id: str,
    form: Optional[RegistrationForm],
    stored_briefing: Optional[Briefing],
    platform_catalog: set[str],
) -> tuple[Briefing, list[PlatformAllocation]]:
    """Check a registration form, returning the briefing and allocations to persist.

    Raises:
        ValidationError: On an incomplete briefing or invalid allocations
    """
    form = form or RegistrationForm()

    briefing = form.briefing or stored_briefing
    if briefing is None:
        raise ValidationError("briefing", "a briefing is required to register the requisition")
    briefing = replace(briefing, requisition_id=requisition_id)
    missing = briefing.missing_fields()
    if missing:
        raise ValidationError(f"briefing.{missing[0]}", "required")

    if not form.platforms:
        raise ValidationError("platforms", "at least one platform allocation is required")

    allocations = []
    for i, alloc in enumerate(form.platforms):
        if alloc.platform not in platform_catalog:
            raise ValidationError(f"platforms[{i}].platform", f"unknown platform '{alloc.platform}'")
        if not alloc.description.strip():
            raise ValidationError(f"platforms[{i}].description", "required")
        if alloc.budget is not None and alloc.budget < 0:
            raise ValidationError(f"platforms[{i}].budget", "must not be negative")
        allocations.append(replace(alloc, requisition_id=requisition_id))

    return briefing, allocations


class TaskLinkResolver:
    """Applies the requisition effect of a completed task exactly once."""

    def __init__(
        self,
        store: JsonStore,
        activity: ActivityRecorder,
        platform_catalog: set[str],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.activity = activity
        self.platform_catalog = platform_catalog
        self.clock = clock

    def complete(
        self,
        task: Task,
        actor: Actor,
        registration: Optional[RegistrationForm] = None,
    ) -> LinkOutcome:
        """Mark a task done, applying its requisition effect on first completion.

        Raises:
            DanglingReference: Linked requisition no longer exists
            ValidationError: Registration data missing or invalid
            GuardViolation: Requisition is archived
            PersistenceFailure: A write failed (all earlier writes compensated)
        """
        now = self.clock()

        if task.status == TaskStatus.DONE:
            logger.debug(f"[LINK] {task.id}: already done, no-op")
            return LinkOutcome(task=task)

        done_task = replace(task, status=TaskStatus.DONE, completed_at=task.completed_at or now)

        link = link_for(task.kind)
        if link is None or task.requisition_id is None or task.completed_at is not None:
            if task.completed_at is not None and link is not None:
                logger.info(f"[LINK] {task.id}: completed before, effect not re-applied")
            self.store.save_task(done_task)
            return LinkOutcome(task=done_task)

        requisition = self.store.get_requisition(task.requisition_id)
        if requisition is None:
            raise DanglingReference("requisition", task.requisition_id, referenced_by=task.id)

        briefing, allocations = None, []
        if link.requires_registration:
            briefing, allocations = validate_registration(
                requisition.id,
                registration,
                self.store.get_briefing(requisition.id),
                self.platform_catalog,
            )

        updated = apply_automatic_move(requisition, link.target_stage)

        # Snapshots for compensation
        previous_briefing = self.store.get_briefing(requisition.id)
        previous_platforms = self.store.load_platforms(requisition.id)

        self.store.save_requisition(updated)
        follow_up = None
        try:
            if link.requires_registration:
                self.store.save_briefing(briefing)
                self.store.save_platforms(requisition.id, allocations)
            if link.follow_up_kind is not None:
                follow_up = self.store.create_task(Task(
                    id="",
                    title=link.follow_up_title.format(title=requisition.title),
                    status=TaskStatus.TODO,
                    kind=link.follow_up_kind,
                    requisition_id=requisition.id,
                    due_date=requisition.due_date,
                    created_by=actor.name or actor.id,
                    created_at=now,
                ))
            self.store.save_task(done_task)
        except PersistenceFailure as e:
            logger.warning(f"[LINK] {task.id}: completion failed, compensating: {e}")
            self._compensate(requisition, follow_up, previous_briefing, previous_platforms,
                             link.requires_registration)
            raise

        logger.info(f"[LINK] {task.id} ({task.kind.value}) -> {requisition.id} {updated.stage.value}")
        self.activity.record(requisition.id, actor, link.action, self._details(
            task, requisition, updated, allocations, follow_up,
        ))

        return LinkOutcome(
            task=done_task,
            requisition_effect_applied=True,
            requisition=updated,
            follow_up=follow_up,
        )

    def _details(self, task, before, after, allocations, follow_up) -> dict:
        details = {
            "task_id": task.id,
            "from_stage": before.stage.value,
            "to_stage": after.stage.value,
        }
        if allocations:
            details["platforms"] = [a.platform for a in allocations]
            details["total_budget"] = sum(a.budget or 0 for a in allocations)
        if follow_up is not None:
            details["follow_up_task_id"] = follow_up.id
        return details

    def _compensate(
        self,
        requisition: Requisition,
        follow_up: Optional[Task],
        previous_briefing: Optional[Briefing],
        previous_platforms: list[PlatformAllocation],
        restore_registration: bool,
    ) -> None:
        """Undo earlier writes of a failed completion. Errors here are logged."""
        try:
            if follow_up is not None:
                self.store.delete_task(follow_up.id)
            if restore_registration:
                if previous_briefing is None:
                    self.store.delete_briefing(requisition.id)
                else:
                    self.store.save_briefing(previous_briefing)
                if previous_platforms:
                    self.store.save_platforms(requisition.id, previous_platforms)
                else:
                    self.store.delete_platforms(requisition.id)
            self.store.save_requisition(requisition)
        except PersistenceFailure as e:
            logger.error(f"[LINK] Compensation failed for {requisition.id}: {e}")
