"""Requisition stage machine: guards for manual moves, automatic moves,
and the delayed overlay.

All functions here are pure with respect to persistence: they take the
current requisition and return an updated copy, or raise. The engine decides
when (and whether) the copy is written.

Usage:
    from hiring.workflow.state_machine import check_manual_move, apply_manual_move

    violation = check_manual_move(req, RequisitionStage.REQUESTED, RequisitionStage.REGISTERED)
    updated = apply_manual_move(req, RequisitionStage.ARCHIVED, position=0, now=now)
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Optional

from transitions import MachineError

from hiring.models import NON_ESCALATED_STAGES, PROTECTED_STAGES, Justification, Requisition, RequisitionStage
from hiring.workflow.deadline import is_past_due
from hiring.workflow.errors import GuardViolation
from hiring.workflow.fsm import AUTOMATIC_TRIGGER_FOR, MANUAL_TRIGGER_FOR, RequisitionFSM

logger = logging.getLogger(__name__)


def parse_stage(stage_str: str | None) -> RequisitionStage | None:
    """Parse a stage string into RequisitionStage enum.

    Returns None if stage is unknown.
    """
    if stage_str is None:
        return None
    for stage in RequisitionStage:
        if stage.value == stage_str:
            return stage
    return None


def _violation(requisition: Requisition, from_stage, to_stage, reason: str, code: str) -> GuardViolation:
    return GuardViolation(
        entity_id=requisition.id,
        from_stage=from_stage.value,
        to_stage=to_stage.value,
        reason=reason,
        code=code,
    )


def check_manual_move(
    requisition: Requisition,
    from_stage: RequisitionStage,
    to_stage: RequisitionStage,
) -> Optional[GuardViolation]:
    """Return the GuardViolation for a manual move, or None if it is allowed."""
    if from_stage != requisition.stage:
        return _violation(
            requisition, from_stage, to_stage,
            f"requisition is in {requisition.stage.value}, not {from_stage.value}",
            "stale",
        )

    # Reordering within a column is always allowed
    if from_stage == to_stage:
        return None

    if from_stage in PROTECTED_STAGES and to_stage in PROTECTED_STAGES:
        return _violation(
            requisition, from_stage, to_stage,
            "automatic stage: complete the requisition tasks to advance it",
            "protected",
        )

    if to_stage == RequisitionStage.REGISTERED:
        return _violation(
            requisition, from_stage, to_stage,
            "complete the register-requisition task to register it",
            "task_only",
        )

    if to_stage == RequisitionStage.ANNOUNCED:
        return _violation(
            requisition, from_stage, to_stage,
            "announcements are published through the publish-campaign task",
            "task_only",
        )

    if to_stage in PROTECTED_STAGES:
        return _violation(
            requisition, from_stage, to_stage,
            "requisitions only enter this stage through the task flow",
            "task_only",
        )

    if (from_stage.value, to_stage.value) not in MANUAL_TRIGGER_FOR:
        return _violation(
            requisition, from_stage, to_stage,
            "no manual path between these stages",
            "no_path",
        )

    return None


def apply_manual_move(
    requisition: Requisition,
    to_stage: RequisitionStage,
    position: int,
    now: datetime,
) -> Requisition:
    """Validate and apply a manual move, returning the updated copy.

    Raises:
        GuardViolation: If the move is not allowed
    """
    violation = check_manual_move(requisition, requisition.stage, to_stage)
    if violation is not None:
        raise violation

    if requisition.stage == to_stage:
        logger.debug(f"[STATE] {requisition.id}: reorder in {to_stage.value} to position {position}")
        return replace(requisition, position=position)

    trigger = MANUAL_TRIGGER_FOR[(requisition.stage.value, to_stage.value)]
    updated = _fire(requisition, trigger, to_stage)
    return _stamp_archive(updated, now, position)


def apply_automatic_move(requisition: Requisition, to_stage: RequisitionStage) -> Requisition:
    """Apply a task-triggered move. Bypasses the protected-set guard.

    Moving to the stage the requisition is already in is a no-op.

    Raises:
        GuardViolation: If the requisition is archived or no automatic path exists
    """
    if requisition.stage == to_stage:
        logger.debug(f"[STATE] {requisition.id}: already in {to_stage.value}, no-op")
        return requisition

    trigger = AUTOMATIC_TRIGGER_FOR.get((requisition.stage.value, to_stage.value))
    if trigger is None:
        code = "archived" if requisition.stage == RequisitionStage.ARCHIVED else "no_path"
        raise _violation(
            requisition, requisition.stage, to_stage,
            f"no automatic path from {requisition.stage.value}",
            code,
        )
    return _fire(requisition, trigger, to_stage)


def _fire(requisition: Requisition, trigger: str, to_stage: RequisitionStage) -> Requisition:
    fsm = RequisitionFSM(requisition)
    try:
        getattr(fsm, trigger)()
    except MachineError as e:
        raise _violation(requisition, requisition.stage, to_stage, str(e), "no_path") from e
    return fsm.requisition


def _stamp_archive(requisition: Requisition, now: datetime, position: int) -> Requisition:
    """Keep archived_at consistent with the archived stage."""
    if requisition.stage == RequisitionStage.ARCHIVED:
        return replace(requisition, archived_at=now, position=position)
    return replace(requisition, archived_at=None, position=position)


def flag_delayed(requisition: Requisition, now: datetime) -> Requisition:
    """Set the delayed overlay. Stage is left untouched.

    Raises:
        GuardViolation: If already delayed or archived
    """
    if requisition.stage == RequisitionStage.ARCHIVED:
        raise _violation(requisition, requisition.stage, requisition.stage,
                         "archived requisitions are never delayed", "archived")
    if requisition.delayed:
        raise _violation(requisition, requisition.stage, requisition.stage,
                         "already awaiting justification", "already_delayed")

    logger.info(f"[STATE] {requisition.id}: delayed (stage {requisition.stage.value} kept)")
    return replace(requisition, delayed=True, delayed_at=now)


def clear_delayed(requisition: Requisition) -> Requisition:
    """Clear the delayed overlay, returning to the remembered stage."""
    if not requisition.delayed:
        return requisition
    logger.info(f"[STATE] {requisition.id}: delay cleared, back to {requisition.stage.value}")
    return replace(requisition, delayed=False, delayed_at=None)


@dataclass
class Board:
    """Kanban view of requisitions.

    Delayed and freshly justified requisitions are shown in the virtual
    justification column instead of their stage column.
    """
    columns: dict[RequisitionStage, list[Requisition]]
    awaiting: list[Requisition] = field(default_factory=list)
    justified: list[Requisition] = field(default_factory=list)


def is_justified(
    requisition: Requisition,
    justifications: Iterable[Justification],
    now: datetime,
) -> bool:
    """Latest justification re-anchored the current due date, which has not lapsed."""
    if requisition.delayed or requisition.stage in NON_ESCALATED_STAGES:
        return False
    own = [j for j in justifications if j.requisition_id == requisition.id]
    if not own:
        return False
    latest = max(own, key=lambda j: j.created_at)
    return latest.new_due_date == requisition.due_date and not is_past_due(requisition.due_date, now)


def board_columns(
    requisitions: Iterable[Requisition],
    justifications: Iterable[Justification],
    now: datetime,
) -> Board:
    justifications = list(justifications)
    board = Board(columns={stage: [] for stage in RequisitionStage})

    for req in sorted(requisitions, key=lambda r: (r.position, r.id)):
        if req.stage == RequisitionStage.ARCHIVED:
            board.columns[req.stage].append(req)
        elif req.delayed:
            board.awaiting.append(req)
        elif is_justified(req, justifications, now):
            board.justified.append(req)
        else:
            board.columns[req.stage].append(req)
    return board
