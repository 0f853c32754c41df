"""Justification of overdue requisitions.

A justification records why a requisition slipped and re-anchors its due
date. Submitting one is the only way out of the delayed overlay.
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Optional

from pydantic import BaseModel, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from hiring.activity import ActivityRecorder
from hiring.models import Actor, Justification, Requisition, RequisitionStage
from hiring.store import JsonStore
from hiring.workflow.deadline import days_overdue, is_past_due
from hiring.workflow.errors import DanglingReference, PersistenceFailure, ValidationError
from hiring.workflow.state_machine import clear_delayed

logger = logging.getLogger(__name__)


class JustificationInput(BaseModel):
    """Input schema for a justification submission.

    Validate with `context={"today": <date>}` to enforce the date floor.
    """
    requisition_id: str
    reason: str
    new_due_date: date

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reason is required")
        return value

    @field_validator("new_due_date")
    @classmethod
    def not_in_past(cls, value: date, info: ValidationInfo) -> date:
        today = (info.context or {}).get("today")
        if today is not None and value < today:
            raise ValueError("new due date must be today or later")
        return value


def parse_input(
    requisition_id: str,
    reason: Optional[str],
    new_due_date,
    today: date,
) -> JustificationInput:
    """Validate raw fields, converting the first failure to a field-level ValidationError."""
    try:
        return JustificationInput.model_validate(
            {"requisition_id": requisition_id, "reason": reason, "new_due_date": new_due_date},
            context={"today": today},
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else "(root)"
        message = first["msg"].removeprefix("Value error, ")
        raise ValidationError(field, message) from None


def latest_justification(justifications: list[Justification]) -> Optional[Justification]:
    """Only the latest justification is authoritative for display."""
    if not justifications:
        return None
    return max(justifications, key=lambda j: j.created_at)


class JustificationWorkflow:
    """Captures reason + new deadline and clears the delayed overlay."""

    def __init__(
        self,
        store: JsonStore,
        activity: ActivityRecorder,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.activity = activity
        self.clock = clock

    def submit(
        self,
        requisition_id: str,
        reason: Optional[str],
        new_due_date,
        actor: Actor,
    ) -> tuple[Requisition, Justification]:
        """Persist a justification and re-anchor the requisition.

        Raises:
            ValidationError: Empty reason, missing/past date, or requisition not overdue
            DanglingReference: Requisition does not exist
            PersistenceFailure: A write failed (requisition left untouched)
        """
        now = self.clock()
        data = parse_input(requisition_id, reason, new_due_date, now.date())

        requisition = self.store.get_requisition(requisition_id)
        if requisition is None:
            raise DanglingReference("requisition", requisition_id)
        if requisition.stage == RequisitionStage.ARCHIVED:
            raise ValidationError("requisition_id", "archived requisitions cannot be justified")
        if not (requisition.delayed or is_past_due(requisition.due_date, now)):
            raise ValidationError("requisition_id", "requisition is not overdue")

        justification = Justification(
            requisition_id=requisition.id,
            reason=data.reason,
            new_due_date=data.new_due_date,
            author=actor.name or actor.id,
            created_at=now,
            days_overdue=days_overdue(requisition.due_date, now),
        )
        updated = replace(clear_delayed(requisition), due_date=data.new_due_date)

        self.store.save_requisition(updated)
        try:
            self.store.add_justification(justification)
        except PersistenceFailure:
            self.store.save_requisition(requisition)
            raise

        logger.info(
            f"[JUSTIFY] {requisition.id}: due {requisition.due_date} -> {data.new_due_date} "
            f"({justification.days_overdue}d overdue)"
        )
        self.activity.record(requisition.id, actor, "justified_delay", {
            "reason": data.reason,
            "new_due_date": data.new_due_date.isoformat(),
            "days_overdue": justification.days_overdue,
            "previous_stage": requisition.stage.value,
            "previous_due_date": requisition.due_date.isoformat() if requisition.due_date else None,
        })
        return updated, justification
