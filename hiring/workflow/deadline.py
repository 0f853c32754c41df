"""Deadline evaluation for requisitions.

Pure functions: no clock access. Callers pass `now` explicitly.
"""

import math
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from hiring.models import NON_ESCALATED_STAGES, Justification, Requisition

SECONDS_PER_DAY = 86400


def _as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def is_past_due(due_date: Optional[date], now: datetime) -> bool:
    """True if the due date is strictly before today."""
    if due_date is None:
        return False
    return due_date < now.date()


def days_overdue(due_date: Optional[date], now: datetime) -> int:
    """Whole days elapsed since the due date, clamped at zero."""
    if due_date is None:
        return 0
    elapsed = (now - _as_datetime(due_date)).total_seconds()
    days = math.floor(elapsed / SECONDS_PER_DAY)
    return max(days, 0)


def is_overdue(requisition: Requisition, now: datetime) -> bool:
    """Overdue = past due, still in an escalated stage, not already delayed."""
    if requisition.stage in NON_ESCALATED_STAGES:
        return False
    if requisition.delayed:
        return False
    return is_past_due(requisition.due_date, now)


def recently_justified(
    requisition_id: str,
    justifications: Iterable[Justification],
    now: datetime,
    grace_hours: int,
) -> bool:
    """True if a justification for the requisition falls inside the grace window."""
    window = timedelta(hours=grace_hours)
    return any(
        j.requisition_id == requisition_id and now - j.created_at < window
        for j in justifications
    )


def overdue_requisitions(
    requisitions: Iterable[Requisition],
    now: datetime,
    justifications: Iterable[Justification] = (),
    grace_hours: int = 0,
) -> list[Requisition]:
    """Requisitions needing escalation, oldest due date first."""
    justifications = list(justifications)
    overdue = [
        r for r in requisitions
        if is_overdue(r, now)
        and not (grace_hours and recently_justified(r.id, justifications, now, grace_hours))
    ]
    return sorted(overdue, key=lambda r: (r.due_date, r.id))
