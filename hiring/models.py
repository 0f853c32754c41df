"""
Data models for the hiring pipeline.

Records are plain dataclasses so they serialize with asdict() and can be
validated against the JSON schemas in hiring/schemas before every write.
Dates are stored as ISO strings on disk and as date/datetime objects here.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class RequisitionStage(Enum):
    """Lifecycle stages of a Requisition (happy path order)."""

    REQUESTED = "requested"
    REGISTERED = "registered"
    ANNOUNCED = "announced"
    IN_SELECTION = "in_selection"
    ARCHIVED = "archived"


# Stages that can only be entered through task-triggered transitions
PROTECTED_STAGES = frozenset({
    RequisitionStage.REQUESTED,
    RequisitionStage.REGISTERED,
    RequisitionStage.ANNOUNCED,
})

# Stages never escalated for a missed deadline
NON_ESCALATED_STAGES = frozenset({
    RequisitionStage.IN_SELECTION,
    RequisitionStage.ARCHIVED,
})


class TaskStatus(Enum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


class TaskKind(Enum):
    """Closed set of task kinds. Only linked kinds affect a Requisition."""

    MANUAL = "manual"
    REGISTER_REQUISITION = "register-requisition"
    PUBLISH_CAMPAIGN = "publish-campaign"


class CandidateStage(Enum):
    """Columns of the per-requisition candidate board."""

    APPLIED = "applied"
    APPROACHED = "approached"
    DISCARDED = "discarded"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_DONE = "interview_done"
    VIABLE = "viable"
    NOT_VIABLE = "not_viable"
    SELECTED = "selected"
    NEGOTIATING = "negotiating"
    FUTURE = "future"
    HIRED = "hired"


@dataclass(frozen=True)
class Actor:
    """Who performed an action. Used only to stamp records."""
    id: str
    name: str
    role: str = ""


@dataclass
class Requisition:
    """A hiring request moving through recruitment stages.

    `delayed` is an overlay flag tracked alongside `stage`: flagging a
    requisition as delayed never changes its stage, so the column of origin
    is always recoverable.
    """
    id: str
    title: str
    stage: RequisitionStage
    created_at: datetime
    due_date: Optional[date] = None
    archived_at: Optional[datetime] = None
    delayed: bool = False
    delayed_at: Optional[datetime] = None
    position: int = 0
    description: str = ""


@dataclass
class Briefing:
    """Free-form hiring brief attached 1:1 to a Requisition."""
    requisition_id: str
    role_title: str
    openings: int
    deadline: Optional[date]
    requested_by: str = ""
    area: str = ""
    work_model: str = ""             # on-site, hybrid, remote
    location: str = ""
    contract_type: str = ""
    salary_range: str = ""
    objective: str = ""
    responsibilities: str = ""
    required_skills: str = ""
    desired_skills: str = ""
    required_tools: str = ""
    seniority: str = ""
    notes: str = ""

    def missing_fields(self) -> list[str]:
        """Return names of required fields that are empty or invalid."""
        missing = []
        if not self.role_title.strip():
            missing.append("role_title")
        if self.openings < 1:
            missing.append("openings")
        if self.deadline is None:
            missing.append("deadline")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()


@dataclass
class PlatformAllocation:
    """Budget and plan for advertising a Requisition on one platform."""
    requisition_id: str
    platform: str
    description: str
    budget: Optional[float] = None
    expected_resumes: Optional[int] = None
    notes: str = ""


@dataclass
class Task:
    """A checklist item, optionally linked to a Requisition."""
    id: str
    title: str
    status: TaskStatus
    kind: TaskKind = TaskKind.MANUAL
    requisition_id: Optional[str] = None
    description: str = ""
    priority: str = "medium"
    due_date: Optional[date] = None
    assignee: str = ""
    created_by: str = ""
    position: int = 0
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None   # Set on first completion only
    archived: bool = False
    archived_at: Optional[datetime] = None


@dataclass
class Justification:
    """Reason + new deadline recorded for an overdue Requisition."""
    requisition_id: str
    reason: str
    new_due_date: date
    author: str
    created_at: datetime
    days_overdue: int = 0


@dataclass
class Candidate:
    """An applicant tracked on a Requisition's candidate board."""
    id: str
    requisition_id: str
    name: str
    stage: CandidateStage = CandidateStage.APPLIED
    email: str = ""
    phone: str = ""
    linkedin: str = ""
    resume_url: str = ""
    notes: str = ""
    rating: Optional[int] = None
    interview_round: int = 0
    position: int = 0
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ActivityEntry:
    """Immutable fact appended to the activity log."""
    requisition_id: str
    actor: str
    action: str
    timestamp: datetime
    details: dict = field(default_factory=dict)
    candidate_id: Optional[str] = None


def parse_date(value) -> Optional[date]:
    """Parse an ISO date string (or pass through a date). None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO datetime string (or pass through a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
