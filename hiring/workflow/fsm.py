"""Requisition and candidate state machines using the transitions library.

Triggers are split by who may fire them:
- automatic triggers are fired by task completion (TaskLinkResolver)
- manual triggers are fired by a user dragging a card

`announced` is only ever a source state today: no task link fires
`announce`, but requisitions already in that column must still be able to
leave it.

Usage:
    from hiring.workflow.fsm import RequisitionFSM

    fsm = RequisitionFSM(requisition)
    fsm.register()        # requested -> registered
    fsm.open_selection()  # registered -> in_selection
    fsm.requisition.stage
"""

import logging
from dataclasses import replace
from typing import Callable

from transitions import Machine

from hiring.models import Candidate, CandidateStage, Requisition, RequisitionStage

logger = logging.getLogger(__name__)


STATES = [s.value for s in RequisitionStage]

# Transitions defined as (trigger, source, dest)
# Each trigger becomes a method on the FSM
AUTOMATIC_TRANSITIONS = [
    # Registration task completed (briefing + platforms captured)
    {"trigger": "register", "source": ["requested", "announced", "in_selection"], "dest": "registered"},

    # Announcement published (not fired by any task link)
    {"trigger": "announce", "source": ["requested", "registered"], "dest": "announced"},

    # Campaign published, selection starts
    {"trigger": "open_selection", "source": ["requested", "registered", "announced"], "dest": "in_selection"},
]

MANUAL_TRANSITIONS = [
    # Leave the protected track directly
    {"trigger": "move_to_selection", "source": ["requested", "registered", "announced"], "dest": "in_selection"},

    # Archive from any open stage
    {"trigger": "archive", "source": ["requested", "registered", "announced", "in_selection"], "dest": "archived"},

    # Reopen an archived requisition
    {"trigger": "unarchive", "source": "archived", "dest": "in_selection"},
]

TRANSITIONS = AUTOMATIC_TRANSITIONS + MANUAL_TRANSITIONS


def _build_trigger_lookup(transitions: list[dict]) -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name."""
    lookup: dict[tuple[str, str], str] = {}
    for t in transitions:
        sources = t["source"] if isinstance(t["source"], list) else [t["source"]]
        for source in sources:
            key = (source, t["dest"])
            if key not in lookup:  # First trigger wins for a given source->dest
                lookup[key] = t["trigger"]
    return lookup


AUTOMATIC_TRIGGER_FOR = _build_trigger_lookup(AUTOMATIC_TRANSITIONS)
MANUAL_TRIGGER_FOR = _build_trigger_lookup(MANUAL_TRANSITIONS)


class RequisitionFSM:
    """State machine over a working copy of a Requisition.

    The wrapped requisition is never mutated; every transition replaces
    `self.requisition` with an updated copy, so a caller can discard the FSM
    if persisting the result fails.
    """

    def __init__(
        self,
        requisition: Requisition,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """Initialize FSM for a requisition.

        Args:
            requisition: Current persisted requisition
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.requisition = requisition
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=requisition.stage.value,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        """Callback after any state transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[FSM] {self.requisition.id}: {from_state} -> {to_state} ({trigger})")

        self.requisition = replace(self.requisition, stage=RequisitionStage(to_state))

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)

    def get_available_triggers(self) -> list[str]:
        """Get list of triggers available in current state."""
        return self.machine.get_triggers(self.state)


CANDIDATE_STATES = [s.value for s in CandidateStage]
_OPEN_CANDIDATE_STATES = [s for s in CANDIDATE_STATES if s != CandidateStage.HIRED.value]

CANDIDATE_TRANSITIONS = [
    # Free movement between all columns except hired, including out of hired
    *[{"trigger": f"to_{s}", "source": "*", "dest": s} for s in _OPEN_CANDIDATE_STATES],

    # Hiring requires an explicit confirmation from the hire gate
    {"trigger": "hire", "source": _OPEN_CANDIDATE_STATES, "dest": "hired", "conditions": "is_hire_confirmed"},
]


class CandidateFSM:
    """State machine over a working copy of a Candidate."""

    def __init__(self, candidate: Candidate):
        self.candidate = candidate

        self.machine = Machine(
            model=self,
            states=CANDIDATE_STATES,
            transitions=CANDIDATE_TRANSITIONS,
            initial=candidate.stage.value,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def is_hire_confirmed(self, event) -> bool:
        """Guard for `hire`: only an explicit confirmed=True passes."""
        return event.kwargs.get("confirmed") is True

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        logger.info(f"[FSM] {self.candidate.id}: {from_state} -> {to_state} ({event.event.name})")
        self.candidate = replace(self.candidate, stage=CandidateStage(to_state))

    def move(self, stage: CandidateStage) -> None:
        """Move to a non-hired column."""
        if stage == CandidateStage.HIRED:
            raise ValueError("hired is only reachable through hire(confirmed=True)")
        getattr(self, f"to_{stage.value}")()
