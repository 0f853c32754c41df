"""
Error taxonomy for the workflow engine.

Every failure is scoped to a single intent. Guard violations and validation
errors are user-correctable; dangling references and persistence failures
are surfaced to the caller, which decides whether to retry.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class GuardViolation(Exception):
    """An illegal manual move was attempted."""
    entity_id: str
    from_stage: str
    to_stage: str
    reason: str
    code: str = "guard"

    def __str__(self):
        return f"[{self.entity_id}] {self.from_stage} -> {self.to_stage}: {self.reason}"


@dataclass
class ValidationError(Exception):
    """An input field is missing or invalid."""
    field: str
    message: str

    def __str__(self):
        return f"{self.field}: {self.message}"


@dataclass
class DanglingReference(Exception):
    """A Task, Requisition or Candidate vanished mid-flow."""
    kind: str
    entity_id: str
    referenced_by: Optional[str] = None

    def __str__(self):
        suffix = f" (referenced by {self.referenced_by})" if self.referenced_by else ""
        return f"{self.kind} '{self.entity_id}' not found{suffix}"


@dataclass
class PersistenceFailure(Exception):
    """A write collaborator failed. The triggering intent was rolled back."""
    operation: str
    message: str

    def __str__(self):
        return f"[{self.operation}] {self.message}"


@dataclass
class MoveResult:
    """Outcome of attempt_move(). Rejections carry the GuardViolation."""
    accepted: bool
    reason: Optional[GuardViolation] = None
    gate_opened: bool = False   # Move intercepted by the hire confirmation gate
