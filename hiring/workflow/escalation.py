"""Single-flight escalation queue.

At most one overdue requisition is surfaced at a time; the rest wait in
FIFO order and are only counted. The queue is a plain value object holding
requisition ids, so it can be persisted between CLI runs and tested in
isolation.

Usage:
    queue = EscalationQueue()
    queue.offer(["REQ-0003", "REQ-0007"])
    queue.current()        # "REQ-0003"
    queue.pending_count()  # 1
    queue.dismiss()        # current becomes "REQ-0007"
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass
class EscalationQueue:
    current_id: Optional[str] = None
    pending: list[str] = field(default_factory=list)

    def current(self) -> Optional[str]:
        return self.current_id

    def pending_count(self) -> int:
        """Queued items not currently shown."""
        return len(self.pending)

    def __contains__(self, requisition_id: str) -> bool:
        return requisition_id == self.current_id or requisition_id in self.pending

    def __len__(self) -> int:
        return len(self.pending) + (1 if self.current_id else 0)

    def offer(self, requisition_ids: Iterable[str]) -> list[str]:
        """Enqueue ids not already queued. Returns the ids actually added."""
        added = []
        for rid in requisition_ids:
            if rid in self:
                continue
            self.pending.append(rid)
            added.append(rid)
        if added:
            logger.info(f"[ESCALATION] queued {', '.join(added)}")
        self._promote()
        return added

    def dismiss(self) -> Optional[str]:
        """Drop the current item and surface the next one.

        The dismissed requisition stays delayed; it is simply no longer shown.
        """
        dismissed = self.current_id
        self.current_id = None
        self._promote()
        if dismissed:
            logger.info(f"[ESCALATION] dismissed {dismissed}, next: {self.current_id or 'none'}")
        return dismissed

    def resolve(self, requisition_id: str) -> bool:
        """Remove a requisition (justified or archived). Returns True if it was queued."""
        if requisition_id == self.current_id:
            self.current_id = None
            self._promote()
            return True
        if requisition_id in self.pending:
            self.pending.remove(requisition_id)
            return True
        return False

    def retain(self, requisition_ids: Iterable[str]) -> None:
        """Drop queued ids that are no longer in the given set."""
        keep = set(requisition_ids)
        self.pending = [rid for rid in self.pending if rid in keep]
        if self.current_id is not None and self.current_id not in keep:
            self.current_id = None
        self._promote()

    def _promote(self) -> None:
        if self.current_id is None and self.pending:
            self.current_id = self.pending.pop(0)

    def to_record(self) -> dict:
        return {"current": self.current_id, "pending": list(self.pending)}

    @classmethod
    def from_record(cls, data: dict) -> "EscalationQueue":
        queue = cls(current_id=data.get("current"), pending=list(data.get("pending", [])))
        queue._promote()
        return queue
