"""
Append-only activity log.

Entries are written as one JSON object per line to activity.jsonl in the
data directory. Entries are never rewritten or deleted.

Recording is fire-and-forget: a failed write is logged and swallowed so it
never rolls back the transition that produced it.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from hiring.lib.validate import SchemaError, validate
from hiring.models import ActivityEntry, Actor, parse_datetime

logger = logging.getLogger(__name__)

ACTIVITY_FILE = "activity.jsonl"


def _to_record(entry: ActivityEntry) -> dict:
    return {
        "requisition_id": entry.requisition_id,
        "actor": entry.actor,
        "action": entry.action,
        "timestamp": entry.timestamp.isoformat(),
        "details": entry.details,
        "candidate_id": entry.candidate_id,
    }


def _from_record(data: dict) -> ActivityEntry:
    return ActivityEntry(
        requisition_id=data["requisition_id"],
        actor=data["actor"],
        action=data["action"],
        timestamp=parse_datetime(data["timestamp"]),
        details=data.get("details") or {},
        candidate_id=data.get("candidate_id"),
    )


class ActivityRecorder:
    """Records transitions and side effects for requisitions and candidates."""

    def __init__(self, data_dir: Path, clock: Callable[[], datetime] = datetime.now):
        self.path = Path(data_dir) / ACTIVITY_FILE
        self.clock = clock

    def record(
        self,
        requisition_id: str,
        actor: Actor,
        action: str,
        details: Optional[dict] = None,
        candidate_id: Optional[str] = None,
    ) -> Optional[ActivityEntry]:
        """Append an entry. Returns None if the write failed."""
        entry = ActivityEntry(
            requisition_id=requisition_id,
            actor=actor.name or actor.id,
            action=action,
            timestamp=self.clock(),
            details=dict(details or {}),
            candidate_id=candidate_id,
        )
        return entry if self.record_entry(entry) else None

    def record_entry(self, entry: ActivityEntry) -> bool:
        record = _to_record(entry)
        try:
            validate(record, "activity")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a") as f:
                f.write(json.dumps(record, default=str) + "\n")
        except (OSError, SchemaError, TypeError) as e:
            logger.warning(f"Failed to record activity '{entry.action}' for {entry.requisition_id}: {e}")
            return False
        return True

    def entries(
        self,
        requisition_id: Optional[str] = None,
        candidate_id: Optional[str] = None,
    ) -> list[ActivityEntry]:
        """Read entries in append order, optionally filtered."""
        if not self.path.exists():
            return []

        entries = []
        for lineno, line in enumerate(self.path.read_text().splitlines(), 1):
            if not line.strip():
                continue
            try:
                entry = _from_record(json.loads(line))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed activity line {lineno}: {e}")
                continue
            if requisition_id is not None and entry.requisition_id != requisition_id:
                continue
            if candidate_id is not None and entry.candidate_id != candidate_id:
                continue
            entries.append(entry)
        return entries
