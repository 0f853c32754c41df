"""
JSON-file persistence for the pipeline.

Records are stored one file per entity under the data directory:
  requisitions/REQ-0001.json
  briefings/REQ-0001.json
  platforms/REQ-0001.json        (list of allocations)
  justifications/REQ-0001.json   (list, oldest first)
  tasks/TASK-0001.json
  candidates/CAND-0001.json
  escalations.json               (single-flight escalation queue)

Every write is validated against its schema first and replaces the file
atomically. Any failure surfaces as PersistenceFailure; nothing is retried.
"""

import json
import logging
import os
from dataclasses import asdict, fields
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from hiring.lib.validate import SchemaError, validate_before_write
from hiring.models import (
    Briefing,
    Candidate,
    CandidateStage,
    Justification,
    PlatformAllocation,
    Requisition,
    RequisitionStage,
    Task,
    TaskKind,
    TaskStatus,
    parse_date,
    parse_datetime,
)
from hiring.workflow.errors import PersistenceFailure

logger = logging.getLogger(__name__)

ID_PREFIXES = {
    "requisitions": "REQ",
    "tasks": "TASK",
    "candidates": "CAND",
}


def to_record(obj) -> dict:
    """Convert a model dataclass to a JSON-ready dict."""
    record = {}
    for key, value in asdict(obj).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, (date, datetime)):
            value = value.isoformat()
        record[key] = value
    return record


def _known(cls, data: dict) -> dict:
    """Drop keys the dataclass doesn't know (older/newer files)."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def requisition_from_record(data: dict) -> Requisition:
    data = _known(Requisition, data)
    data["stage"] = RequisitionStage(data["stage"])
    data["created_at"] = parse_datetime(data["created_at"])
    data["due_date"] = parse_date(data.get("due_date"))
    data["archived_at"] = parse_datetime(data.get("archived_at"))
    data["delayed_at"] = parse_datetime(data.get("delayed_at"))
    return Requisition(**data)


def briefing_from_record(data: dict) -> Briefing:
    data = _known(Briefing, data)
    data["deadline"] = parse_date(data.get("deadline"))
    return Briefing(**data)


def task_from_record(data: dict) -> Task:
    data = _known(Task, data)
    data["status"] = TaskStatus(data["status"])
    data["kind"] = TaskKind(data.get("kind", TaskKind.MANUAL.value))
    data["due_date"] = parse_date(data.get("due_date"))
    for key in ("created_at", "completed_at", "archived_at"):
        data[key] = parse_datetime(data.get(key))
    return Task(**data)


def justification_from_record(data: dict) -> Justification:
    data = _known(Justification, data)
    data["new_due_date"] = parse_date(data["new_due_date"])
    data["created_at"] = parse_datetime(data["created_at"])
    return Justification(**data)


def candidate_from_record(data: dict) -> Candidate:
    data = _known(Candidate, data)
    data["stage"] = CandidateStage(data["stage"])
    data["created_at"] = parse_datetime(data.get("created_at"))
    return Candidate(**data)


class JsonStore:
    """File-backed store implementing the persistence contracts."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    # ------------------------------------------------------------------
    # Low-level helpers

    def _dir(self, collection: str) -> Path:
        return self.data_dir / collection

    def _read(self, path: Path):
        try:
            return json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise PersistenceFailure("read", f"Corrupt record {path}: {e}") from None
        except OSError as e:
            raise PersistenceFailure("read", f"Cannot read {path}: {e}") from None

    def _write(self, path: Path, data, schema_name: str) -> None:
        try:
            validate_before_write(data, schema_name, path)
        except SchemaError as e:
            raise PersistenceFailure(f"write:{schema_name}", str(e)) from None

        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2))
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceFailure(f"write:{schema_name}", f"Cannot write {path}: {e}") from None

    def _unlink(self, path: Path, operation: str) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceFailure(operation, f"Cannot delete {path}: {e}") from None

    def _load_all(self, collection: str, parse) -> list:
        directory = self._dir(collection)
        if not directory.exists():
            return []

        records = []
        for f in sorted(directory.glob("*.json")):
            try:
                records.append(parse(self._read(f)))
            except PersistenceFailure as e:
                logger.warning(f"Skipping unreadable record: {e}")
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load record {f}: {e}")
        return records

    def next_id(self, collection: str) -> str:
        """Generate next sequential ID for a collection (REQ-0001, ...)."""
        prefix = ID_PREFIXES[collection]
        directory = self._dir(collection)

        nums = []
        if directory.exists():
            for f in directory.glob(f"{prefix}-*.json"):
                try:
                    nums.append(int(f.stem.split("-")[1]))
                except (ValueError, IndexError):
                    logger.warning(f"Malformed record ID ignored: {f.stem}")

        return f"{prefix}-{max(nums, default=0) + 1:04d}"

    # ------------------------------------------------------------------
    # Requisitions

    def load_requisitions(self) -> list[Requisition]:
        return self._load_all("requisitions", requisition_from_record)

    def get_requisition(self, requisition_id: str) -> Optional[Requisition]:
        path = self._dir("requisitions") / f"{requisition_id}.json"
        if not path.exists():
            return None
        return requisition_from_record(self._read(path))

    def save_requisition(self, requisition: Requisition) -> None:
        path = self._dir("requisitions") / f"{requisition.id}.json"
        self._write(path, to_record(requisition), "requisition")

    def save_requisition_stage(self, requisition_id: str, stage: RequisitionStage) -> None:
        requisition = self.get_requisition(requisition_id)
        if requisition is None:
            raise PersistenceFailure("save_requisition_stage", f"Requisition {requisition_id} not found")
        requisition.stage = stage
        self.save_requisition(requisition)

    def delete_requisition(self, requisition_id: str) -> None:
        for collection in ("requisitions", "briefings", "platforms"):
            self._unlink(self._dir(collection) / f"{requisition_id}.json", "delete_requisition")

    # ------------------------------------------------------------------
    # Briefings and platform allocations

    def get_briefing(self, requisition_id: str) -> Optional[Briefing]:
        path = self._dir("briefings") / f"{requisition_id}.json"
        if not path.exists():
            return None
        return briefing_from_record(self._read(path))

    def load_briefings(self) -> list[Briefing]:
        return self._load_all("briefings", briefing_from_record)

    def save_briefing(self, briefing: Briefing) -> None:
        path = self._dir("briefings") / f"{briefing.requisition_id}.json"
        self._write(path, to_record(briefing), "briefing")

    def load_platforms(self, requisition_id: str) -> list[PlatformAllocation]:
        path = self._dir("platforms") / f"{requisition_id}.json"
        if not path.exists():
            return []
        return [PlatformAllocation(**_known(PlatformAllocation, p)) for p in self._read(path)]

    def save_platforms(self, requisition_id: str, allocations: list[PlatformAllocation]) -> None:
        """Replace the full allocation set for a requisition."""
        path = self._dir("platforms") / f"{requisition_id}.json"
        self._write(path, [to_record(a) for a in allocations], "platforms")

    def delete_briefing(self, requisition_id: str) -> None:
        self._unlink(self._dir("briefings") / f"{requisition_id}.json", "delete_briefing")

    def delete_platforms(self, requisition_id: str) -> None:
        self._unlink(self._dir("platforms") / f"{requisition_id}.json", "delete_platforms")

    # ------------------------------------------------------------------
    # Tasks

    def load_tasks(
        self,
        requisition_id: Optional[str] = None,
        include_archived: bool = False,
    ) -> list[Task]:
        tasks = self._load_all("tasks", task_from_record)
        if requisition_id is not None:
            tasks = [t for t in tasks if t.requisition_id == requisition_id]
        if not include_archived:
            tasks = [t for t in tasks if not t.archived]
        return tasks

    def get_task(self, task_id: str) -> Optional[Task]:
        path = self._dir("tasks") / f"{task_id}.json"
        if not path.exists():
            return None
        return task_from_record(self._read(path))

    def save_task(self, task: Task) -> None:
        path = self._dir("tasks") / f"{task.id}.json"
        self._write(path, to_record(task), "task")

    def save_task_status(self, task_id: str, status: TaskStatus) -> None:
        task = self.get_task(task_id)
        if task is None:
            raise PersistenceFailure("save_task_status", f"Task {task_id} not found")
        task.status = status
        self.save_task(task)

    def create_task(self, task: Task) -> Task:
        """Persist a new task, assigning the next TASK id if none was given."""
        if not task.id:
            task.id = self.next_id("tasks")
        self.save_task(task)
        return task

    def delete_task(self, task_id: str) -> None:
        self._unlink(self._dir("tasks") / f"{task_id}.json", "delete_task")

    # ------------------------------------------------------------------
    # Justifications

    def load_justifications(self, requisition_id: Optional[str] = None) -> list[Justification]:
        directory = self._dir("justifications")
        if requisition_id is not None:
            files = [directory / f"{requisition_id}.json"]
        elif directory.exists():
            files = sorted(directory.glob("*.json"))
        else:
            files = []

        justifications = []
        for f in files:
            if f.exists():
                justifications.extend(justification_from_record(j) for j in self._read(f))
        return justifications

    def add_justification(self, justification: Justification) -> None:
        path = self._dir("justifications") / f"{justification.requisition_id}.json"
        existing = self._read(path) if path.exists() else []
        existing.append(to_record(justification))
        self._write(path, existing, "justifications")

    # ------------------------------------------------------------------
    # Escalation queue

    def load_escalations(self) -> dict:
        path = self.data_dir / "escalations.json"
        if not path.exists():
            return {"current": None, "pending": []}
        return self._read(path)

    def save_escalations(self, record: dict) -> None:
        self._write(self.data_dir / "escalations.json", record, "escalations")

    # ------------------------------------------------------------------
    # Candidates

    def load_candidates(self, requisition_id: Optional[str] = None) -> list[Candidate]:
        candidates = self._load_all("candidates", candidate_from_record)
        if requisition_id is not None:
            candidates = [c for c in candidates if c.requisition_id == requisition_id]
        return sorted(candidates, key=lambda c: (c.position, c.id))

    def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        path = self._dir("candidates") / f"{candidate_id}.json"
        if not path.exists():
            return None
        return candidate_from_record(self._read(path))

    def save_candidate(self, candidate: Candidate) -> None:
        path = self._dir("candidates") / f"{candidate.id}.json"
        self._write(path, to_record(candidate), "candidate")

    def delete_candidate(self, candidate_id: str) -> None:
        self._unlink(self._dir("candidates") / f"{candidate_id}.json", "delete_candidate")
