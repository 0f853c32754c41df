"""Periodic overdue sweep as a Prefect flow.

Runs scan_overdue() on an interval so requisitions are flagged delayed and
queued for escalation without anyone opening the board. The scan itself is
plain engine code; the flow only adds retries, logging and scheduling.
"""

import logging
from datetime import timedelta
from pathlib import Path

from prefect import flow, get_run_logger, task

from hiring.lib.config import load_config
from hiring.store import JsonStore
from hiring.workflow.engine import PipelineEngine

logger = logging.getLogger(__name__)


def run_sweep(data_dir: Path) -> dict:
    """Scan once and summarize the escalation queue."""
    config = load_config(data_dir)
    engine = PipelineEngine(JsonStore(data_dir), config=config)
    flagged = engine.scan_overdue()
    current = engine.current_escalation()
    return {
        "flagged": [r.id for r in flagged],
        "current": current.id if current else None,
        "pending": engine.pending_escalation_count(),
    }


@task(
    retries=2,
    retry_delay_seconds=10,
    name="scan-overdue",
    description="Flag overdue requisitions and queue escalations",
)
def task_scan_overdue(data_dir: str) -> dict:
    """Scan with Prefect retry handling for transient I/O failures."""
    return run_sweep(Path(data_dir))


@flow(name="escalation-sweep", retries=0)
def escalation_sweep(data_dir: str) -> dict:
    """Run one overdue sweep over a data directory."""
    log = get_run_logger()
    summary = task_scan_overdue(data_dir)
    if summary["flagged"]:
        log.info(f"Flagged delayed: {', '.join(summary['flagged'])}")
    log.info(f"Current escalation: {summary['current'] or 'none'} ({summary['pending']} pending)")
    return summary


def serve_sweep(data_dir: Path, interval_minutes: int):
    """Serve the sweep flow on a fixed interval. Blocks until interrupted."""
    logger.info(f"Serving escalation sweep every {interval_minutes} minute(s) for {data_dir}")
    escalation_sweep.serve(
        name="escalation-sweeper",
        interval=timedelta(minutes=interval_minutes),
        parameters={"data_dir": str(data_dir.resolve())},
        tags=["hiring", "escalation"],
    )
