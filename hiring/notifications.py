"""
Desktop notifications for the hiring pipeline.

Sent through notify-send, so any freedesktop notification daemon
(mako, dunst, GNOME, KDE) shows them. Each pipeline event maps to an
urgency and a category; escalations are critical and stay on screen
until dismissed. Delivery problems are logged, never raised.
"""

import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

APP_NAME = "Hiring Pipeline"
MAX_BODY_LENGTH = 200

URGENCIES = ("low", "normal", "critical")

# event -> (urgency, category)
EVENTS = {
    "escalation": ("critical", "hiring.escalation"),
    "campaign": ("low", "hiring.campaign"),
    "hire": ("normal", "hiring.hire"),
}


def _command(summary: str, body: str, urgency: str, category: str | None) -> list[str]:
    cmd = ["notify-send", "--urgency", urgency, "--app-name", APP_NAME]
    if category:
        cmd += ["--category", category]
    if urgency == "critical":
        cmd += ["--expire-time", "0"]
    return cmd + [summary, body]


def notify(summary: str, body: str, urgency: str = "normal", category: str | None = None):
    """Show a desktop notification. Does nothing if notify-send is missing."""
    if urgency not in URGENCIES:
        logger.warning(f"Invalid urgency '{urgency}', using 'normal'")
        urgency = "normal"

    if not shutil.which("notify-send"):
        logger.debug("notify-send not found, skipping notification")
        return

    if len(body) > MAX_BODY_LENGTH:
        body = body[:MAX_BODY_LENGTH] + "..."

    try:
        result = subprocess.run(_command(summary, body, urgency, category),
                                capture_output=True, text=True, timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("notify-send timed out")
        return
    except OSError as e:
        logger.warning(f"Failed to run notify-send: {e}")
        return

    if result.returncode != 0:
        logger.warning(f"notify-send failed (exit {result.returncode}): {result.stderr}")


def _notify_event(event: str, summary: str, body: str):
    urgency, category = EVENTS[event]
    notify(summary, body, urgency, category)


def notify_escalation(requisition_id: str, title: str, days_overdue: int, pending: int):
    """A requisition is overdue and needs a delay justification."""
    body = f"{title}: {days_overdue} day(s) overdue, justification required"
    if pending:
        body += f" ({pending} more waiting)"
    _notify_event("escalation", f"Overdue: {requisition_id}", body)


def notify_campaign_published(requisition_id: str, title: str):
    _notify_event("campaign", f"Campaign live: {requisition_id}", f"{title} is now in selection")


def notify_hired(candidate_name: str, requisition_title: str):
    _notify_event("hire", "Hire confirmed", f"{candidate_name} hired for {requisition_title}")
