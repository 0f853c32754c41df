"""
Configuration loaders for the hiring pipeline.

pipeline.env   - operator settings (actor, grace window, notifications)
platforms.yaml - recruitment platform catalog

Both files live in the data directory and are optional: missing files
yield defaults.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from hiring.models import Actor
from . import envparse

logger = logging.getLogger(__name__)

ENV_FILE = "pipeline.env"
PLATFORMS_FILE = "platforms.yaml"
DATA_DIR_ENV = "RQ_DATA_DIR"
DEFAULT_DATA_DIR = "pipeline-data"

DEFAULT_PLATFORMS = {
    "linkedin": "LinkedIn",
    "meta": "Meta (Facebook/Instagram)",
    "infojobs": "InfoJobs",
    "indeed": "Indeed",
    "catho": "Catho",
    "vagas": "Vagas.com",
    "gupy": "Gupy",
    "glassdoor": "Glassdoor",
    "trampos": "Trampos",
    "other": "Other",
}

DEFAULT_ESCALATION_ROLES = ("ceo", "project_manager", "hr")


@dataclass
class PipelineConfig:
    """Operator configuration from pipeline.env"""
    actor: Actor = field(default_factory=lambda: Actor(id="operator", name="Operator"))
    hire_form_url: str = ""
    justification_grace_hours: int = 24
    escalation_roles: tuple[str, ...] = DEFAULT_ESCALATION_ROLES
    notifications: bool = True
    sweep_interval_minutes: int = 60
    platforms: dict[str, str] = field(default_factory=lambda: DEFAULT_PLATFORMS.copy())

    def platform_ids(self) -> set[str]:
        return set(self.platforms)


def resolve_data_dir(cli_value: Optional[str] = None) -> Path:
    """--data-dir wins, then $RQ_DATA_DIR, then ./pipeline-data."""
    if cli_value:
        return Path(cli_value)
    return Path(os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR)


def _int(env: dict, key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"{key}={raw!r} is not an integer, using {default}")
        return default
    if value < 0:
        logger.warning(f"{key}={value} is negative, using {default}")
        return default
    return value


def load_platforms(data_dir: Optional[Path]) -> dict[str, str]:
    """Load platforms.yaml, falling back to the built-in catalog.

    Expected shape:
        platforms:
          linkedin: LinkedIn
          gupy: Gupy
    """
    if data_dir is None:
        return DEFAULT_PLATFORMS.copy()

    path = data_dir / PLATFORMS_FILE
    if not path.exists():
        return DEFAULT_PLATFORMS.copy()

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return DEFAULT_PLATFORMS.copy()

    platforms = (data or {}).get("platforms")
    if not isinstance(platforms, dict) or not platforms:
        logger.warning(f"{path} has no 'platforms' mapping, using defaults")
        return DEFAULT_PLATFORMS.copy()
    return {str(k): str(v) for k, v in platforms.items()}


def load_config(data_dir: Optional[Path]) -> PipelineConfig:
    """Load pipeline.env and platforms.yaml from the data directory.

    Raises:
        ValueError: If pipeline.env contains invalid syntax or forbidden patterns
    """
    env = {}
    if data_dir is not None and (data_dir / ENV_FILE).exists():
        env = envparse.load_env(data_dir / ENV_FILE)

    roles = tuple(r.strip() for r in env.get("ESCALATION_ROLES", "").split(",") if r.strip())
    actor_id = env.get("ACTOR_ID", "operator")

    return PipelineConfig(
        actor=Actor(
            id=actor_id,
            name=env.get("ACTOR_NAME", actor_id.title()),
            role=env.get("ACTOR_ROLE", ""),
        ),
        hire_form_url=env.get("HIRE_FORM_URL", ""),
        justification_grace_hours=_int(env, "JUSTIFICATION_GRACE_HOURS", 24),
        escalation_roles=roles or DEFAULT_ESCALATION_ROLES,
        notifications=env.get("NOTIFICATIONS", "true").lower() == "true",
        sweep_interval_minutes=_int(env, "SWEEP_INTERVAL_MINUTES", 60) or 60,
        platforms=load_platforms(data_dir),
    )
