"""
Safe parser for pipeline.env.

KEY=value lines, '#' comments, optional single or double quotes around the
value. Nothing is expanded or executed; values that look like shell
injection are refused outright.
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

# Backticks, $( ), ${ }, ';', '&&', '|' and '||'
FORBIDDEN = re.compile(r'`|\$\(|\$\{|;|&&|\|')

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')

KNOWN_KEYS = frozenset({
    "ACTOR_ID",
    "ACTOR_NAME",
    "ACTOR_ROLE",
    "HIRE_FORM_URL",
    "JUSTIFICATION_GRACE_HOURS",
    "ESCALATION_ROLES",
    "NOTIFICATIONS",
    "SWEEP_INTERVAL_MINUTES",
})


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_env(text: str) -> dict[str, str]:
    """
    Parse pipeline.env text into a dict.

    Unknown keys are kept but logged, so a typo like ACTOR_NMAE is visible.

    Raises:
        ValueError: on a line without '=', an invalid key, or a forbidden pattern
    """
    env = {}
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue

        key, sep, value = line.partition('=')
        if not sep:
            raise ValueError(f"Line {lineno}: Invalid syntax (no '=')")

        key = key.strip()
        if not KEY_PATTERN.match(key):
            raise ValueError(f"Line {lineno}: Invalid key '{key}'")

        value = _unquote(value.strip())
        if FORBIDDEN.search(value):
            raise ValueError(f"Line {lineno}: Forbidden pattern in value of {key}")

        if key not in KNOWN_KEYS:
            logger.warning(f"pipeline.env line {lineno}: unknown key {key}")
        env[key] = value

    return env


def load_env(filepath) -> dict[str, str]:
    """
    Read and parse an env file.

    Raises:
        FileNotFoundError: if the file doesn't exist
        ValueError: see parse_env
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env(path.read_text())
