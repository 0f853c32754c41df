"""
rq brief - Set or show a requisition briefing.

Briefing files are YAML mappings of Briefing fields:

    role_title: Backend engineer
    openings: 2
    deadline: 2026-11-30
    work_model: remote
"""

from dataclasses import fields
from pathlib import Path

import yaml

from hiring.models import Briefing, PlatformAllocation, parse_date
from hiring.workflow.errors import ValidationError
from hiring.workflow.task_links import RegistrationForm

BRIEFING_FIELDS = {f.name for f in fields(Briefing)} - {"requisition_id"}
PLATFORM_FIELDS = {f.name for f in fields(PlatformAllocation)} - {"requisition_id"}


def _read_yaml(path: str) -> dict:
    file_path = Path(path)
    if not file_path.exists():
        raise ValidationError("file", f"not found: {path}")
    try:
        data = yaml.safe_load(file_path.read_text())
    except yaml.YAMLError as e:
        raise ValidationError("file", f"invalid YAML in {path}: {e}") from None
    if not isinstance(data, dict):
        raise ValidationError("file", f"{path} must contain a mapping")
    return data


def briefing_from_mapping(data: dict, requisition_id: str) -> Briefing:
    unknown = set(data) - BRIEFING_FIELDS
    if unknown:
        raise ValidationError(f"briefing.{sorted(unknown)[0]}", "unknown field")
    try:
        openings = int(data.get("openings", 1))
        deadline = parse_date(data.get("deadline"))
    except (TypeError, ValueError) as e:
        raise ValidationError("briefing", str(e)) from None
    values = {k: str(v) for k, v in data.items() if k not in ("openings", "deadline") and v is not None}
    values.setdefault("role_title", "")
    return Briefing(requisition_id=requisition_id, openings=openings, deadline=deadline, **values)


def load_briefing_file(path: str, requisition_id: str) -> Briefing:
    return briefing_from_mapping(_read_yaml(path), requisition_id)


def load_registration_file(path: str, requisition_id: str) -> RegistrationForm:
    """Read a registration file: optional `briefing` mapping plus `platforms` list."""
    data = _read_yaml(path)

    briefing = None
    if data.get("briefing") is not None:
        briefing = briefing_from_mapping(data["briefing"], requisition_id)

    allocations = []
    for i, item in enumerate(data.get("platforms") or []):
        if not isinstance(item, dict):
            raise ValidationError(f"platforms[{i}]", "must be a mapping")
        unknown = set(item) - PLATFORM_FIELDS
        if unknown:
            raise ValidationError(f"platforms[{i}].{sorted(unknown)[0]}", "unknown field")
        allocations.append(PlatformAllocation(
            requisition_id=requisition_id,
            platform=str(item.get("platform", "")),
            description=str(item.get("description", "")),
            budget=item.get("budget"),
            expected_resumes=item.get("expected_resumes"),
            notes=str(item.get("notes") or ""),
        ))

    return RegistrationForm(briefing=briefing, platforms=allocations)


def cmd_brief(args, engine, config) -> int:
    """Set the briefing from a file, or print the current one."""
    if args.file:
        briefing = engine.save_briefing(load_briefing_file(args.file, args.id))
        print(f"Saved briefing for {args.id}")
    else:
        engine.get_requisition(args.id)
        briefing = engine.store.get_briefing(args.id)
        if briefing is None:
            print(f"No briefing for {args.id}")
            return 0

    for name in ["role_title", "openings", "deadline", *sorted(BRIEFING_FIELDS - {"role_title", "openings", "deadline"})]:
        value = getattr(briefing, name)
        if value not in ("", None):
            print(f"  {name:<18} {value}")

    missing = briefing.missing_fields()
    if missing:
        print(f"  [!] Incomplete: missing {', '.join(missing)}")
    return 0
