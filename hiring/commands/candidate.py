"""
rq candidate - Per-requisition candidate board.

Moving a candidate to `hired` asks the hire-gate question (interactive
unless --yes/--no is given).
"""

from hiring.lib.tui import ask_hire_confirmation, phase_message
from hiring.models import CandidateStage
from hiring.workflow.errors import ValidationError


def _parse_candidate_stage(value: str) -> CandidateStage:
    for stage in CandidateStage:
        if stage.value == value:
            return stage
    valid = ", ".join(s.value for s in CandidateStage)
    raise ValidationError("stage", f"unknown stage '{value}' (valid: {valid})")


def cmd_candidate_add(args, engine, config) -> int:
    candidate = engine.add_candidate(
        args.requisition,
        args.name,
        email=args.email,
        phone=args.phone,
        linkedin=args.linkedin,
        resume_url=args.resume_url,
        notes=args.notes,
        rating=args.rating,
    )
    print(f"Added {candidate.id}: {candidate.name} ({candidate.stage.value})")
    return 0


def cmd_candidate_list(args, engine, config) -> int:
    engine.get_requisition(args.requisition)
    candidates = engine.store.load_candidates(args.requisition)
    if not candidates:
        print("Candidates: none")
        return 0

    for stage in CandidateStage:
        column = [c for c in candidates if c.stage == stage]
        if not column:
            continue
        print(f"{stage.value} ({len(column)})")
        for c in column:
            rating = f" {'*' * c.rating}" if c.rating else ""
            print(f"  {c.id:<11} {c.name}{rating}")
    return 0


def cmd_candidate_move(args, engine, config) -> int:
    """Move a candidate; moves into hired go through the hire gate."""
    to_stage = _parse_candidate_stage(args.stage)
    result = engine.move_candidate(args.id, to_stage, args.position)

    if not result.gate_opened:
        print(f"{args.id} -> {to_stage.value}")
        return 0

    candidate = engine.store.get_candidate(args.id)
    confirmed = args.answer if args.answer is not None else ask_hire_confirmation(candidate.name)
    if confirmed is None:
        engine.close_hire_dialog(args.id)
        print(f"Hire dialog closed, {candidate.name} stays in {candidate.stage.value}")
        return 1

    try:
        phase = engine.confirm_hire(args.id, confirmed)
        print(phase_message(phase, candidate.name, config.hire_form_url))
    finally:
        engine.close_hire_dialog(args.id)
    return 0 if confirmed else 1
