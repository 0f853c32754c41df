"""
rq move / archive / unarchive - Manual requisition moves.
"""

from hiring.models import RequisitionStage
from hiring.workflow.errors import ValidationError
from hiring.workflow.state_machine import parse_stage


def cmd_move(args, engine, config) -> int:
    """Move a requisition by hand. Guarded stages are refused."""
    to_stage = parse_stage(args.stage)
    if to_stage is None:
        valid = ", ".join(s.value for s in RequisitionStage)
        raise ValidationError("stage", f"unknown stage '{args.stage}' (valid: {valid})")

    req = engine.get_requisition(args.id)
    result = engine.attempt_move(req.id, req.stage, to_stage, args.position)
    if not result.accepted:
        print(f"REJECTED: {result.reason.reason}")
        return 1

    print(f"{req.id}: {req.stage.value} -> {to_stage.value}")
    return 0


def cmd_archive(args, engine, config) -> int:
    req = engine.archive(args.id, positions_filled=args.filled)
    suffix = " (positions filled)" if args.filled else ""
    print(f"Archived {req.id}{suffix}")
    return 0


def cmd_unarchive(args, engine, config) -> int:
    req = engine.unarchive(args.id)
    print(f"Reopened {req.id} in {req.stage.value}")
    return 0
