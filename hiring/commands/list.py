"""
rq list / rq board - Requisition overviews.
"""

from hiring.models import RequisitionStage
from hiring.workflow.deadline import days_overdue, is_past_due


def _title(text: str, width: int) -> str:
    return text[:width - 3] + "..." if len(text) > width else text


def _flags(req, now) -> str:
    flags = []
    if req.delayed:
        flags.append("DELAYED")
    elif req.stage != RequisitionStage.ARCHIVED and is_past_due(req.due_date, now):
        flags.append(f"{days_overdue(req.due_date, now)}d overdue")
    return f" [{', '.join(flags)}]" if flags else ""


def cmd_list(args, engine, config) -> int:
    """List requisitions in stage order."""
    now = engine.clock()
    order = {stage: i for i, stage in enumerate(RequisitionStage)}
    requisitions = [
        r for r in engine.store.load_requisitions()
        if args.all or r.stage != RequisitionStage.ARCHIVED
    ]
    requisitions.sort(key=lambda r: (order[r.stage], r.position, r.id))

    if not requisitions:
        print("Requisitions: none")
        print()
        print("Get started:")
        print('  rq new "Backend engineer" --due 2026-12-01')
        return 0

    print("Requisitions")
    print("-" * 72)
    for req in requisitions:
        due = req.due_date.isoformat() if req.due_date else "-"
        print(f"  {req.id:<10} {req.stage.value:<13} {due:<11} {_title(req.title, 30)}{_flags(req, now)}")
    print()
    print(f"{len(requisitions)} requisition(s)")

    pending = engine.pending_escalation_count() + (1 if engine.current_escalation() else 0)
    if pending:
        print()
        print(f"[!] {pending} requisition(s) awaiting justification - see 'rq escalation'")
    return 0


def cmd_board(args, engine, config) -> int:
    """Print the kanban board, one column per section."""
    board = engine.board_columns()
    now = engine.clock()

    for stage in RequisitionStage:
        column = board.columns[stage]
        print(f"{stage.value} ({len(column)})")
        for req in column:
            print(f"  {req.id:<10} {_title(req.title, 40)}{_flags(req, now)}")
        print()

    print(f"justification ({len(board.awaiting) + len(board.justified)})")
    for label, reqs in (("awaiting", board.awaiting), ("justified", board.justified)):
        for req in reqs:
            due = req.due_date.isoformat() if req.due_date else "-"
            print(f"  {req.id:<10} {label:<10} {req.stage.value:<13} due {due}  {_title(req.title, 30)}")
    return 0
