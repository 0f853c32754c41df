"""
rq escalation / rq justify - Overdue requisitions.

Only one escalation is shown at a time; the rest are counted.
"""

from hiring.commands.new import parse_cli_date
from hiring.workflow.deadline import days_overdue


def cmd_escalation(args, engine, config) -> int:
    """Show (and optionally scan for or dismiss) the current escalation."""
    if args.scan:
        flagged = engine.scan_overdue()
        if flagged:
            print(f"Flagged delayed: {', '.join(r.id for r in flagged)}")

    if args.dismiss:
        dismissed = engine.dismiss_escalation()
        if dismissed is None:
            print("Nothing to dismiss")
        else:
            print(f"Dismissed {dismissed.id} (still awaiting justification)")

    current = engine.current_escalation()
    if current is None:
        print("No overdue requisitions awaiting justification")
        return 0

    pending = engine.pending_escalation_count()
    due = current.due_date.isoformat() if current.due_date else "-"
    print(f"OVERDUE: {current.id} {current.title}")
    print(f"  Stage: {current.stage.value}   Due: {due} ({days_overdue(current.due_date, engine.clock())}d overdue)")
    if pending:
        print(f"  {pending} more waiting")
    print()
    print(f'  rq justify {current.id} --reason "..." --until YYYY-MM-DD')
    print("  rq escalation --dismiss")
    return 0


def cmd_justify(args, engine, config) -> int:
    """Submit a justification for an overdue requisition."""
    new_due_date = parse_cli_date(args.until, "new_due_date")
    justification = engine.submit_justification(args.id, args.reason, new_due_date)
    print(f"Justified {args.id}: due {justification.new_due_date.isoformat()} "
          f"({justification.days_overdue}d overdue)")

    nxt = engine.current_escalation()
    if nxt is not None:
        print(f"Next escalation: {nxt.id} {nxt.title}")
    return 0
