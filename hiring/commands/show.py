"""
rq show - Show requisition details.
"""

from hiring.workflow.deadline import days_overdue, is_past_due
from hiring.workflow.justification import latest_justification


def cmd_show(args, engine, config) -> int:
    """Show a requisition with its briefing, platforms, tasks and candidates."""
    req = engine.get_requisition(args.id)
    now = engine.clock()
    store = engine.store

    print(f"{req.id}: {req.title}")
    print("=" * 60)
    print(f"  Stage:      {req.stage.value}" + (" (delayed, awaiting justification)" if req.delayed else ""))
    print(f"  Created:    {req.created_at:%Y-%m-%d %H:%M}")
    if req.due_date:
        overdue = f" ({days_overdue(req.due_date, now)}d overdue)" if is_past_due(req.due_date, now) else ""
        print(f"  Due:        {req.due_date.isoformat()}{overdue}")
    if req.archived_at:
        print(f"  Archived:   {req.archived_at:%Y-%m-%d %H:%M}")
    if req.description:
        print(f"  {req.description}")

    briefing = store.get_briefing(req.id)
    print()
    if briefing is None:
        print("Briefing: none")
    else:
        status = "complete" if briefing.is_complete() else f"missing {', '.join(briefing.missing_fields())}"
        print(f"Briefing: {briefing.role_title or '-'} x{briefing.openings} ({status})")

    platforms = store.load_platforms(req.id)
    if platforms:
        print()
        print("Platforms")
        for alloc in platforms:
            name = config.platforms.get(alloc.platform, alloc.platform)
            budget = f"{alloc.budget:.2f}" if alloc.budget is not None else "-"
            print(f"  {name:<26} budget {budget:<10} {alloc.description}")
        print(f"  Total budget: {sum(a.budget or 0 for a in platforms):.2f}")

    justification = latest_justification(store.load_justifications(req.id))
    if justification:
        print()
        print(f"Last justification ({justification.created_at:%Y-%m-%d}, {justification.author}):")
        print(f"  {justification.reason} -> due {justification.new_due_date.isoformat()}")

    tasks = store.load_tasks(req.id)
    print()
    print(f"Tasks ({len(tasks)})")
    for task in tasks:
        print(f"  {task.id:<10} {task.status.value:<6} {task.title}")

    counts = {k: v for k, v in engine.candidate_counts(req.id).items() if v}
    print()
    if counts:
        print("Candidates: " + ", ".join(f"{stage} {n}" for stage, n in counts.items()))
    else:
        print("Candidates: none")

    entries = engine.activity.entries(requisition_id=req.id)[-args.activity:]
    if entries:
        print()
        print("Activity")
        for entry in entries:
            print(f"  {entry.timestamp:%Y-%m-%d %H:%M}  {entry.actor:<14} {entry.action}")
    return 0
