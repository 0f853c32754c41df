"""
rq tasks / rq task - Task checklist.

Completing a register-requisition or publish-campaign task advances its
requisition; see `rq show` for the result.
"""

from hiring.commands.brief import load_registration_file
from hiring.models import TaskKind, TaskStatus
from hiring.workflow.errors import ValidationError


def cmd_tasks(args, engine, config) -> int:
    """List tasks, or archive every done task."""
    if args.archive_done:
        count = engine.archive_done_tasks()
        print(f"Archived {count} done task(s)")
        return 0

    tasks = engine.store.load_tasks(args.requisition, include_archived=args.all)
    if not tasks:
        print("Tasks: none")
        return 0

    print("Tasks")
    print("-" * 72)
    for task in tasks:
        link = f" -> {task.requisition_id}" if task.requisition_id else ""
        archived = " (archived)" if task.archived else ""
        print(f"  {task.id:<10} {task.status.value:<6} {task.kind.value:<21} {task.title}{link}{archived}")
    return 0


def cmd_task(args, engine, config) -> int:
    """Create a manual task, change a task's status, or archive it."""
    if args.id == "new":
        if not args.title:
            raise ValidationError("title", "required with 'rq task new'")
        task = engine.create_task(args.title, requisition_id=args.requisition)
        print(f"Created {task.id}: {task.title}")
        return 0

    if args.archive:
        task = engine.archive_task(args.id)
        print(f"Archived {task.id}")
        return 0

    if args.status is None:
        task = engine.store.get_task(args.id)
        if task is None:
            print(f"ERROR: Task '{args.id}' not found")
            return 2
        print(f"{task.id}: {task.title}")
        print(f"  Status: {task.status.value}  Kind: {task.kind.value}  Priority: {task.priority}")
        if task.requisition_id:
            print(f"  Requisition: {task.requisition_id}")
        if task.completed_at:
            print(f"  Completed: {task.completed_at:%Y-%m-%d %H:%M}")
        return 0

    registration = None
    if args.registration:
        task = engine.store.get_task(args.id)
        requisition_id = task.requisition_id if task and task.requisition_id else ""
        registration = load_registration_file(args.registration, requisition_id)

    outcome = engine.move_task(args.id, TaskStatus(args.status), registration)
    print(f"{outcome.task.id}: {outcome.task.status.value}")

    if outcome.requisition_effect_applied:
        req = outcome.requisition
        print(f"  {req.id} is now {req.stage.value}")
        if outcome.follow_up:
            print(f"  Follow-up task {outcome.follow_up.id}: {outcome.follow_up.title}")
        if outcome.task.kind == TaskKind.PUBLISH_CAMPAIGN:
            print("  Campaign published, selection is open.")
    return 0
