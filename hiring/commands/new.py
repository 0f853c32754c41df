"""
rq new - Create a requisition.

Creates the requisition in `requested` together with its
"Register requisition" task.
"""

from hiring.commands.brief import load_briefing_file
from hiring.models import parse_date
from hiring.workflow.errors import ValidationError


def parse_cli_date(value: str | None, field: str):
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(field, f"invalid date '{value}', expected YYYY-MM-DD") from None


def cmd_new(args, engine, config) -> int:
    """Create a new requisition."""
    due_date = parse_cli_date(args.due, "due")
    briefing = load_briefing_file(args.briefing, "") if args.briefing else None

    requisition, task = engine.create_requisition(
        args.title,
        due_date=due_date,
        briefing=briefing,
        description=args.description,
    )

    print(f"Created {requisition.id}: {requisition.title}")
    print(f"  Stage:    {requisition.stage.value}")
    if requisition.due_date:
        print(f"  Due:      {requisition.due_date.isoformat()}")
    print(f"  Task:     {task.id} {task.title}")
    print()
    print("Next steps:")
    print(f"  rq task {task.id} done -f registration.yaml   - Register with briefing + platforms")
    return 0
