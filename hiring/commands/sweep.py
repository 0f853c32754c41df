"""
rq sweep - Run the overdue sweep once, or serve it on an interval.
"""

from hiring.lib.config import load_config, resolve_data_dir
from hiring.workflow.sweep import escalation_sweep, serve_sweep


def cmd_sweep(args) -> int:
    data_dir = resolve_data_dir(args.data_dir)
    try:
        config = load_config(data_dir)
    except ValueError as e:
        print(f"ERROR: Invalid pipeline.env: {e}")
        return 1

    if args.serve:
        print(f"Serving escalation sweep every {config.sweep_interval_minutes} minute(s). Ctrl-C to stop.")
        try:
            serve_sweep(data_dir, config.sweep_interval_minutes)
        except KeyboardInterrupt:
            print()
        return 0

    summary = escalation_sweep(str(data_dir))
    if summary["flagged"]:
        print(f"Flagged delayed: {', '.join(summary['flagged'])}")
    print(f"Current escalation: {summary['current'] or 'none'} ({summary['pending']} pending)")
    return 0
