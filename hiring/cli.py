#!/usr/bin/env python3
"""rq - hiring pipeline CLI entrypoint."""

import sys
import argparse
import logging

from hiring.lib.config import load_config, resolve_data_dir
from hiring.store import JsonStore
from hiring.workflow.engine import PipelineEngine
from hiring.workflow.errors import DanglingReference, GuardViolation, PersistenceFailure, ValidationError
from hiring.commands import brief as cmd_brief_module
from hiring.commands import candidate as cmd_candidate_module
from hiring.commands import escalation as cmd_escalation_module
from hiring.commands import list as cmd_list_module
from hiring.commands import move as cmd_move_module
from hiring.commands import new as cmd_new_module
from hiring.commands import show as cmd_show_module
from hiring.commands import sweep as cmd_sweep_module
from hiring.commands import tasks as cmd_tasks_module

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_NOT_FOUND = 2
EXIT_PERSISTENCE = 3


def get_engine(args):
    """Build the engine for --data-dir / $RQ_DATA_DIR / ./pipeline-data."""
    data_dir = resolve_data_dir(args.data_dir)
    try:
        config = load_config(data_dir)
    except ValueError as e:
        print(f"ERROR: Invalid pipeline.env: {e}")
        sys.exit(EXIT_INVALID)
    return PipelineEngine(JsonStore(data_dir), config=config), config


def _with_engine(handler):
    def run(args):
        engine, config = get_engine(args)
        return handler(args, engine, config)
    return run


def dispatch(args) -> int:
    """Run a command, mapping workflow errors to exit codes."""
    try:
        return args.func(args)
    except GuardViolation as e:
        print(f"REJECTED: {e.reason} ({e.from_stage} -> {e.to_stage})")
        return EXIT_INVALID
    except ValidationError as e:
        print(f"ERROR: {e.field}: {e.message}")
        return EXIT_INVALID
    except DanglingReference as e:
        print(f"ERROR: {e}")
        return EXIT_NOT_FOUND
    except PersistenceFailure as e:
        print(f"ERROR: Could not save changes, nothing was applied. {e}")
        return EXIT_PERSISTENCE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='rq', description='Hiring requisition pipeline')
    parser.add_argument('--data-dir', '-d', help='Data directory (default: $RQ_DATA_DIR or ./pipeline-data)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show workflow logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # rq new
    p_new = subparsers.add_parser('new', help='Create a requisition')
    p_new.add_argument('title', help='Requisition title')
    p_new.add_argument('--due', help='Due date (YYYY-MM-DD)')
    p_new.add_argument('--briefing', '-b', help='Briefing YAML file')
    p_new.add_argument('--description', default='', help='Short description')
    p_new.set_defaults(func=_with_engine(cmd_new_module.cmd_new))

    # rq list
    p_list = subparsers.add_parser('list', help='List requisitions')
    p_list.add_argument('--all', '-a', action='store_true', help='Include archived')
    p_list.set_defaults(func=_with_engine(cmd_list_module.cmd_list))

    # rq board
    p_board = subparsers.add_parser('board', help='Show the kanban board')
    p_board.set_defaults(func=_with_engine(cmd_list_module.cmd_board))

    # rq show
    p_show = subparsers.add_parser('show', help='Show requisition details')
    p_show.add_argument('id', help='Requisition ID')
    p_show.add_argument('--activity', '-l', type=int, default=10, help='Activity entries to show')
    p_show.set_defaults(func=_with_engine(cmd_show_module.cmd_show))

    # rq move
    p_move = subparsers.add_parser('move', help='Move a requisition to another stage')
    p_move.add_argument('id', help='Requisition ID')
    p_move.add_argument('stage', help='Target stage')
    p_move.add_argument('--position', '-p', type=int, default=0, help='Position in the column')
    p_move.set_defaults(func=_with_engine(cmd_move_module.cmd_move))

    # rq archive
    p_archive = subparsers.add_parser('archive', help='Archive a requisition')
    p_archive.add_argument('id', help='Requisition ID')
    p_archive.add_argument('--filled', action='store_true', help='Positions filled (from in_selection)')
    p_archive.set_defaults(func=_with_engine(cmd_move_module.cmd_archive))

    # rq unarchive
    p_unarchive = subparsers.add_parser('unarchive', help='Reopen an archived requisition')
    p_unarchive.add_argument('id', help='Requisition ID')
    p_unarchive.set_defaults(func=_with_engine(cmd_move_module.cmd_unarchive))

    # rq brief
    p_brief = subparsers.add_parser('brief', help='Set or show a requisition briefing')
    p_brief.add_argument('id', help='Requisition ID')
    p_brief.add_argument('file', nargs='?', help='Briefing YAML file (shows current if omitted)')
    p_brief.set_defaults(func=_with_engine(cmd_brief_module.cmd_brief))

    # rq tasks
    p_tasks = subparsers.add_parser('tasks', help='List tasks')
    p_tasks.add_argument('--requisition', '-r', help='Only tasks of this requisition')
    p_tasks.add_argument('--all', '-a', action='store_true', help='Include archived tasks')
    p_tasks.add_argument('--archive-done', action='store_true', help='Archive all done tasks')
    p_tasks.set_defaults(func=_with_engine(cmd_tasks_module.cmd_tasks))

    # rq task
    p_task = subparsers.add_parser('task', help='Create or update a task')
    p_task.add_argument('id', help='Task ID, or "new"')
    p_task.add_argument('status', nargs='?', choices=['todo', 'doing', 'done'], help='New status')
    p_task.add_argument('--title', '-t', help='Title (with "new")')
    p_task.add_argument('--requisition', '-r', help='Linked requisition (with "new")')
    p_task.add_argument('--registration', '-f', help='Registration YAML (briefing + platforms)')
    p_task.add_argument('--archive', action='store_true', help='Archive the task')
    p_task.set_defaults(func=_with_engine(cmd_tasks_module.cmd_task))

    # rq escalation
    p_esc = subparsers.add_parser('escalation', help='Show the current overdue escalation')
    p_esc.add_argument('--scan', action='store_true', help='Scan for overdue requisitions first')
    p_esc.add_argument('--dismiss', action='store_true', help='Dismiss the current escalation')
    p_esc.set_defaults(func=_with_engine(cmd_escalation_module.cmd_escalation))

    # rq justify
    p_justify = subparsers.add_parser('justify', help='Justify an overdue requisition')
    p_justify.add_argument('id', help='Requisition ID')
    p_justify.add_argument('--reason', '-m', required=True, help='Why the deadline slipped')
    p_justify.add_argument('--until', '-u', required=True, help='New due date (YYYY-MM-DD)')
    p_justify.set_defaults(func=_with_engine(cmd_escalation_module.cmd_justify))

    # rq candidate
    p_cand = subparsers.add_parser('candidate', help='Manage candidates')
    cand_sub = p_cand.add_subparsers(dest='candidate_cmd', required=True)

    p_cand_add = cand_sub.add_parser('add', help='Add a candidate')
    p_cand_add.add_argument('requisition', help='Requisition ID')
    p_cand_add.add_argument('name', help='Candidate name')
    p_cand_add.add_argument('--email', default='')
    p_cand_add.add_argument('--phone', default='')
    p_cand_add.add_argument('--linkedin', default='')
    p_cand_add.add_argument('--resume-url', default='')
    p_cand_add.add_argument('--notes', default='')
    p_cand_add.add_argument('--rating', type=int)
    p_cand_add.set_defaults(func=_with_engine(cmd_candidate_module.cmd_candidate_add))

    p_cand_list = cand_sub.add_parser('list', help='List candidates of a requisition')
    p_cand_list.add_argument('requisition', help='Requisition ID')
    p_cand_list.set_defaults(func=_with_engine(cmd_candidate_module.cmd_candidate_list))

    p_cand_move = cand_sub.add_parser('move', help='Move a candidate')
    p_cand_move.add_argument('id', help='Candidate ID')
    p_cand_move.add_argument('stage', help='Target stage')
    p_cand_move.add_argument('--position', '-p', type=int, default=0)
    answer = p_cand_move.add_mutually_exclusive_group()
    answer.add_argument('--yes', dest='answer', action='store_const', const=True,
                        help='Intake form completed (skip the prompt)')
    answer.add_argument('--no', dest='answer', action='store_const', const=False,
                        help='Intake form not completed (skip the prompt)')
    p_cand_move.set_defaults(func=_with_engine(cmd_candidate_module.cmd_candidate_move), answer=None)

    # rq sweep
    p_sweep = subparsers.add_parser('sweep', help='Run the overdue sweep')
    p_sweep.add_argument('--serve', action='store_true', help='Keep running on the configured interval')
    p_sweep.set_defaults(func=cmd_sweep_module.cmd_sweep)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return dispatch(args)


if __name__ == '__main__':
    sys.exit(main())
