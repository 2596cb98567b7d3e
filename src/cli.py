"""Command-line dispatcher for the task list.

Each invocation loads the whole list once, runs one command, and rewrites
the file only when that command changed something.
"""
import argparse
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from models import TaskStatus
from storage import DEFAULT_TASKS_FILE, Storage
from task_list import TaskList

STATUS_ALIASES = {
    't': TaskStatus.TODO,
    'todo': TaskStatus.TODO,
    'ip': TaskStatus.IN_PROGRESS,
    'in-progress': TaskStatus.IN_PROGRESS,
    'd': TaskStatus.DONE,
    'done': TaskStatus.DONE,
}
SHORTHAND_MARKS = {
    'mark-todo': TaskStatus.TODO,
    'mark-in-progress': TaskStatus.IN_PROGRESS,
    'mark-done': TaskStatus.DONE,
}
DEFAULT_LOG_LEVEL = 'WARNING'


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Route loguru diagnostics to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> - {message}",
    )


def _status_arg(value: str) -> TaskStatus:
    status = STATUS_ALIASES.get(value.lower())
    if status is None:
        raise argparse.ArgumentTypeError(
            f"invalid status {value!r}; choose from todo/t, in-progress/ip, done/d"
        )
    return status


def _log_level_arg(value: str) -> str:
    level = value.strip().upper()
    try:
        logger.level(level)
    except ValueError:
        raise argparse.ArgumentTypeError(f"unknown log level {value!r}") from None
    return level


def _task_id_arg(value: str) -> int:
    raw = value.rstrip('.')
    if not (raw.isascii() and raw.isdigit()) or int(raw) <= 0:
        raise argparse.ArgumentTypeError(f"invalid task id {value!r}")
    return int(raw)


def _description(words: List[str]) -> Optional[str]:
    text = ' '.join(words).strip()
    if not text:
        sys.stderr.write("Error: Description required.\n")
        return None
    try:
        text.encode('utf-8')
    except UnicodeEncodeError:
        sys.stderr.write(f"Error: Description is not valid UTF-8: {ascii(text)}\n")
        return None
    return text


def _not_found(task_id: int) -> bool:
    sys.stderr.write(f"Error: Task with ID {task_id} not found.\n")
    return False


# -------------------- commands --------------------
# Each command returns True when it succeeded; the list is saved only when
# the command reports success and is flagged as mutating.

def _cmd_add(tasks: TaskList, args: argparse.Namespace) -> bool:
    description = _description(args.description)
    if description is None:
        return False
    task = tasks.add(description)
    print(f'Task {task.id} added: "{task.description}"')
    return True


def _cmd_update(tasks: TaskList, args: argparse.Namespace) -> bool:
    description = _description(args.description)
    if description is None:
        return False
    if tasks.update(args.id, description) is None:
        return _not_found(args.id)
    print(f"Task {args.id} updated.")
    return True


def _cmd_delete(tasks: TaskList, args: argparse.Namespace) -> bool:
    if tasks.delete(args.id) is None:
        return _not_found(args.id)
    print(f"Task {args.id} deleted.")
    return True


def _cmd_mark(tasks: TaskList, args: argparse.Namespace) -> bool:
    if tasks.mark(args.id, args.status) is None:
        return _not_found(args.id)
    print(f"Task {args.id} marked as {args.status.value}.")
    return True


def _cmd_list(tasks: TaskList, args: argparse.Namespace) -> bool:
    tasks.display(args.status)
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='task-cli', description="Track tasks in a local JSON file.")
    parser.add_argument(
        '--file',
        type=Path,
        default=None,
        help=f"Task file (default: $TASK_CLI_FILE or ./{DEFAULT_TASKS_FILE})",
    )
    parser.add_argument(
        '--log-level',
        type=_log_level_arg,
        default=None,
        help=f"Diagnostic log level (default: $TASK_CLI_LOG_LEVEL or {DEFAULT_LOG_LEVEL})",
    )
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('add', help="Add a new task")
    p.add_argument('description', nargs='+')
    p.set_defaults(handler=_cmd_add, mutates=True)

    p = sub.add_parser('update', help="Replace a task's description")
    p.add_argument('id', type=_task_id_arg)
    p.add_argument('description', nargs='+')
    p.set_defaults(handler=_cmd_update, mutates=True)

    p = sub.add_parser('delete', help="Delete a task")
    p.add_argument('id', type=_task_id_arg)
    p.set_defaults(handler=_cmd_delete, mutates=True)

    p = sub.add_parser('mark', help="Set a task's status (t/ip/d aliases accepted)")
    p.add_argument('id', type=_task_id_arg)
    p.add_argument('status', type=_status_arg)
    p.set_defaults(handler=_cmd_mark, mutates=True)

    for name, status in SHORTHAND_MARKS.items():
        p = sub.add_parser(name, help=f"Mark a task as {status.value}")
        p.add_argument('id', type=_task_id_arg)
        p.set_defaults(handler=_cmd_mark, mutates=True, status=status)

    p = sub.add_parser('list', help="List tasks, optionally filtered by status")
    p.add_argument('status', nargs='?', type=_status_arg, default=None)
    p.set_defaults(handler=_cmd_list, mutates=False)
    return parser


def resolve_tasks_file(cli_value: Optional[Path]) -> Path:
    """Priority: --file > TASK_CLI_FILE > ./tasks.json."""
    if cli_value is not None:
        return cli_value.expanduser()
    env_value = os.getenv('TASK_CLI_FILE')
    if env_value:
        return Path(env_value).expanduser()
    return DEFAULT_TASKS_FILE


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = args.log_level
    env_level = os.getenv('TASK_CLI_LOG_LEVEL')
    rejected_env_level: Optional[str] = None
    if level is None and env_level:
        try:
            level = _log_level_arg(env_level)
        except argparse.ArgumentTypeError:
            rejected_env_level = env_level
    configure_logging(level or DEFAULT_LOG_LEVEL)
    if rejected_env_level is not None:
        logger.warning("Unknown TASK_CLI_LOG_LEVEL {!r}, using {}", rejected_env_level, DEFAULT_LOG_LEVEL)

    storage = Storage(resolve_tasks_file(args.file))
    tasks = TaskList(storage.load())
    handler: Callable[[TaskList, argparse.Namespace], bool] = args.handler
    if not handler(tasks, args):
        return 1
    if args.mutates and not storage.save(tasks.tasks):
        sys.stderr.write(f"Error: Could not save tasks to '{storage.path}'.\n")
        return 1
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
