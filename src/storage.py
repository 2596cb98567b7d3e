"""Persistence helpers (serialize/deserialize/load/save) for the task list.

The task file is a restricted JSON dialect: one top-level array of flat
objects whose values are either quoted strings or, for "id", a bare
integer. It is read with a small hand-rolled scanner instead of the json
module so that one damaged record can be skipped without losing the rest
of the list. Damage to the array itself (missing brackets, braces that
never balance) discards the whole load.
"""
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger

from models import Task, TaskStatus

DEFAULT_TASKS_FILE = Path('tasks.json')
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
EPOCH = datetime.fromtimestamp(0)

_WHITESPACE = ' \t\n\r'
_INT_RE = re.compile(r'-?\d+')
_ESCAPES: Dict[str, str] = {
    '"': '\\"',
    '\\': '\\\\',
    '\b': '\\b',
    '\f': '\\f',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
}
_UNESCAPES: Dict[str, str] = {
    '"': '"',
    '\\': '\\',
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
}

Value = Union[str, int]


class TaskParseError(ValueError):
    """Raised for a structural error confined to a single task object."""


# -------------------- timestamps --------------------
def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Parse 'YYYY-MM-DD HH:MM:SS'; fall back to the epoch on mismatch."""
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        logger.warning("Failed to parse timestamp string: {!r}, using epoch", text)
        return EPOCH


# -------------------- writer --------------------
def escape_string(text: str) -> str:
    return ''.join(_ESCAPES.get(ch, ch) for ch in text)


def serialize(tasks: Iterable[Task]) -> str:
    """Render tasks as the on-disk array, fields in a fixed order."""
    blocks: List[str] = []
    for task in tasks:
        blocks.append(
            ' {\n'
            f'   "id": {task.id},\n'
            f'   "description": "{escape_string(task.description)}",\n'
            f'   "status": "{task.status.value}",\n'
            f'   "createdAt": "{format_timestamp(task.created_at)}",\n'
            f'   "updatedAt": "{format_timestamp(task.updated_at)}"\n'
            ' }'
        )
    body = ''.join(block + ',\n' for block in blocks[:-1])
    if blocks:
        body += blocks[-1] + '\n'
    return '[\n' + body + ']\n'


# -------------------- reader --------------------
class _ObjectScanner:
    """Recursive-descent reader for one flat task object."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ''

    def _skip_ws(self) -> None:
        while self._peek() and self._peek() in _WHITESPACE:
            self.pos += 1

    def _expect(self, ch: str, context: str) -> None:
        self._skip_ws()
        found = self._peek()
        if found != ch:
            raise TaskParseError(f"expected '{ch}' {context}, found {found or 'end of input'!r}")
        self.pos += 1

    def _read_string(self, context: str) -> str:
        self._expect('"', context)
        chars: List[str] = []
        while True:
            ch = self._peek()
            if not ch:
                raise TaskParseError(f"unterminated string {context}")
            self.pos += 1
            if ch == '"':
                return ''.join(chars)
            if ch == '\\':
                nxt = self._peek()
                if not nxt:
                    raise TaskParseError(f"unterminated escape {context}")
                self.pos += 1
                # unknown escapes keep the escaped character as-is
                chars.append(_UNESCAPES.get(nxt, nxt))
            else:
                chars.append(ch)

    def _read_value(self, key: str) -> Value:
        self._skip_ws()
        if self._peek() == '"':
            return self._read_string(f"for value of key '{key}'")
        match = _INT_RE.match(self.text, self.pos)
        if not match:
            raise TaskParseError(f"failed to read value for key '{key}'")
        self.pos = match.end()
        return int(match.group())

    def read_fields(self) -> Dict[str, Value]:
        fields: Dict[str, Value] = {}
        self._expect('{', 'at start of task object')
        while True:
            key = self._read_string('for key')
            self._expect(':', f"after key '{key}'")
            fields[key] = self._read_value(key)
            self._skip_ws()
            ch = self._peek()
            if ch == ',':
                self.pos += 1
                continue
            if ch == '}':
                self.pos += 1
                break
            if not ch:
                raise TaskParseError(f"unexpected end of input after value for key '{key}'")
            raise TaskParseError(f"expected ',' or '}}' after value for key '{key}', found {ch!r}")
        self._skip_ws()
        if self.pos != len(self.text):
            raise TaskParseError("unexpected text after end of task object")
        return fields


def _build_task(fields: Dict[str, Value]) -> Task:
    task_id: Optional[int] = None
    description = ''
    status = TaskStatus.TODO
    created_at = updated_at = EPOCH
    for key, value in fields.items():
        if key == 'id':
            if not isinstance(value, int):
                raise TaskParseError(f"expected numeric value for key 'id', found {value!r}")
            task_id = value
            continue
        if key not in ('description', 'status', 'createdAt', 'updatedAt'):
            logger.warning("Unknown key '{}' in task object, ignoring", key)
            continue
        if not isinstance(value, str):
            raise TaskParseError(f"expected string value for key '{key}', found {value!r}")
        if key == 'description':
            description = value
        elif key == 'status':
            status = TaskStatus.parse(value)
        elif key == 'createdAt':
            created_at = parse_timestamp(value)
        else:
            updated_at = parse_timestamp(value)
    if task_id is None:
        raise TaskParseError("missing key 'id'")
    if task_id <= 0:
        raise TaskParseError(f"id must be positive, found {task_id}")
    return Task(id=task_id, description=description, status=status,
                created_at=created_at, updated_at=updated_at)


def parse_task_object(text: str) -> Task:
    """Parse a single '{...}' substring; raises TaskParseError."""
    return _build_task(_ObjectScanner(text).read_fields())


def _find_object_end(content: str, start: int, stop: int) -> int:
    """Index of the '}' closing the object opened at start, or -1.

    Braces inside quoted strings are not counted.
    """
    depth = 0
    in_string = False
    pos = start
    while pos < stop:
        ch = content[pos]
        if in_string:
            if ch == '\\':
                pos += 1
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    return -1


def deserialize(text: str, source: str = '<string>') -> List[Task]:
    """Read tasks from text, skipping damaged records individually.

    Returns an empty list for empty text, text that is not an array, or an
    array whose braces never balance.
    """
    content = text.strip(_WHITESPACE)
    if len(content) <= 1 or content[0] != '[' or content[-1] != ']':
        if content:
            logger.warning("'{}' is malformed or empty. Starting with empty task list.", source)
        return []

    tasks: List[Task] = []
    stop = len(content) - 1
    pos = 1
    while pos < stop:
        obj_start = content.find('{', pos, stop)
        if obj_start == -1:
            break
        obj_end = _find_object_end(content, obj_start, stop)
        if obj_end == -1:
            logger.warning("Malformed JSON structure in '{}'. Mismatched braces.", source)
            return []
        try:
            tasks.append(parse_task_object(content[obj_start:obj_end + 1]))
        except TaskParseError as exc:
            logger.warning("Skipping malformed task object in '{}': {}", source, exc)
        pos = obj_end + 1
    return tasks


# -------------------- file boundary --------------------
class Storage:
    """Loads and saves the whole task list at a single path."""

    def __init__(self, path: Union[str, Path] = DEFAULT_TASKS_FILE):
        self.path = Path(path)

    def load(self) -> List[Task]:
        """Load tasks from disk.

        Missing file -> empty list. Unreadable file -> warning, empty list.
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read '{}': {}. Starting with empty task list.", self.path, exc)
            return []
        tasks = deserialize(content, source=str(self.path))
        if tasks:
            logger.info("Loaded {} task(s) from {}.", len(tasks), self.path)
        return tasks

    def save(self, tasks: List[Task]) -> bool:
        """Overwrite the file with the full list; False if it cannot be written.

        The text is encoded before the file is opened, so an unencodable
        description leaves the existing file untouched.
        """
        try:
            data = serialize(tasks).encode('utf-8')
        except UnicodeEncodeError as exc:
            logger.error("Could not encode tasks for '{}': {}", self.path, exc)
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'wb') as f:
                f.write(data)
        except OSError as exc:
            logger.error("Could not open '{}' for writing: {}", self.path, exc)
            return False
        logger.info("Saved {} task(s) to {}.", len(tasks), self.path)
        return True
