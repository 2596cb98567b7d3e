"""Data models for the task CLI.

Exposes the TaskStatus enumeration and the Task dataclass. Stored status
keys are "todo", "in-progress" and "done"; anything else read back from
disk collapses to "todo" so a record can never carry an unknown status.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def parse(cls, text: str) -> "TaskStatus":
        """Map a stored status string to a member, defaulting to TODO."""
        for status in cls:
            if status.value == text:
                return status
        return cls.TODO

    def __str__(self) -> str:
        return self.value


def now() -> datetime:
    """Current local time, truncated to whole seconds."""
    return datetime.now().replace(microsecond=0)


def next_id(tasks: Iterable["Task"]) -> int:
    """Return max(existing ids) + 1, or 1 for an empty list."""
    return max((t.id for t in tasks), default=0) + 1


@dataclass
class Task:
    """A single to-do entry.

    Fields:
        id: Positive integer, unique in the store, never reassigned.
        description: Free text; may contain quotes, backslashes, newlines.
        status: One of the TaskStatus members.
        created_at: Naive local timestamp, second resolution.
        updated_at: Bumped on every edit; never earlier than created_at.
    """
    id: int
    description: str
    status: TaskStatus = TaskStatus.TODO
    created_at: datetime = field(default_factory=now)
    updated_at: datetime = field(default_factory=now)

    def touch(self) -> None:
        self.updated_at = max(now(), self.created_at)
