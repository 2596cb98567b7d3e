"""Task list logic: holds tasks in file order, ID management, mutation, and rendering.

Mutators return the affected Task, or None when no task has the given id;
reporting "not found" is left to the caller.
"""
from typing import Iterable, List, Optional
from models import Task, TaskStatus, next_id, now
from storage import format_timestamp
from theme import color, HEADER_COLOR, STATUS_COLOR, ID_COLOR, EMPTY_COLOR, BOLD

SEPARATOR = '-' * 24

class TaskList:
    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self.tasks: List[Task] = list(tasks or [])

    # -------------------- queries --------------------
    def get(self, task_id: int) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def filter(self, status: Optional[TaskStatus] = None) -> List[Task]:
        if status is None:
            return list(self.tasks)
        return [t for t in self.tasks if t.status == status]

    def next_id(self) -> int:
        return next_id(self.tasks)

    # -------------------- task operations --------------------
    def add(self, description: str) -> Task:
        stamp = now()
        task = Task(id=self.next_id(), description=description, status=TaskStatus.TODO,
                    created_at=stamp, updated_at=stamp)
        self.tasks.append(task)
        return task

    def update(self, task_id: int, description: str) -> Optional[Task]:
        task = self.get(task_id)
        if task is not None:
            task.description = description
            task.touch()
        return task

    def mark(self, task_id: int, status: TaskStatus) -> Optional[Task]:
        task = self.get(task_id)
        if task is not None:
            task.status = status
            task.touch()
        return task

    def delete(self, task_id: int) -> Optional[Task]:
        task = self.get(task_id)
        if task is not None:
            self.tasks.remove(task)
        return task

    # -------------------- display --------------------
    def render(self, status: Optional[TaskStatus] = None) -> List[str]:
        lines = [color('--- Task List ---', HEADER_COLOR, BOLD)]
        shown = self.filter(status)
        for task in shown:
            status_col = STATUS_COLOR.get(task.status.value, '')
            lines.append(
                f"{color(f'ID: {task.id}', ID_COLOR)}"
                f" | Status: {color(task.status.value, status_col)}"
                f" | Created: {format_timestamp(task.created_at)}"
                f" | Updated: {format_timestamp(task.updated_at)}"
            )
            lines.append(f"Description: {task.description}")
            lines.append(color(SEPARATOR, HEADER_COLOR))
        if not shown:
            if status is not None:
                lines.append(color(f'No tasks found with status: {status.value}', EMPTY_COLOR))
            else:
                lines.append(color('No tasks in the list.', EMPTY_COLOR))
        lines.append(f'Total tasks: {len(self.tasks)}')
        lines.append(color(SEPARATOR, HEADER_COLOR))
        return lines

    def display(self, status: Optional[TaskStatus] = None) -> None:
        for line in self.render(status):
            print(line)

    def __len__(self) -> int:
        return len(self.tasks)
