"""
Task classification: partitions tasks into urgent, due-today, overdue and
completed sets from their due-date fields and status.

Only tasks whose due_date_type is "date" are compared against the calendar.
"urgent" and "asap" are urgent whatever their due_date says, "unknown" is
never overdue. Completed tasks only ever land in the completed set.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from models import Task, DueDateType, TaskStatus

URGENT_TYPES = (DueDateType.URGENT, DueDateType.ASAP)


def parse_due_date(value: Optional[str]) -> Optional[date]:
    """Calendar date of an ISO date/datetime string, None when missing or unparseable."""
    if not value:
        return None
    try:
        # fromisoformat rejects the trailing Z browsers send before Python 3.11
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def is_completed(task: Task) -> bool:
    return task.status == TaskStatus.COMPLETED


def is_urgent(task: Task) -> bool:
    return not is_completed(task) and task.due_date_type in URGENT_TYPES


def _scheduled_date(task: Task) -> Optional[date]:
    if is_completed(task) or task.due_date_type != DueDateType.DATE:
        return None
    return parse_due_date(task.due_date)


def is_due_today(task: Task, today: Optional[date] = None) -> bool:
    due = _scheduled_date(task)
    return due is not None and due == (today or date.today())


def is_overdue(task: Task, today: Optional[date] = None) -> bool:
    due = _scheduled_date(task)
    return due is not None and due < (today or date.today())


@dataclass
class TaskClassification:
    urgent: list[Task] = field(default_factory=list)
    due_today: list[Task] = field(default_factory=list)
    overdue: list[Task] = field(default_factory=list)
    completed: list[Task] = field(default_factory=list)

    @property
    def has_open_matches(self) -> bool:
        return bool(self.urgent or self.overdue or self.due_today)


def classify_tasks(tasks: list[Task], today: Optional[date] = None) -> TaskClassification:
    today = today or date.today()
    result = TaskClassification()
    for task in tasks:
        if is_completed(task):
            result.completed.append(task)
            continue
        if is_urgent(task):
            result.urgent.append(task)
        if is_due_today(task, today):
            result.due_today.append(task)
        if is_overdue(task, today):
            result.overdue.append(task)
    return result
