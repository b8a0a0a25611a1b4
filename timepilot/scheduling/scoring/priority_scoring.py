"""
Priority-based scoring functions for task ordering and missed-session recovery.
"""

from typing import Optional

from ...config import PriorityBands
from ...schemas import StudySession, Task
from ..utils.time_utils import days_between

# Sorts after any real date so open tasks come last
FAR_FUTURE = "9999-12-31"


def task_priority_key(task: Task) -> tuple:
    """
    Sort key putting important tasks first, then earlier deadlines.
    Ties fall back to the task id so ordering is stable across runs.
    """
    return (not task.importance, task.deadline or FAR_FUTURE, task.id)


def is_urgent(task: Task, today: str, within_days: int = 3) -> bool:
    if not task.deadline:
        return False
    return days_between(today, task.deadline) <= within_days


def calculate_urgency_score(deadline: Optional[str], today: str, bands: PriorityBands) -> float:
    """
    Deadline urgency in points. Overdue saturates at the top band; distant
    deadlines decay linearly from distant_base down to zero.
    """
    if not deadline:
        return 0.0

    days_until = days_between(today, deadline)
    if days_until < 0:
        return bands.overdue
    elif days_until <= 1:
        return bands.due_within_1_day
    elif days_until <= 3:
        return bands.due_within_3_days
    elif days_until <= 7:
        return bands.due_within_7_days
    return max(0.0, bands.distant_base - days_until)


def calculate_age_score(session_date: str, today: str, bands: PriorityBands) -> float:
    """Points for how many days a session has been waiting."""
    days_late = max(0, days_between(session_date, today))
    return min(bands.age_cap, days_late * bands.age_per_day)


def calculate_size_score(hours: float, bands: PriorityBands) -> float:
    return min(bands.size_cap, hours * bands.size_per_hour)


def calculate_redistribution_priority(session: StudySession, session_date: str, task: Task,
                                      today: str, bands: PriorityBands) -> float:
    """
    Priority of a missed session in the recovery queue. Higher is processed first.

    importance + deadline urgency + age + size
    """
    importance_score = bands.importance if task.importance else 0.0
    urgency_score = calculate_urgency_score(task.deadline, today, bands)
    age_score = calculate_age_score(session_date, today, bands)
    size_score = calculate_size_score(session.allocated_hours, bands)

    return importance_score + urgency_score + age_score + size_score
