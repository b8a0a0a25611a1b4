"""
Scheduling for tasks without a deadline.

Open tasks run after every deadline task has claimed its days, inside a
rolling window, spacing their sessions by a frequency-derived day gap.
"""

from typing import List

from ...models import TargetFrequency
from ...schemas import Task
from ..core.constants import DEFAULT_MIN_WORK_BLOCK_MINUTES, UNSCHEDULED_EPSILON_HOURS
from ..scoring.priority_scoring import task_priority_key
from ..utils.time_utils import round_hours

# Consecutive misses after which a flexible task stops skipping days
FLEXIBLE_FALLBACK_FAILURES = 2


def open_session_hours(task: Task, remaining: float, available: float, default_hours: float) -> float:
    """
    Session length for an open task on a day with the given free hours.
    Weekly tasks get longer blocks and daily tasks shorter ones.
    """
    min_block = (task.min_work_block or DEFAULT_MIN_WORK_BLOCK_MINUTES) / 60
    max_length = task.max_session_length or default_hours
    if task.target_frequency == TargetFrequency.WEEKLY:
        max_length = min(max_length * 2, remaining)
    elif task.target_frequency == TargetFrequency.DAILY:
        max_length = min(max_length * 0.75, remaining)
    return round_hours(min(remaining, available, max(min_block, max_length)))


def schedule_open_task(generator, strategy, task: Task) -> None:
    days = generator.valid_days(task)
    if not days:
        return

    gap = strategy.open_task_gap(task, len(days))
    min_block = (task.min_work_block or DEFAULT_MIN_WORK_BLOCK_MINUTES) / 60
    failures = 0
    index = 0

    while index < len(days):
        remaining = generator.remaining_hours(task)
        if remaining < UNSCHEDULED_EPSILON_HOURS:
            return
        day = days[index]
        available = generator.capacity.remaining(day)

        if task.is_one_time_task:
            if remaining <= available and generator.try_place(task, day, remaining):
                return
            index += 1
            continue

        placed = 0.0
        if available >= min(min_block, remaining):
            hours = open_session_hours(task, remaining, available, strategy.open_task_session_hours)
            placed = generator.place_up_to(task, day, hours, min_hours=min(min_block, remaining))

        if placed > 0:
            failures = 0
            index += gap
            continue

        failures += 1
        if task.target_frequency == TargetFrequency.FLEXIBLE and failures > FLEXIBLE_FALLBACK_FAILURES:
            gap = 1
        index += 1


def schedule_open_tasks(generator, strategy, tasks: List[Task]) -> None:
    for task in sorted(tasks, key=task_priority_key):
        schedule_open_task(generator, strategy, task)
        leftover = generator.remaining_hours(task)
        if leftover >= UNSCHEDULED_EPSILON_HOURS:
            generator.logger.info("Open task %s has %.2fh left after its window", task.id, leftover,
                                  extra={"task_id": task.id, "unscheduled_hours": leftover})
