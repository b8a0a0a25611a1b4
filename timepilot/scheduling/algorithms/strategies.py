"""
Planning strategies for deadline tasks.

Each strategy decides the order in which tasks claim days and how their hours
are split; the generator it is handed owns the calendar, the capacity ledger
and the slot search, so every placement goes through the same pipeline.
"""

import math
from typing import Dict, List

from ...models import DeadlineType, StudyPlanMode, TargetFrequency
from ...schemas import Task, UserSettings
from ..constraints.time_constraints import is_work_day
from ..core.constants import (
    BALANCED_NO_DEADLINE_SESSION_HOURS, DEFAULT_MIN_WORK_BLOCK_MINUTES,
    DEFAULT_NO_DEADLINE_SESSION_HOURS, UNSCHEDULED_EPSILON_HOURS
)
from ..scoring.priority_scoring import is_urgent, task_priority_key
from ..utils.time_utils import add_days, iter_dates, weekday, days_between


# ================================
# FREQUENCY RULES
# ================================

def check_frequency_deadline_conflict(task: Task, settings: UserSettings, today: str) -> dict:
    """
    Check whether a hard deadline leaves room for enough sessions at the
    task's target frequency.

    Returns {'has_conflict': bool, 'reason': str, 'recommended_frequency': TargetFrequency}
    """
    if not task.has_deadline or task.deadline_type != DeadlineType.HARD:
        return {'has_conflict': False}

    begin = max(today, task.start_date or today)
    last_day = add_days(task.deadline, -settings.buffer_days)
    work_days = sum(1 for d in iter_dates(begin, last_day) if is_work_day(d, settings)) if begin <= last_day else 0

    min_block_hours = (task.min_work_block or DEFAULT_MIN_WORK_BLOCK_MINUTES) / 60
    min_sessions = math.ceil(task.estimated_hours / max(min_block_hours, settings.daily_available_hours))

    gap = frequency_gap(task.target_frequency)
    max_sessions = work_days // gap + 1
    if max_sessions >= min_sessions:
        return {'has_conflict': False}

    recommended = TargetFrequency.DAILY
    for frequency in (TargetFrequency.THREE_TIMES_WEEK, TargetFrequency.DAILY):
        if work_days // frequency_gap(frequency) + 1 >= min_sessions:
            recommended = frequency
            break

    return {
        'has_conflict': True,
        'reason': (
            f"Given your start date, your {task.target_frequency.value} frequency only allows "
            f"{max_sessions} sessions, but you need at least {min_sessions} sessions to complete "
            f"this task before the deadline."
        ),
        'recommended_frequency': recommended,
    }


def frequency_gap(frequency: TargetFrequency) -> int:
    """Days between sessions implied by a target frequency."""
    return {
        TargetFrequency.DAILY: 1,
        TargetFrequency.THREE_TIMES_WEEK: 2,
        TargetFrequency.FLEXIBLE: 3,
        TargetFrequency.WEEKLY: 7,
    }[frequency]


def week_start(date: str) -> str:
    """The Sunday opening the week that contains date."""
    return add_days(date, -weekday(date))


def cap_days_per_week(days: List[str], per_week: int, availability: Dict[str, float]) -> List[str]:
    """
    Keep at most per_week days from each Sunday-based week, preferring the
    days with the most remaining capacity. Result is chronological.
    """
    ranked = sorted(days, key=lambda d: (-availability.get(d, 0.0), d))
    used: Dict[str, int] = {}
    selected = []
    for day in ranked:
        week = week_start(day)
        if used.get(week, 0) < per_week:
            selected.append(day)
            used[week] = used.get(week, 0) + 1
    return sorted(selected)


def filter_days_by_frequency(task: Task, days: List[str], availability: Dict[str, float]) -> List[str]:
    """Thin a task's candidate days down to its target frequency."""
    frequency = task.target_frequency
    if frequency == TargetFrequency.WEEKLY:
        if len(days) >= 14:
            return cap_days_per_week(days, 1, availability)
        return days[::7]

    if frequency == TargetFrequency.THREE_TIMES_WEEK:
        return cap_days_per_week(days, 3, availability)

    if frequency == TargetFrequency.FLEXIBLE:
        per_week = 5 if task.importance else 4
        span = days_between(task.start_date or days[0], task.deadline) if days and task.deadline else 0
        weeks = max(1.0, span / 7)
        if math.ceil(task.estimated_hours / 2) / weeks > per_week:
            per_week = 7
        return cap_days_per_week(days, per_week, availability)

    return days


# ================================
# STRATEGIES
# ================================

class PlanningStrategy:
    """
    Base strategy. Subclasses implement schedule() for deadline tasks and may
    tune how open-ended tasks are spaced.
    """
    mode: StudyPlanMode = None
    open_task_session_hours: float = BALANCED_NO_DEADLINE_SESSION_HOURS

    def schedule(self, generator, tasks: List[Task]) -> None:
        raise NotImplementedError

    def open_task_gap(self, task: Task, day_count: int) -> int:
        """Days to skip between sessions of a task without a deadline."""
        if task.target_frequency == TargetFrequency.WEEKLY:
            return 7
        if task.target_frequency == TargetFrequency.THREE_TIMES_WEEK:
            return 2
        if task.target_frequency == TargetFrequency.FLEXIBLE:
            return 2 if task.importance else 3
        return 1

    def place_one_sitting(self, generator, task: Task, days: List[str]) -> bool:
        hours = generator.remaining_hours(task)
        day = generator.distributor.one_sitting_day(task, days, lambda d: generator.can_fit(d, hours))
        if day is None:
            generator.logger.info("No single day fits one-sitting task %s", task.id,
                                  extra={"task_id": task.id, "hours": hours})
            return False
        return generator.try_place(task, day, hours) is not None

    def spread(self, generator, task: Task, days: List[str]) -> None:
        """Lay the distributor's session lengths onto successive days."""
        lengths = generator.distributor.distribute(task, generator.remaining_hours(task), days)
        for day, length in zip(days, lengths):
            generator.place_up_to(task, day, length)


class EisenhowerStrategy(PlanningStrategy):
    """Strict global order: each day is filled by the most important, most urgent task first."""
    mode = StudyPlanMode.EISENHOWER

    def schedule(self, generator, tasks: List[Task]) -> None:
        ordered = sorted(tasks, key=task_priority_key)
        valid = {task.id: set(generator.valid_days(task)) for task in ordered}
        all_days = sorted(set().union(*valid.values())) if valid else []

        for day in all_days:
            for task in ordered:
                if day not in valid[task.id]:
                    continue
                remaining = generator.remaining_hours(task)
                if remaining < UNSCHEDULED_EPSILON_HOURS:
                    continue
                available = generator.capacity.remaining(day)
                if available <= 0:
                    break
                if task.is_one_time_task:
                    if remaining <= available:
                        generator.try_place(task, day, remaining)
                    continue
                generator.place_up_to(task, day, min(remaining, available))

    def open_task_gap(self, task: Task, day_count: int) -> int:
        return 1


class BalancedStrategy(PlanningStrategy):
    """Four urgency/importance tiers, each spread over its tasks' ranges before the next tier."""
    mode = StudyPlanMode.BALANCED

    def schedule(self, generator, tasks: List[Task]) -> None:
        within = generator.config.urgent_within_days
        urgent = {task.id: is_urgent(task, generator.today, within) for task in tasks}
        tiers = [
            [t for t in tasks if t.importance and urgent[t.id]],
            [t for t in tasks if t.importance and not urgent[t.id]],
            [t for t in tasks if not t.importance and urgent[t.id]],
            [t for t in tasks if not t.importance and not urgent[t.id]],
        ]

        for tier_index, tier in enumerate(tiers):
            generator.logger.debug("Balanced tier %s: %s tasks", tier_index + 1, len(tier))
            for task in sorted(tier, key=task_priority_key):
                days = generator.valid_days(task)
                if not days:
                    continue
                if task.is_one_time_task:
                    self.place_one_sitting(generator, task, days)
                else:
                    self.spread(generator, task, days)


class EvenStrategy(PlanningStrategy):
    """
    Each task is spread over its own range independently, thinned to its
    target frequency. Hours that did not fit are retried in bounded rounds
    over the days that still have capacity.
    """
    mode = StudyPlanMode.EVEN
    open_task_session_hours = DEFAULT_NO_DEADLINE_SESSION_HOURS

    def schedule(self, generator, tasks: List[Task]) -> None:
        ordered = sorted(tasks, key=task_priority_key)

        for task in ordered:
            days = generator.valid_days(task)
            if task.respect_frequency_for_deadlines and not check_frequency_deadline_conflict(
                    task, generator.settings, generator.today)['has_conflict']:
                availability = {d: generator.capacity.remaining(d) for d in days}
                days = filter_days_by_frequency(task, days, availability)
            if not days:
                continue

            if task.is_one_time_task:
                self.place_one_sitting(generator, task, days)
                continue

            self.spread(generator, task, days)
            self.redistribute_leftover(generator, task)

        # Second chance once every task has had its first pass
        for task in ordered:
            if not task.is_one_time_task and generator.remaining_hours(task) >= UNSCHEDULED_EPSILON_HOURS:
                self.redistribute_leftover(generator, task)

    def redistribute_leftover(self, generator, task: Task) -> None:
        min_session = generator.distributor.min_session_hours
        for round_number in range(generator.config.even_redistribution_rounds):
            remaining = generator.remaining_hours(task)
            if remaining < UNSCHEDULED_EPSILON_HOURS:
                return
            days = [d for d in generator.valid_days(task) if generator.capacity.remaining(d) > 0]
            if not days:
                return

            placed = 0.0
            for day, length in zip(days, generator.distributor.distribute(task, remaining, days)):
                if length < min_session and length < remaining:
                    continue
                placed += generator.place_up_to(task, day, length)

            generator.logger.debug("Redistribution round %s for %s placed %.2fh", round_number + 1, task.id, placed,
                                   extra={"task_id": task.id, "round": round_number + 1})
            if placed <= 0:
                return

    def open_task_gap(self, task: Task, day_count: int) -> int:
        needed = max(1, math.ceil(task.estimated_hours / 2))
        optimal = day_count // needed
        if task.target_frequency == TargetFrequency.WEEKLY:
            return max(1, min(7, optimal))
        if task.target_frequency == TargetFrequency.THREE_TIMES_WEEK:
            return max(1, min(2, optimal))
        if task.target_frequency == TargetFrequency.FLEXIBLE:
            return max(1, min(2 if task.importance else 3, optimal))
        return 1


STRATEGIES = {
    StudyPlanMode.EISENHOWER: EisenhowerStrategy,
    StudyPlanMode.BALANCED: BalancedStrategy,
    StudyPlanMode.EVEN: EvenStrategy,
}


def get_strategy(mode: StudyPlanMode) -> PlanningStrategy:
    return STRATEGIES[mode]()
