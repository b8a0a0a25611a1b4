"""
Workload-based scoring functions for session health and day utilization.
"""

from typing import Dict, List

from ...config import CompromisedThresholds
from ...schemas import StudyPlan, StudySession, UserSettings


def active_sessions(plan: StudyPlan) -> List[StudySession]:
    """Sessions still counting toward the day's load."""
    return [s for s in plan.planned_tasks if not s.is_completed and not s.is_skipped]


def calculate_day_load(plan: StudyPlan) -> float:
    return sum(s.allocated_hours for s in active_sessions(plan))


def calculate_day_utilization(plan: StudyPlan) -> float:
    """
    Fraction of the day's available hours already claimed by sessions.
    A day without capacity but with work on it is reported as overloaded.
    """
    load = calculate_day_load(plan)
    if plan.available_hours <= 0:
        return 1.0 if load > 0 else 0.0
    return load / plan.available_hours


def calculate_spare_capacity(plan: StudyPlan) -> float:
    return max(0.0, plan.available_hours - calculate_day_load(plan))


def average_session_hours(plans: List[StudyPlan]) -> Dict[str, float]:
    """Mean active session length per task id across all plans."""
    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for plan in plans:
        for session in active_sessions(plan):
            totals[session.task_id] = totals.get(session.task_id, 0.0) + session.allocated_hours
            counts[session.task_id] = counts.get(session.task_id, 0) + 1
    return {task_id: totals[task_id] / counts[task_id] for task_id in totals}


def is_session_compromised(session: StudySession, plan: StudyPlan, task_average: float,
                           settings: UserSettings, thresholds: CompromisedThresholds,
                           check_day_load: bool = True) -> bool:
    """
    A session is compromised when it is too short to be useful, sits on an
    overloaded day, or is much smaller than the task's typical session.
    """
    if session.is_completed or session.is_skipped or session.is_manual_override:
        return False

    min_session_hours = settings.min_session_length / 60
    if session.allocated_hours < min_session_hours:
        return True

    if check_day_load and calculate_day_utilization(plan) > thresholds.day_utilization:
        return True

    return task_average > 0 and session.allocated_hours < thresholds.relative_size * task_average
