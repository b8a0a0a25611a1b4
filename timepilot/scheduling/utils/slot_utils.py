"""
Session-level utility functions for plan post-processing.
"""

from typing import Dict, Iterable, List

from ...schemas import FixedCommitment, StudyPlan, StudySession, Task, UserSettings
from ..constraints.time_constraints import calculate_daily_available_hours
from ..core.slot_finder import find_next_available_time_slot
from ..scoring.priority_scoring import task_priority_key
from .time_utils import round_hours, time_to_minutes


def plan_id_for(date: str) -> str:
    return f"plan-{date}"


def new_plan(date: str, settings: UserSettings, commitments: List[FixedCommitment]) -> StudyPlan:
    return StudyPlan(
        id=plan_id_for(date),
        date=date,
        planned_tasks=[],
        total_study_hours=0,
        available_hours=calculate_daily_available_hours(date, settings, commitments),
    )


def clone_plans(plans: Iterable[StudyPlan]) -> List[StudyPlan]:
    return [plan.model_copy(deep=True) for plan in plans]


def refresh_plan_totals(plan: StudyPlan) -> StudyPlan:
    """Recompute total hours and the overload flag after sessions changed."""
    plan.planned_tasks.sort(key=lambda s: time_to_minutes(s.start_time))
    plan.total_study_hours = round_hours(sum(
        s.allocated_hours for s in plan.planned_tasks if not s.is_skipped
    ))
    plan.is_overloaded = plan.total_study_hours > plan.available_hours + 1e-6
    return plan


def is_fixed(session: StudySession) -> bool:
    """Sessions whose position the engine must not change."""
    return session.is_completed or session.is_skipped or session.is_manual_override


def scheduled_hours_by_task(plans: Iterable[StudyPlan]) -> Dict[str, float]:
    """Non-skipped hours per task id, completed sessions included."""
    totals: Dict[str, float] = {}
    for plan in plans:
        for session in plan.planned_tasks:
            if session.is_skipped:
                continue
            totals[session.task_id] = totals.get(session.task_id, 0.0) + session.allocated_hours
    return {task_id: round_hours(hours) for task_id, hours in totals.items()}


def combine_adjacent_sessions(plan: StudyPlan) -> StudyPlan:
    """
    Merge sessions of the same task whose time ranges touch exactly.
    Fixed sessions are never merged.
    """
    merged: List[StudySession] = []
    for session in sorted(plan.planned_tasks, key=lambda s: time_to_minutes(s.start_time)):
        last = merged[-1] if merged else None
        if (last is not None
                and last.task_id == session.task_id
                and last.end_time == session.start_time
                and not is_fixed(last) and not is_fixed(session)):
            last.end_time = session.end_time
            last.allocated_hours = round_hours(last.allocated_hours + session.allocated_hours)
            continue
        merged.append(session)
    plan.planned_tasks = merged
    return plan


def renumber_sessions(plans: List[StudyPlan]) -> None:
    """
    Give each task's movable sessions consecutive numbers in date then time
    order. Fixed sessions keep their numbers and new ones continue after them.
    """
    counters: Dict[str, int] = {}
    for plan in plans:
        for session in plan.planned_tasks:
            if is_fixed(session) and session.session_number:
                counters[session.task_id] = max(counters.get(session.task_id, 0), session.session_number)

    for plan in sorted(plans, key=lambda p: p.date):
        for session in sorted(plan.planned_tasks, key=lambda s: time_to_minutes(s.start_time)):
            if is_fixed(session):
                continue
            counters[session.task_id] = counters.get(session.task_id, 0) + 1
            session.session_number = counters[session.task_id]


def reassign_slots_by_priority(plan: StudyPlan, tasks_by_id: Dict[str, Task], settings: UserSettings,
                               commitments: List[FixedCommitment]) -> StudyPlan:
    """
    Re-sort a day's movable sessions by task priority and lay them out again
    from the start of the window, so higher priority work claims earlier slots.

    The day is rewritten only if every movable session fits; otherwise the
    existing layout is kept.
    """
    fixed = [s for s in plan.planned_tasks if is_fixed(s)]
    movable = [s for s in plan.planned_tasks if not is_fixed(s)]
    if len(movable) < 2:
        return plan

    def sort_key(session: StudySession):
        task = tasks_by_id.get(session.task_id)
        if task is None:
            return (True, "9999-12-31", session.task_id, session.session_number or 0)
        return task_priority_key(task) + (session.session_number or 0,)

    placed: List[StudySession] = list(fixed)
    relaid: List[StudySession] = []
    for session in sorted(movable, key=sort_key):
        slot = find_next_available_time_slot(session.allocated_hours, placed, commitments, plan.date, settings)
        if slot is None:
            return plan
        moved = session.model_copy(update={'start_time': slot.start, 'end_time': slot.end})
        placed.append(moved)
        relaid.append(moved)

    plan.planned_tasks = fixed + relaid
    return refresh_plan_totals(plan)
