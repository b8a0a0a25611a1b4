"""
Compromised-session repair.

Small or badly placed sessions are dissolved and their minutes handed to the
same task's healthy sessions, which grow in place. A session is only dissolved
when nearly all of it can be absorbed; otherwise it is left exactly as it was.
"""

import logging
import math
from typing import List, Optional, Tuple

from ...config import SchedulingConfig, resolve_config
from ...models import TaskStatus
from ...schemas import FixedCommitment, StudyPlan, StudySession, Task, UserSettings
from ..core.slot_finder import collect_busy_intervals, get_window_minutes
from ..scoring.workload_scoring import (
    active_sessions, average_session_hours, calculate_spare_capacity, is_session_compromised
)
from ..utils.slot_utils import clone_plans, refresh_plan_totals
from .chunking import max_session_hours
from ..utils.time_utils import minutes_to_time, round_hours, time_to_minutes

logger = logging.getLogger(__name__)


def find_compromised_sessions(plans: List[StudyPlan], settings: UserSettings,
                              config: SchedulingConfig) -> List[Tuple[StudyPlan, StudySession]]:
    """
    Compromised sessions, smallest first. On an overloaded day only the
    smallest movable session counts as compromised by the day's load.
    """
    thresholds = config.compromised
    averages = average_session_hours(plans)
    found = []
    for plan in plans:
        movable = [s for s in active_sessions(plan) if not s.is_manual_override]
        if not movable:
            continue
        smallest = min(movable, key=lambda s: (s.allocated_hours, s.start_time))
        for session in movable:
            if is_session_compromised(session, plan, averages.get(session.task_id, 0.0), settings, thresholds,
                                      check_day_load=session is smallest):
                found.append((plan, session))
    found.sort(key=lambda pair: (pair[1].allocated_hours, pair[0].date, pair[1].start_time))
    return found


def free_minutes_after(session: StudySession, plan: StudyPlan, ignore: StudySession,
                       settings: UserSettings, commitments: List[FixedCommitment]) -> int:
    """Minutes a session can grow before reaching the next busy interval or the window end."""
    others = [s for s in plan.planned_tasks if s is not session and s is not ignore]
    end = time_to_minutes(session.end_time)
    _, limit = get_window_minutes(plan.date, settings)
    for interval in collect_busy_intervals(others, commitments, plan.date, settings):
        if interval.end <= end:
            continue
        if interval.start <= end:
            return 0
        limit = min(limit, interval.start - settings.buffer_time_between_sessions)
    return max(0, limit - end)


def repair_compromised_sessions(plans: List[StudyPlan], tasks: List[Task], settings: UserSettings,
                                commitments: List[FixedCommitment], config: Optional[SchedulingConfig] = None,
                                log: Optional[logging.Logger] = None) -> List[StudyPlan]:
    """
    Return new plans with compromised sessions absorbed into healthy ones.
    The input plans are not modified.
    """
    config = resolve_config(config)
    log = log if log is not None else logger
    plans = clone_plans(plans)
    pending_ids = {task.id for task in tasks if task.status != TaskStatus.COMPLETED}
    cap_minutes = round(max_session_hours(settings) * 60)

    for plan, compromised in find_compromised_sessions(plans, settings, config):
        if compromised.task_id not in pending_ids or not any(s is compromised for s in plan.planned_tasks):
            continue

        compromised_ids = {id(s) for _, s in find_compromised_sessions(plans, settings, config)}
        targets = []
        for target_plan in plans:
            for session in active_sessions(target_plan):
                if (session is compromised or session.task_id != compromised.task_id
                        or session.is_manual_override or id(session) in compromised_ids):
                    continue
                day_spare = calculate_spare_capacity(target_plan)
                if target_plan is plan:
                    day_spare += compromised.allocated_hours
                spare = min(
                    cap_minutes - round(session.allocated_hours * 60),
                    math.floor(round_hours(day_spare) * 60),
                    free_minutes_after(session, target_plan, compromised, settings, commitments),
                )
                if spare > 0:
                    targets.append((spare, target_plan, session))

        if not targets:
            continue

        targets.sort(key=lambda t: (-t[0], t[1].date, t[2].start_time))
        needed = round(compromised.allocated_hours * 60)
        grants = _share_minutes(needed, [spare for spare, _, _ in targets])
        absorbed = sum(grants)

        if absorbed < config.compromised.min_absorption * needed:
            log.info("Leaving %s in place: only %s of %s minutes absorbable",
                     compromised.session_key, absorbed, needed,
                     extra={"task_id": compromised.task_id, "date": plan.date})
            continue

        plan.planned_tasks = [s for s in plan.planned_tasks if s is not compromised]
        for grant, (_, target_plan, session) in zip(grants, targets):
            if grant <= 0:
                continue
            session.end_time = minutes_to_time(time_to_minutes(session.end_time) + grant)
            session.allocated_hours = round_hours(session.allocated_hours + grant / 60)
        if absorbed < needed:
            log.info("Dropped %s unabsorbed minutes of %s", needed - absorbed, compromised.session_key)
        log.debug("Dissolved %s from %s into %s sessions", compromised.session_key, plan.date,
                  sum(1 for g in grants if g > 0))

    for plan in plans:
        refresh_plan_totals(plan)
    return [plan for plan in plans if plan.planned_tasks]


def _share_minutes(needed: int, spares: List[int]) -> List[int]:
    """
    Split needed minutes across targets as evenly as their spare room allows.
    Targets are expected in descending spare order.
    """
    grants = [0] * len(spares)
    remaining = needed
    for index, spare in enumerate(spares):
        share = math.ceil(remaining / (len(spares) - index)) if remaining > 0 else 0
        grants[index] = min(share, spare)
        remaining -= grants[index]
    for index, spare in enumerate(spares):
        if remaining <= 0:
            break
        extra = min(spare - grants[index], remaining)
        grants[index] += extra
        remaining -= extra
    return grants
