"""
Plan generator that orchestrates slot search, capacity and the planning strategies.
"""

import logging
from typing import Dict, List, Optional

from ...config import SchedulingConfig, resolve_config
from ...logging_config import plan_run
from ...models import SessionStatus, TaskStatus
from ...schemas import (
    FixedCommitment, PlanResult, StudyPlan, StudySession, Task, UnscheduledSuggestion, UserSettings
)
from ..algorithms.chunking import SessionDistributor
from ..algorithms.open_tasks import schedule_open_tasks
from ..algorithms.strategies import PlanningStrategy, get_strategy
from ..constraints.time_constraints import is_work_day
from ..scoring.priority_scoring import task_priority_key
from ..utils.slot_utils import (
    combine_adjacent_sessions, new_plan, reassign_slots_by_priority, refresh_plan_totals, renumber_sessions
)
from ..utils.time_utils import add_days, iter_dates, resolve_today, round_hours
from .capacity import DailyCapacityTracker
from .constants import UNSCHEDULED_EPSILON_HOURS
from .slot_finder import TimeSlotFinder

# ================================
# INITIALIZATION & SETUP
# ================================

class PlanGenerator:
    """
    Builds a multi-day study plan for one run.

    The generator owns the calendar being built (plans by date), the capacity
    ledger and the per-task hour counters. Strategies decide which task claims
    which day; every placement goes through try_place so capacity and time
    slots are always checked the same way.
    """
    def __init__(self, settings: UserSettings, commitments: List[FixedCommitment], today: Optional[str] = None,
                 config: Optional[SchedulingConfig] = None, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.commitments = commitments
        self.config = resolve_config(config)
        self.today = resolve_today(today, self.config.timezone)
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self.finder = TimeSlotFinder(settings, commitments)
        self.distributor = SessionDistributor(settings)
        self.capacity = DailyCapacityTracker(settings, commitments)

        self.plans: Dict[str, StudyPlan] = {}
        self.consumed: Dict[str, float] = {}  # Hours per task already settled on the calendar
        self.session_counts: Dict[str, int] = {}
        self.tasks_by_id: Dict[str, Task] = {}

    def plan_for(self, date: str) -> StudyPlan:
        if date not in self.plans:
            self.plans[date] = new_plan(date, self.settings, self.commitments)
        return self.plans[date]

    def seed_sessions(self, plans: List[StudyPlan]) -> None:
        """
        Put sessions that must survive this run onto the calendar before any
        strategy runs. Their hours count against the task and, unless
        completed or skipped, against the day.
        """
        for plan in plans:
            for session in plan.planned_tasks:
                target = self.plan_for(plan.date)
                target.planned_tasks.append(session)
                self.capacity.seed(plan.date, [session])
                self.consumed[session.task_id] = round_hours(
                    self.consumed.get(session.task_id, 0.0) + session.allocated_hours
                )
                self.session_counts[session.task_id] = max(
                    self.session_counts.get(session.task_id, 0), session.session_number or 0
                )

# ================================
# TASK RANGES
# ================================

    def remaining_hours(self, task: Task) -> float:
        return max(0.0, round_hours(task.estimated_hours - self.consumed.get(task.id, 0.0)))

    def release_hours(self, task_id: str, hours: float) -> None:
        """Give back hours a later pass took off the calendar."""
        self.consumed[task_id] = max(0.0, round_hours(self.consumed.get(task_id, 0.0) - hours))

    def last_valid_day(self, task: Task) -> str:
        """Deadline minus buffer days, or the end of the rolling window for open tasks."""
        if task.has_deadline:
            return add_days(task.deadline, -self.settings.buffer_days)
        return add_days(self.today, self.config.no_deadline_window_days)

    def valid_days(self, task: Task) -> List[str]:
        """Work days from max(today, start date) through the task's last valid day."""
        start = max(self.today, task.start_date or self.today)
        end = self.last_valid_day(task)
        if start > end:
            return []
        return [d for d in iter_dates(start, end) if is_work_day(d, self.settings)]

# ================================
# PLACEMENT
# ================================

    def can_fit(self, date: str, hours: float) -> bool:
        """True when the day has both the capacity and a free slot for the hours."""
        hours = round_hours(hours)
        if hours <= 0 or not self.capacity.can_place(date, hours):
            return False
        return self.finder.find(hours, self.plan_for(date).planned_tasks, date) is not None

    def try_place(self, task: Task, date: str, hours: float) -> Optional[StudySession]:
        """Place exactly the given hours on a date, or nothing."""
        hours = round_hours(min(hours, self.remaining_hours(task)))
        if hours <= 0 or not self.capacity.can_place(date, hours):
            return None

        plan = self.plan_for(date)
        slot = self.finder.find(hours, plan.planned_tasks, date)
        if slot is None:
            return None

        self.capacity.place(date, hours)
        self.session_counts[task.id] = self.session_counts.get(task.id, 0) + 1
        self.consumed[task.id] = round_hours(self.consumed.get(task.id, 0.0) + hours)

        session = StudySession(
            task_id=task.id,
            scheduled_time=date,
            start_time=slot.start,
            end_time=slot.end,
            allocated_hours=hours,
            session_number=self.session_counts[task.id],
            is_flexible=True,
            status=SessionStatus.SCHEDULED,
        )
        plan.planned_tasks.append(session)
        return session

    def place_up_to(self, task: Task, date: str, hours: float, min_hours: Optional[float] = None) -> float:
        """
        Place as much of the requested hours as the day allows. When no slot
        fits the full amount, fall back to the day's largest free gap if it
        still holds a meaningful session. Returns the hours placed.
        """
        hours = round_hours(min(hours, self.remaining_hours(task), self.capacity.remaining(date)))
        if hours <= 0:
            return 0.0
        if self.try_place(task, date, hours):
            return hours

        floor = self.distributor.min_session_hours if min_hours is None else min_hours
        largest = round_hours(min(self.finder.largest_gap_hours(self.plan_for(date).planned_tasks, date), hours))
        if largest > 0 and largest >= floor and self.try_place(task, date, largest):
            return largest
        return 0.0

# ================================
# GENERATION
# ================================

    def generate(self, tasks: List[Task], strategy: Optional[PlanningStrategy] = None) -> PlanResult:
        strategy = strategy or get_strategy(self.settings.study_plan_mode)
        with plan_run():
            self.tasks_by_id = {task.id: task for task in tasks}
            pending = [t for t in tasks if t.status != TaskStatus.COMPLETED]
            schedulable = [t for t in pending if self.remaining_hours(t) >= UNSCHEDULED_EPSILON_HOURS]
            deadline_tasks = [t for t in schedulable if t.has_deadline]
            open_tasks = [t for t in schedulable if not t.has_deadline]

            self.logger.info("Generating %s plan for %s deadline and %s open tasks",
                             strategy.mode.value, len(deadline_tasks), len(open_tasks),
                             extra={"today": self.today, "mode": strategy.mode.value})

            strategy.schedule(self, deadline_tasks)
            schedule_open_tasks(self, strategy, open_tasks)

            plans = self.finalize_plans()
            suggestions = self.build_suggestions(pending)
            self.logger.info("Plan ready: %s days, %s unscheduled tasks", len(plans), len(suggestions))
            return PlanResult(plans=plans, suggestions=suggestions)

    def finalize_plans(self) -> List[StudyPlan]:
        """Merge touching sessions, renumber, then let priority order claim earlier slots."""
        plans = [plan for plan in self.plans.values() if plan.planned_tasks]
        for plan in plans:
            combine_adjacent_sessions(plan)
        renumber_sessions(plans)
        for plan in plans:
            reassign_slots_by_priority(plan, self.tasks_by_id, self.settings, self.commitments)
            refresh_plan_totals(plan)
        return sorted(plans, key=lambda p: p.date)

    def build_suggestions(self, tasks: List[Task]) -> List[UnscheduledSuggestion]:
        """One suggestion per task whose estimate could not be fully placed."""
        suggestions = []
        for task in sorted(tasks, key=task_priority_key):
            unscheduled_minutes = round(self.remaining_hours(task) * 60)
            if unscheduled_minutes >= 1:
                suggestions.append(UnscheduledSuggestion(
                    task_title=task.title,
                    unscheduled_minutes=unscheduled_minutes,
                    importance=task.importance,
                    deadline=task.deadline,
                ))
        return suggestions

    def __repr__(self):
        return f"PlanGenerator(today={self.today}, mode={self.settings.study_plan_mode.value}, days={len(self.plans)})"
