"""
Pre-flight feasibility checks for a task before it is saved.

Every check is independent and only reads its inputs. A check returns zero or
more warnings; the task is accepted when none of them is critical. A final pass
turns the triggered checks back into concrete alternative parameters.
"""

import logging
import math
from typing import Dict, List, Optional

from ...config import SchedulingConfig, resolve_config
from ...models import (
    StudyPlanMode, TaskStatus, WarningCategory, WarningSeverity, WarningType
)
from ...schemas import (
    AlternativeSuggestions, FeasibilityResult, FeasibilityWarning, FixedCommitment, StudyPlan, Task, UserSettings
)
from ..algorithms.chunking import max_session_hours
from ..algorithms.strategies import check_frequency_deadline_conflict, filter_days_by_frequency
from ..scoring.priority_scoring import is_urgent
from ..utils.time_utils import add_days, days_between, iter_dates, resolve_today, round_hours
from .time_constraints import calculate_daily_available_hours, has_all_day_commitment, is_work_day

LONG_ONE_SITTING_HOURS = 12
TIGHT_DEADLINE_DAYS = 2
LARGE_TASK_HOURS = 8
WORKDAY_GAP_DAYS = 3
DRIFT_MIN_SAMPLES = 2
DRIFT_OVER_RATIO = 1.25
DRIFT_UNDER_RATIO = 0.75
REVISED_DEADLINE_SEARCH_DAYS = 365

# Lowest estimate that is usually realistic for a category, in hours
CATEGORY_MIN_HOURS = {
    'writing': 2,
    'research': 3,
    'project': 4,
    'exam': 3,
}


def _warning(type: WarningType, category: WarningCategory, severity: WarningSeverity,
             title: str, message: str, suggestion: Optional[str] = None) -> FeasibilityWarning:
    return FeasibilityWarning(type=type, category=category, severity=severity,
                              title=title, message=message, suggestion=suggestion)


def _round_up_half(hours: float) -> float:
    return math.ceil(hours * 2) / 2


class FeasibilityContext:
    """Facts about the draft's scheduling range shared by all checks."""

    def __init__(self, task: Task, settings: UserSettings, tasks: List[Task], plans: List[StudyPlan],
                 commitments: List[FixedCommitment], today: str, config: SchedulingConfig):
        self.task = task
        self.settings = settings
        self.tasks = [t for t in tasks if t.id != task.id]
        self.plans = plans
        self.commitments = commitments
        self.today = today
        self.config = config

        self.begin = max(today, task.start_date or today)
        if task.has_deadline:
            self.last_day = add_days(task.deadline, -settings.buffer_days)
            self.days_until_deadline = days_between(today, task.deadline)
        else:
            self.last_day = add_days(today, config.no_deadline_window_days)
            self.days_until_deadline = None

        self.days = list(iter_dates(self.begin, self.last_day)) if self.begin <= self.last_day else []
        self.work_days = [d for d in self.days if is_work_day(d, settings)]
        self.capacity: Dict[str, float] = {
            d: calculate_daily_available_hours(d, settings, commitments) for d in self.work_days
        }
        self.total_capacity = round_hours(sum(self.capacity.values()))

        # Hours other tasks already hold on each date
        self.other_load: Dict[str, float] = {}
        for plan in plans:
            for session in plan.planned_tasks:
                if session.task_id == task.id or session.is_completed or session.is_skipped:
                    continue
                self.other_load[plan.date] = self.other_load.get(plan.date, 0.0) + session.allocated_hours

    @property
    def largest_day_capacity(self) -> float:
        if self.capacity:
            return max(self.capacity.values())
        return self.settings.daily_available_hours

    def completed_hours(self, task_id: str) -> float:
        return sum(
            s.actual_hours if s.actual_hours is not None else s.allocated_hours
            for plan in self.plans for s in plan.planned_tasks
            if s.task_id == task_id and s.is_completed
        )


# ================================
# CHECKER
# ================================

class FeasibilityChecker:
    def __init__(self, settings: UserSettings, commitments: List[FixedCommitment], today: Optional[str] = None,
                 config: Optional[SchedulingConfig] = None, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.commitments = commitments
        self.config = resolve_config(config)
        self.today = resolve_today(today, self.config.timezone)
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def check(self, task: Task, tasks: List[Task], plans: List[StudyPlan]) -> FeasibilityResult:
        """Run every check against the draft and collect warnings plus alternatives."""
        warnings = self.check_completion_time(task)
        if task.estimated_hours <= 0:
            return FeasibilityResult(is_valid=False, warnings=warnings)

        ctx = FeasibilityContext(task, self.settings, tasks, plans, self.commitments, self.today, self.config)
        checks = (
            self.check_deadline_realism,
            self.check_frequency,
            self.check_daily_hour_ceiling,
            self.check_session_length,
            self.check_schedule_availability,
            self.check_workload,
            self.check_study_mode,
            self.check_estimate_drift,
            self.check_buffer_days,
            self.check_category,
            self.check_session_distribution,
            self.check_workday_gaps,
        )
        for check in checks:
            warnings.extend(check(ctx))

        is_valid = not any(w.severity == WarningSeverity.CRITICAL for w in warnings)
        alternatives = self.build_alternative_suggestions(ctx, warnings)
        self.logger.debug("Feasibility of %r: %s warnings, valid=%s", task.title, len(warnings), is_valid,
                          extra={"task_id": task.id, "today": self.today})
        return FeasibilityResult(is_valid=is_valid, warnings=warnings, alternative_suggestions=alternatives)

# ================================
# CHECKS
# ================================

    def check_completion_time(self, task: Task) -> List[FeasibilityWarning]:
        if task.estimated_hours <= 0:
            return [_warning(
                WarningType.ERROR, WarningCategory.COMPLETION, WarningSeverity.CRITICAL,
                "Invalid time estimate",
                "The estimated time must be greater than zero.",
                "Enter how many hours the task will take.",
            )]
        if task.is_one_time_task and task.estimated_hours > LONG_ONE_SITTING_HOURS:
            return [_warning(
                WarningType.WARNING, WarningCategory.COMPLETION, WarningSeverity.MAJOR,
                "Very long single sitting",
                f"{task.estimated_hours:g} hours in one sitting is longer than a realistic work day.",
                "Allow the task to be split into several sessions.",
            )]
        return []

    def check_deadline_realism(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        if not task.has_deadline:
            return []
        if task.deadline < ctx.today:
            return [_warning(
                WarningType.ERROR, WarningCategory.DEADLINE, WarningSeverity.CRITICAL,
                "Deadline has passed",
                f"The deadline {task.deadline} is before today ({ctx.today}).",
                "Pick a deadline in the future.",
            )]
        if task.start_date and task.start_date > task.deadline:
            return [_warning(
                WarningType.ERROR, WarningCategory.DEADLINE, WarningSeverity.CRITICAL,
                "Start date after deadline",
                f"The task starts on {task.start_date} but is due on {task.deadline}.",
            )]

        warnings = []
        if not is_work_day(task.deadline, ctx.settings):
            warnings.append(_warning(
                WarningType.INFO, WarningCategory.DEADLINE, WarningSeverity.MINOR,
                "Deadline on a day off",
                f"{task.deadline} is not one of your study days, so no work is planned on the due date.",
            ))
        if task.estimated_hours >= LARGE_TASK_HOURS and ctx.days_until_deadline <= TIGHT_DEADLINE_DAYS:
            warnings.append(_warning(
                WarningType.WARNING, WarningCategory.DEADLINE, WarningSeverity.MAJOR,
                "Very tight deadline",
                f"{task.estimated_hours:g} hours due in {ctx.days_until_deadline} day(s) leaves no room for slips.",
                "Consider a later deadline.",
            ))
        return warnings

    def check_frequency(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        conflict = check_frequency_deadline_conflict(ctx.task, ctx.settings, ctx.today)
        if not conflict['has_conflict']:
            return []
        recommended = conflict['recommended_frequency']
        return [_warning(
            WarningType.WARNING, WarningCategory.FREQUENCY, WarningSeverity.MAJOR,
            "Frequency too low for deadline",
            conflict['reason'],
            f"Switch to {recommended.value} sessions.",
        )]

    def check_daily_hour_ceiling(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        if not task.has_deadline or not ctx.work_days or task.deadline < ctx.today:
            return []
        if ctx.total_capacity >= task.estimated_hours:
            return []
        return [_warning(
            WarningType.ERROR, WarningCategory.ESTIMATION, WarningSeverity.CRITICAL,
            "Not enough time before the deadline",
            f"This task needs {task.estimated_hours:g} hours but only {ctx.total_capacity:g} study hours "
            f"are available across {len(ctx.work_days)} day(s) before the deadline.",
            "Move the deadline, reduce the estimate or increase your daily study hours.",
        )]

    def check_session_length(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        settings = ctx.settings
        warnings = []
        largest_day = ctx.largest_day_capacity

        if task.is_one_time_task and task.estimated_hours > largest_day:
            warnings.append(_warning(
                WarningType.ERROR, WarningCategory.SESSION, WarningSeverity.CRITICAL,
                "Too long for one sitting",
                f"A {task.estimated_hours:g} hour sitting does not fit in any study day "
                f"(at most {largest_day:g} hours).",
                "Let the task be split across days.",
            ))

        if task.min_work_block and task.min_work_block / 60 > largest_day:
            warnings.append(_warning(
                WarningType.ERROR, WarningCategory.SESSION, WarningSeverity.CRITICAL,
                "Minimum work block too long",
                f"A {task.min_work_block} minute block does not fit in any study day.",
            ))
        elif task.min_work_block and task.min_work_block > task.estimated_hours * 60:
            warnings.append(_warning(
                WarningType.INFO, WarningCategory.SESSION, WarningSeverity.MINOR,
                "Minimum block longer than the task",
                "The minimum work block is longer than the whole estimate.",
            ))

        cap = max_session_hours(settings)
        if task.session_duration and task.session_duration > cap:
            warnings.append(_warning(
                WarningType.INFO, WarningCategory.SESSION, WarningSeverity.MINOR,
                "Preferred session longer than allowed",
                f"Sessions are capped at {cap:g} hours, so {task.session_duration:g} hour sessions will be shortened.",
            ))
        if task.max_session_length and task.max_session_length * 60 < settings.min_session_length:
            warnings.append(_warning(
                WarningType.WARNING, WarningCategory.SESSION, WarningSeverity.MAJOR,
                "Maximum session shorter than minimum",
                f"The maximum session of {task.max_session_length:g} hours is shorter than your "
                f"{settings.min_session_length} minute minimum.",
            ))
        return warnings

    def check_schedule_availability(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        if not ctx.settings.work_days:
            return [_warning(
                WarningType.ERROR, WarningCategory.SCHEDULE, WarningSeverity.CRITICAL,
                "No study days configured",
                "Your settings have no study days, so nothing can be scheduled.",
            )]
        task = ctx.task
        if task.has_deadline and task.deadline < ctx.today:
            return []
        if not ctx.work_days:
            return [_warning(
                WarningType.ERROR, WarningCategory.SCHEDULE, WarningSeverity.CRITICAL,
                "No study days before the deadline",
                f"There are no study days between {ctx.begin} and {ctx.last_day}.",
                "Move the deadline or add study days.",
            )]

        blocked = [d for d in ctx.work_days
                   if ctx.capacity[d] <= 0 or has_all_day_commitment(ctx.commitments, d)]
        if len(blocked) == len(ctx.work_days):
            return [_warning(
                WarningType.ERROR, WarningCategory.SCHEDULE, WarningSeverity.CRITICAL,
                "Every study day is blocked",
                "Commitments take up every study day before the deadline.",
            )]
        if len(blocked) * 2 > len(ctx.work_days):
            return [_warning(
                WarningType.WARNING, WarningCategory.SCHEDULE, WarningSeverity.MAJOR,
                "Most study days are blocked",
                f"{len(blocked)} of {len(ctx.work_days)} study days are taken by commitments.",
            )]
        return []

    def check_workload(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        if not task.has_deadline or ctx.total_capacity < task.estimated_hours:
            return []

        other_demand = 0.0
        for other in ctx.tasks:
            if other.status == TaskStatus.COMPLETED or not other.has_deadline or other.deadline > task.deadline:
                continue
            other_demand += max(0.0, other.estimated_hours - ctx.completed_hours(other.id))

        demand = round_hours(task.estimated_hours + other_demand)
        if demand <= ctx.total_capacity:
            return []
        return [_warning(
            WarningType.WARNING, WarningCategory.WORKLOAD, WarningSeverity.MAJOR,
            "Heavy workload",
            f"Tasks due by {task.deadline} need {demand:g} hours but only {ctx.total_capacity:g} are available.",
            "Some work may end up unscheduled.",
        )]

    def check_study_mode(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        mode = ctx.settings.study_plan_mode
        if mode == StudyPlanMode.EISENHOWER and not task.importance and task.has_deadline:
            competing = [t for t in ctx.tasks
                         if t.importance and t.status != TaskStatus.COMPLETED
                         and t.has_deadline and t.deadline <= task.deadline]
            if competing and is_urgent(task, ctx.today, ctx.config.urgent_within_days):
                return [_warning(
                    WarningType.INFO, WarningCategory.MODE, WarningSeverity.MINOR,
                    "Important tasks go first",
                    f"In eisenhower mode {len(competing)} important task(s) are scheduled before this one.",
                    "Mark the task as important or switch to balanced mode.",
                )]
        if mode == StudyPlanMode.BALANCED and task.is_one_time_task and not task.importance and task.has_deadline:
            return [_warning(
                WarningType.INFO, WarningCategory.MODE, WarningSeverity.MINOR,
                "Scheduled near the deadline",
                "Balanced mode places one-sitting tasks that are not important close to their deadline.",
            )]
        return []

    def estimate_ratio(self, ctx: FeasibilityContext) -> Optional[tuple]:
        """Mean actual/estimated ratio of completed tasks in the same category, with the sample count."""
        category = (ctx.task.category or "").lower()
        if not category:
            return None
        ratios = []
        for other in ctx.tasks:
            if other.status != TaskStatus.COMPLETED or (other.category or "").lower() != category:
                continue
            actual = ctx.completed_hours(other.id)
            if actual > 0:
                ratios.append(actual / other.estimated_hours)
        if len(ratios) < DRIFT_MIN_SAMPLES:
            return None
        return sum(ratios) / len(ratios), len(ratios)

    def check_estimate_drift(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        drift = self.estimate_ratio(ctx)
        if drift is None:
            return []
        ratio, samples = drift
        if ratio > DRIFT_OVER_RATIO:
            return [_warning(
                WarningType.INFO, WarningCategory.ESTIMATION, WarningSeverity.MINOR,
                "Similar tasks took longer",
                f"Your last {samples} {ctx.task.category} tasks took {ratio:.0%} of their estimate.",
                "Consider a larger estimate.",
            )]
        if ratio < DRIFT_UNDER_RATIO:
            return [_warning(
                WarningType.INFO, WarningCategory.ESTIMATION, WarningSeverity.MINOR,
                "Similar tasks finished early",
                f"Your last {samples} {ctx.task.category} tasks took {ratio:.0%} of their estimate.",
            )]
        return []

    def check_buffer_days(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        buffer_days = ctx.settings.buffer_days
        if not task.has_deadline or buffer_days <= 0 or task.deadline < ctx.begin:
            return []
        if ctx.last_day < ctx.begin:
            return [_warning(
                WarningType.ERROR, WarningCategory.BUFFER, WarningSeverity.CRITICAL,
                "Buffer days use up the whole range",
                f"With {buffer_days} buffer day(s) the last study day would be {ctx.last_day}, "
                f"before the task can start.",
                "Reduce buffer days or move the deadline.",
            )]
        span = days_between(ctx.begin, task.deadline) + 1
        if buffer_days * 2 >= span:
            return [_warning(
                WarningType.INFO, WarningCategory.BUFFER, WarningSeverity.MINOR,
                "Buffer takes most of the range",
                f"{buffer_days} of {span} days before the deadline are kept free as buffer.",
            )]
        return []

    def check_category(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        category = (ctx.task.category or "").lower()
        for keyword, minimum in CATEGORY_MIN_HOURS.items():
            if keyword in category and ctx.task.estimated_hours < minimum:
                return [_warning(
                    WarningType.INFO, WarningCategory.CATEGORY, WarningSeverity.MINOR,
                    "Estimate may be low",
                    f"{ctx.task.category} tasks usually take at least {minimum} hours.",
                )]
        return []

    def check_session_distribution(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        task = ctx.task
        if task.is_one_time_task or not task.has_deadline or not ctx.work_days:
            return []
        days = filter_days_by_frequency(task, ctx.work_days, ctx.capacity) or ctx.work_days
        per_session = task.estimated_hours / len(days)
        cap = max_session_hours(ctx.settings)
        if per_session > cap:
            return [_warning(
                WarningType.WARNING, WarningCategory.DISTRIBUTION, WarningSeverity.MAJOR,
                "Sessions would be very long",
                f"At {task.target_frequency.value} frequency there are {len(days)} session day(s), "
                f"about {per_session:.1f} hours each, above the {cap:g} hour session limit.",
            )]
        if per_session * 60 < ctx.settings.min_session_length:
            return [_warning(
                WarningType.INFO, WarningCategory.DISTRIBUTION, WarningSeverity.MINOR,
                "Sessions would be very short",
                f"Spread over {len(days)} day(s) each session is under {ctx.settings.min_session_length} minutes, "
                f"so fewer sessions will be used.",
            )]
        return []

    def check_workday_gaps(self, ctx: FeasibilityContext) -> List[FeasibilityWarning]:
        longest = run = 0
        for day in ctx.days:
            run = 0 if is_work_day(day, ctx.settings) else run + 1
            longest = max(longest, run)
        if longest < WORKDAY_GAP_DAYS:
            return []
        return [_warning(
            WarningType.INFO, WarningCategory.TIMING, WarningSeverity.MINOR,
            "Long break between study days",
            f"There are {longest} consecutive days without study time in this task's range.",
        )]

# ================================
# ALTERNATIVES
# ================================

    def revised_deadline(self, ctx: FeasibilityContext) -> str:
        """
        First date the task can realistically be due: the day its hours are
        covered by free capacity, plus one day of slack and the buffer days.
        """
        task = ctx.task
        settings = ctx.settings
        covered = 0.0
        for offset in range(REVISED_DEADLINE_SEARCH_DAYS):
            day = add_days(ctx.begin, offset)
            if not is_work_day(day, settings):
                continue
            capacity = calculate_daily_available_hours(day, settings, ctx.commitments)
            covered += max(0.0, capacity - ctx.other_load.get(day, 0.0))
            if round_hours(covered) >= task.estimated_hours:
                return add_days(day, 1 + settings.buffer_days)
        days_needed = math.ceil(task.estimated_hours / settings.daily_available_hours)
        return add_days(ctx.today, days_needed + settings.buffer_days)

    def build_alternative_suggestions(self, ctx: FeasibilityContext,
                                      warnings: List[FeasibilityWarning]) -> AlternativeSuggestions:
        task = ctx.task
        settings = ctx.settings
        alternatives = AlternativeSuggestions()

        def triggered(category: WarningCategory, severity: Optional[WarningSeverity] = None) -> bool:
            return any(w.category == category and (severity is None or w.severity == severity) for w in warnings)

        frequency_conflict = triggered(WarningCategory.FREQUENCY)
        if frequency_conflict:
            conflict = check_frequency_deadline_conflict(task, settings, ctx.today)
            alternatives.frequency = conflict['recommended_frequency']

        out_of_time = triggered(WarningCategory.ESTIMATION, WarningSeverity.CRITICAL)
        needs_more_days = (
            out_of_time
            or triggered(WarningCategory.SCHEDULE, WarningSeverity.CRITICAL)
            or triggered(WarningCategory.BUFFER, WarningSeverity.CRITICAL)
            or triggered(WarningCategory.DEADLINE)
            or triggered(WarningCategory.WORKLOAD)
        )
        if task.has_deadline and needs_more_days:
            revised = self.revised_deadline(ctx)
            if revised > task.deadline:
                alternatives.deadline = revised

        if out_of_time:
            needed = _round_up_half(task.estimated_hours / len(ctx.work_days))
            if settings.daily_available_hours < needed <= 24:
                alternatives.increase_daily_hours = needed

        drift = self.estimate_ratio(ctx)
        if drift is not None and triggered(WarningCategory.ESTIMATION, WarningSeverity.MINOR):
            ratio, samples = drift
            alternatives.estimation = _round_up_half(task.estimated_hours * ratio)
            alternatives.note = f"Based on {samples} completed {task.category} tasks"
        elif out_of_time and ctx.total_capacity > 0:
            alternatives.estimation = math.floor(ctx.total_capacity * 2) / 2
            alternatives.note = "What fits before the deadline"

        if task.is_one_time_task:
            if triggered(WarningCategory.COMPLETION) or triggered(WarningCategory.SESSION, WarningSeverity.CRITICAL):
                alternatives.remove_one_sitting = True
        elif (task.has_deadline and ctx.work_days and task.estimated_hours <= ctx.largest_day_capacity
              and (len(ctx.work_days) == 1 or frequency_conflict)):
            alternatives.mark_as_one_sitting = True

        return alternatives


def check_task_feasibility(task_draft: Task, settings: UserSettings, tasks: List[Task], plans: List[StudyPlan],
                           commitments: List[FixedCommitment], today: Optional[str] = None,
                           config: Optional[SchedulingConfig] = None,
                           logger: Optional[logging.Logger] = None) -> FeasibilityResult:
    """Check a proposed task against the current settings, tasks, plans and commitments."""
    checker = FeasibilityChecker(settings, commitments, today=today, config=config, logger=logger)
    return checker.check(task_draft, tasks, plans)
