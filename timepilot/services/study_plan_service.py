"""
Entry points for planning, recovery and session edits.

Every function takes the caller's tasks, settings, commitments and plans and
returns new objects; nothing passed in is modified.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..config import SchedulingConfig, resolve_config
from ..exceptions import SessionNotFoundError
from ..logging_config import plan_run
from ..models import (
    RescheduleReason, RescheduleStatus, SessionState, SessionStatus, SkipReason, SuggestionType, TaskStatus
)
from ..schemas import (
    AddTaskAssessment, CommitmentConflict, FeasibilityResult, FixedCommitment, PlanResult, RedistributionOptions,
    RedistributionResult, RescheduleApplication, RescheduleHistoryEntry, SessionMoveResult, SessionSchedulingMetadata,
    SettingsChangeValidation, SkipMetadata, SlotRef, SmartSuggestion, StudyPlan, StudySession, Task,
    UnscheduledSuggestion, UserReschedule, UserSettings
)
from ..scheduling.algorithms.redistribution import RedistributionEngine
from ..scheduling.algorithms.strategies import EvenStrategy
from ..scheduling.algorithms.workload_smoothing import repair_compromised_sessions
from ..scheduling.constraints.feasibility import check_task_feasibility as run_feasibility_checks
from ..scheduling.constraints.settings_validation import (
    check_commitment_conflicts as find_commitment_conflict, validate_settings_change as run_settings_checks
)
from ..scheduling.constraints.time_constraints import find_overlap, is_work_day
from ..scheduling.core.constants import UNSCHEDULED_EPSILON_HOURS
from ..scheduling.core.planner import PlanGenerator
from ..scheduling.core.session_state import is_missed, transition
from ..scheduling.core.slot_finder import find_next_available_time_slot
from ..scheduling.scoring.priority_scoring import task_priority_key
from ..scheduling.utils.slot_utils import (
    clone_plans, is_fixed, new_plan, refresh_plan_totals, scheduled_hours_by_task
)
from ..scheduling.utils.time_utils import days_between, duration_hours, now_timestamp, resolve_today, round_hours

logger = logging.getLogger(__name__)


# ================================
# PLAN GENERATION
# ================================

def _kept_plans(existing_plans: Optional[List[StudyPlan]], task_ids: set,
                keep: Callable[[StudySession], bool]) -> List[StudyPlan]:
    """Copies of existing plans holding only the sessions to carry into a new run."""
    kept = []
    for plan in existing_plans or []:
        sessions = [s.model_copy(deep=True) for s in plan.planned_tasks if s.task_id in task_ids and keep(s)]
        if sessions:
            kept.append(plan.model_copy(update={'planned_tasks': sessions}, deep=True))
    return kept


def generate_new_study_plan(tasks: List[Task], settings: UserSettings, commitments: List[FixedCommitment],
                            existing_plans: Optional[List[StudyPlan]] = None, today: Optional[str] = None,
                            config: Optional[SchedulingConfig] = None,
                            logger: Optional[logging.Logger] = None) -> PlanResult:
    """
    Build a fresh plan. Completed sessions from existing plans are kept and
    count toward their task; everything else is laid out again.
    """
    kept = _kept_plans(existing_plans, {t.id for t in tasks}, lambda s: s.is_completed)
    generator = PlanGenerator(settings, commitments, today=today, config=config, logger=logger)
    generator.seed_sessions(kept)
    return generator.generate(tasks)


def generate_new_study_plan_with_preservation(tasks: List[Task], settings: UserSettings,
                                              commitments: List[FixedCommitment],
                                              existing_plans: Optional[List[StudyPlan]] = None,
                                              today: Optional[str] = None,
                                              config: Optional[SchedulingConfig] = None,
                                              logger: Optional[logging.Logger] = None) -> PlanResult:
    """
    Build a plan that keeps completed, skipped and manually rescheduled
    sessions where they are, schedules only the remaining hours and then
    repairs compromised sessions.
    """
    config = resolve_config(config)
    kept = _kept_plans(existing_plans, {t.id for t in tasks}, is_fixed)
    generator = PlanGenerator(settings, commitments, today=today, config=config, logger=logger)
    generator.seed_sessions(kept)

    with plan_run():
        result = generator.generate(tasks)
        plans = repair_compromised_sessions(result.plans, tasks, settings, commitments, config=config,
                                            log=generator.logger)

    # Minutes the repair could not absorb go back to their task
    before = scheduled_hours_by_task(result.plans)
    after = scheduled_hours_by_task(plans)
    for task_id, hours in before.items():
        dropped = round_hours(hours - after.get(task_id, 0.0))
        if dropped > 0:
            generator.release_hours(task_id, dropped)

    pending = [t for t in tasks if t.status != TaskStatus.COMPLETED]
    return PlanResult(plans=plans, suggestions=generator.build_suggestions(pending))


def redistribute_after_task_deletion(plans: List[StudyPlan], tasks: List[Task], settings: UserSettings,
                                     commitments: List[FixedCommitment], today: Optional[str] = None,
                                     config: Optional[SchedulingConfig] = None,
                                     logger: Optional[logging.Logger] = None) -> PlanResult:
    """
    Re-plan after tasks were deleted. Sessions of tasks no longer listed are
    dropped, the freed time is planned again, and hours that still did not
    fit get up to the configured number of extra passes over the calendar.
    """
    config = resolve_config(config)
    with plan_run():
        result = generate_new_study_plan_with_preservation(tasks, settings, commitments, plans, today=today,
                                                           config=config, logger=logger)
        pending = sorted((t for t in tasks if t.status != TaskStatus.COMPLETED), key=task_priority_key)
        strategy = EvenStrategy()

        for pass_number in range(1, config.deletion_redistribution_passes):
            if not result.suggestions:
                break
            generator = PlanGenerator(settings, commitments, today=today, config=config, logger=logger)
            generator.tasks_by_id = {task.id: task for task in tasks}
            generator.seed_sessions(clone_plans(result.plans))

            before = {task.id: generator.remaining_hours(task) for task in pending}
            for task in pending:
                if task.has_deadline and not task.is_one_time_task:
                    strategy.redistribute_leftover(generator, task)
            if all(generator.remaining_hours(task) == before[task.id] for task in pending):
                break

            result = PlanResult(plans=generator.finalize_plans(), suggestions=generator.build_suggestions(pending))
            generator.logger.info("Deletion pass %s leaves %s unscheduled tasks", pass_number + 1,
                                  len(result.suggestions))
    return result


def assess_add_task_feasibility(task: Task, tasks: List[Task], settings: UserSettings,
                                commitments: List[FixedCommitment], existing_plans: List[StudyPlan],
                                today: Optional[str] = None, config: Optional[SchedulingConfig] = None,
                                logger: Optional[logging.Logger] = None) -> AddTaskAssessment:
    """
    Trial-plan the new task next to the existing ones. Adding it is blocked
    when nothing, or less than the configured share of its estimate, fits.
    """
    config = resolve_config(config)
    others = [t for t in tasks if t.id != task.id]
    result = generate_new_study_plan_with_preservation(others + [task], settings, commitments, existing_plans,
                                                       today=today, config=config, logger=logger)
    scheduled = round_hours(sum(
        s.allocated_hours for plan in result.plans for s in plan.planned_tasks
        if s.task_id == task.id and not s.is_skipped
    ))
    unscheduled = round_hours(max(0.0, task.estimated_hours - scheduled))
    ratio = scheduled / task.estimated_hours

    if scheduled <= 0:
        return AddTaskAssessment(
            is_feasible=False, scheduled_hours=0, unscheduled_hours=unscheduled,
            message="This task cannot be scheduled at all with your current settings and workload.",
        )
    if ratio < config.min_scheduled_ratio:
        return AddTaskAssessment(
            is_feasible=False, scheduled_hours=scheduled, unscheduled_hours=unscheduled,
            message=f"This task can only be {ratio:.0%} scheduled before its deadline.",
        )
    message = "This task fits in your schedule."
    if unscheduled >= UNSCHEDULED_EPSILON_HOURS:
        message = f"This task can be {ratio:.0%} scheduled; {unscheduled:g} hours will not fit."
    return AddTaskAssessment(is_feasible=True, scheduled_hours=scheduled, unscheduled_hours=unscheduled,
                             message=message)


def check_task_feasibility(task_draft: Task, settings: UserSettings, tasks: List[Task], plans: List[StudyPlan],
                           commitments: List[FixedCommitment], today: Optional[str] = None,
                           config: Optional[SchedulingConfig] = None,
                           logger: Optional[logging.Logger] = None) -> FeasibilityResult:
    return run_feasibility_checks(task_draft, settings, tasks, plans, commitments, today=today,
                                  config=config, logger=logger)


def validate_settings_change(old_settings: UserSettings, new_settings: UserSettings,
                             plans: List[StudyPlan]) -> SettingsChangeValidation:
    """Report manually rescheduled sessions the new settings would strand."""
    return run_settings_checks(old_settings, new_settings, clone_plans(plans))


def check_commitment_conflicts(new_commitment: FixedCommitment, existing: List[FixedCommitment],
                               exclude_commitment_id: Optional[str] = None) -> CommitmentConflict:
    return find_commitment_conflict(new_commitment.model_copy(deep=True),
                                    [c.model_copy(deep=True) for c in existing],
                                    exclude_commitment_id=exclude_commitment_id)


def redistribute_missed_sessions(plans: List[StudyPlan], tasks: List[Task], settings: UserSettings,
                                 commitments: List[FixedCommitment],
                                 options: Optional[RedistributionOptions] = None, today: Optional[str] = None,
                                 config: Optional[SchedulingConfig] = None, logger: Optional[logging.Logger] = None,
                                 fault_injector: Optional[Callable[[List[StudyPlan]], None]] = None
                                 ) -> RedistributionResult:
    engine = RedistributionEngine(settings, commitments, today=today, config=config, logger=logger,
                                  fault_injector=fault_injector)
    return engine.redistribute_missed_sessions(plans, tasks, options)


# ================================
# SUGGESTIONS
# ================================

def generate_smart_suggestions(tasks: List[Task], plans: List[StudyPlan], settings: UserSettings,
                               unscheduled: Optional[List[UnscheduledSuggestion]] = None,
                               today: Optional[str] = None,
                               config: Optional[SchedulingConfig] = None) -> List[SmartSuggestion]:
    """Advice on overdue, urgent and unscheduled work, overloaded days and missed sessions."""
    config = resolve_config(config)
    today = resolve_today(today, config.timezone)
    within = config.urgent_within_days
    pending = [t for t in tasks if t.status != TaskStatus.COMPLETED]
    dated = [t for t in pending if t.has_deadline]
    suggestions = []

    overdue = [t for t in dated if t.deadline < today]
    if overdue:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.WARNING,
            message=f"You have {len(overdue)} overdue task(s). Consider extending deadlines or increasing study hours.",
            action="Review and update deadlines for overdue tasks.",
        ))

    urgent = [t for t in dated if 0 <= days_between(today, t.deadline) <= within]
    urgent_important = [t for t in urgent if t.importance]
    urgent_other = [t for t in urgent if not t.importance]
    if urgent_important:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.WARNING,
            message=f"You have {len(urgent_important)} important task(s) due within {within} days.",
            action="Focus on these tasks first.",
        ))
    if urgent_other:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.WARNING,
            message=f"You have {len(urgent_other)} urgent but not important task(s) due soon. "
                    f"These may not fit in your schedule.",
            action="Consider increasing your daily hours or rescheduling these tasks.",
        ))

    unscheduled_titles = {s.task_title for s in unscheduled or []}
    if any(t.title in unscheduled_titles for t in urgent_other):
        suggestions.append(SmartSuggestion(
            type=SuggestionType.WARNING,
            message="Some low-priority tasks with urgent deadlines could not be scheduled because "
                    "higher-priority tasks take precedence.",
            action="Increase your daily hours, reschedule, or mark some tasks as important.",
        ))

    later = [t for t in dated if days_between(today, t.deadline) > within]
    important_later = [t for t in later if t.importance]
    other_later = [t for t in later if not t.importance]
    if important_later:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.SUGGESTION,
            message=f"You have {len(important_later)} important task(s) with more than {within} days until deadline.",
            action="Schedule time for these now.",
        ))
    if other_later:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.SUGGESTION,
            message=f"You have {len(other_later)} task(s) that are neither urgent nor important.",
            action="Do these only if you have extra time.",
        ))

    overloaded = [p.date for p in plans if p.date >= today and p.is_overloaded]
    if overloaded:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.WARNING,
            message=f"{len(overloaded)} upcoming day(s) have more study time than available, starting {overloaded[0]}.",
            action="Move some sessions or increase your daily hours.",
        ))

    pending_ids = {t.id for t in pending}
    for task_id in sorted({s.task_id for p in plans for s in p.planned_tasks
                           if s.task_id in pending_ids and is_missed(s, p.date, today)}):
        task = next(t for t in pending if t.id == task_id)
        suggestions.append(SmartSuggestion(
            type=SuggestionType.WARNING,
            message=f"{task.title} is behind schedule with missed sessions.",
            action="Redistribute missed sessions to catch up.",
            task_id=task_id,
        ))

    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    if completed:
        suggestions.append(SmartSuggestion(
            type=SuggestionType.CELEBRATION,
            message=f"Great job! You've completed {len(completed)} task(s).",
            action="Keep up the momentum!",
        ))
    return suggestions


# ================================
# SESSION EDITS
# ================================

def _locate(plans: List[StudyPlan], date: str, task_id: str, session_number: Optional[int]):
    for plan in plans:
        if plan.date != date:
            continue
        for index, session in enumerate(plan.planned_tasks):
            if session.task_id == task_id and session.session_number == session_number:
                return plan, index
    raise SessionNotFoundError(task_id, session_number, date)


def skip_session(plans: List[StudyPlan], plan_date: str, task_id: str, session_number: Optional[int],
                 reason: SkipReason = SkipReason.USER_CHOICE, partial_hours: Optional[float] = None,
                 config: Optional[SchedulingConfig] = None) -> List[StudyPlan]:
    """Mark a session skipped; its time is freed but it stays on the calendar."""
    config = resolve_config(config)
    plans = clone_plans(plans)
    plan, index = _locate(plans, plan_date, task_id, session_number)

    target = SessionState.SKIPPED_USER if reason == SkipReason.USER_CHOICE else SessionState.SKIPPED_SYSTEM
    skipped = transition(plan.planned_tasks[index], target)
    skipped.skip_metadata = SkipMetadata(skipped_at=now_timestamp(config.timezone), reason=reason,
                                         partial_hours=partial_hours)
    plan.planned_tasks[index] = skipped
    refresh_plan_totals(plan)
    logger.info("Skipped %s on %s", skipped.session_key, plan_date, extra={"reason": reason.value})
    return plans


def move_individual_session(plans: List[StudyPlan], task_id: str, session_number: Optional[int],
                            original_plan_date: str, settings: UserSettings, commitments: List[FixedCommitment],
                            today: Optional[str] = None,
                            config: Optional[SchedulingConfig] = None) -> SessionMoveResult:
    """Move a session into today's first free slot and freeze it there."""
    config = resolve_config(config)
    today = resolve_today(today, config.timezone)
    plans = clone_plans(plans)
    origin, index = _locate(plans, original_plan_date, task_id, session_number)
    session = origin.planned_tasks[index]

    if session.is_completed or not is_work_day(today, settings):
        return SessionMoveResult(plans=plans, success=False)

    target = next((p for p in plans if p.date == today), None)
    others = target.planned_tasks if target is not None else []
    others = [s for s in others if s is not session]
    slot = find_next_available_time_slot(session.allocated_hours, others, commitments, today, settings)
    if slot is None:
        return SessionMoveResult(plans=plans, success=False)

    if target is None:
        target = new_plan(today, settings, commitments)
        plans.append(target)
        plans.sort(key=lambda p: p.date)

    timestamp = now_timestamp(config.timezone)
    metadata = session.scheduling_metadata or SessionSchedulingMetadata()
    metadata.reschedule_history.append(RescheduleHistoryEntry(
        from_slot=SlotRef(date=original_plan_date, start_time=session.start_time, end_time=session.end_time),
        to_slot=SlotRef(date=today, start_time=slot.start, end_time=slot.end),
        timestamp=timestamp,
        reason=RescheduleReason.MANUAL,
        success=True,
    ))
    moved = session.model_copy(update={
        'scheduled_time': today,
        'start_time': slot.start,
        'end_time': slot.end,
        'original_time': session.original_time or session.start_time,
        'original_date': session.original_date or original_plan_date,
        'rescheduled_at': timestamp,
        'is_manual_override': True,
        'status': SessionStatus.SCHEDULED,
        'scheduling_metadata': metadata,
    }, deep=True)

    del origin.planned_tasks[index]
    target.planned_tasks.append(moved)
    refresh_plan_totals(origin)
    refresh_plan_totals(target)
    plans = [p for p in plans if p.planned_tasks]
    return SessionMoveResult(plans=plans, success=True, new_date=today, new_time=slot.start)


def apply_user_reschedules(plans: List[StudyPlan], reschedules: List[UserReschedule], settings: UserSettings,
                           commitments: List[FixedCommitment]) -> RescheduleApplication:
    """
    Re-apply saved manual reschedules to a plan set. A reschedule whose
    session no longer exists, or whose new slot is taken, is obsolete.
    """
    plans = clone_plans(plans)
    by_date: Dict[str, StudyPlan] = {plan.date: plan for plan in plans}
    valid, obsolete = [], []

    for reschedule in reschedules:
        if reschedule.status == RescheduleStatus.OBSOLETE:
            obsolete.append(reschedule)
            continue
        try:
            origin, index = _locate(plans, reschedule.original_plan_date, reschedule.task_id,
                                    reschedule.session_number)
        except SessionNotFoundError:
            obsolete.append(reschedule.model_copy(update={'status': RescheduleStatus.OBSOLETE}))
            continue

        hours = duration_hours(reschedule.new_start_time, reschedule.new_end_time)
        if hours <= 0:
            obsolete.append(reschedule.model_copy(update={'status': RescheduleStatus.OBSOLETE}))
            continue

        session = origin.planned_tasks[index]
        moved = session.model_copy(update={
            'scheduled_time': reschedule.new_plan_date,
            'start_time': reschedule.new_start_time,
            'end_time': reschedule.new_end_time,
            'allocated_hours': round_hours(hours),
            'original_time': session.original_time or session.start_time,
            'original_date': session.original_date or reschedule.original_plan_date,
            'is_manual_override': True,
        }, deep=True)

        target = by_date.get(reschedule.new_plan_date)
        if target is None:
            target = new_plan(reschedule.new_plan_date, settings, commitments)
        remaining = [s for s in target.planned_tasks if s is not session]
        if find_overlap(remaining + [moved], commitments, target.date) is not None:
            obsolete.append(reschedule.model_copy(update={'status': RescheduleStatus.OBSOLETE}))
            continue

        del origin.planned_tasks[index]
        if reschedule.new_plan_date not in by_date:
            by_date[target.date] = target
            plans.append(target)
        target.planned_tasks.append(moved)
        refresh_plan_totals(origin)
        refresh_plan_totals(target)
        valid.append(reschedule)

    plans = sorted((p for p in plans if p.planned_tasks), key=lambda p: p.date)
    if obsolete:
        logger.info("%s of %s reschedules are obsolete", len(obsolete), len(reschedules))
    return RescheduleApplication(plans=plans, valid_reschedules=valid, obsolete_reschedules=obsolete)
