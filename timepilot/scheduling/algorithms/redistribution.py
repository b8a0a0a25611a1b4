"""
Missed-session recovery.

Past sessions that were never finished are queued by priority and moved to
the earliest future slot that respects the task's deadline, work days and
daily capacity. The whole batch is validated afterwards; a batch that leaves
an overlap behind is discarded and the caller gets its original plans back.
"""

import heapq
import itertools
import logging
from typing import Callable, Dict, List, Optional, Tuple

from ...config import SchedulingConfig, resolve_config
from ...exceptions import RedistributionRollbackError, TimePilotError
from ...logging_config import plan_run
from ...models import RescheduleReason, SessionState, TaskStatus
from ...schemas import (
    FixedCommitment, RedistributionDetails, RedistributionFeedback, RedistributionOptions,
    RedistributionResult, RescheduleHistoryEntry, SessionSchedulingMetadata, SlotRef, StudyPlan,
    StudySession, Task, UserSettings
)
from ..constraints.time_constraints import find_overlap, is_work_day
from ..core.capacity import DailyCapacityTracker
from ..core.session_state import current_state, is_missed, transition
from ..core.slot_finder import TimeSlotFinder
from ..scoring.priority_scoring import calculate_redistribution_priority
from ..utils.slot_utils import clone_plans, new_plan, refresh_plan_totals
from ..utils.time_utils import add_days, now_timestamp, resolve_today, round_hours

NO_SLOT_REASON = "No available time slots found within deadline"


class MissedSession:
    """A queued missed session with the context needed to move it."""

    def __init__(self, session: StudySession, plan_date: str, task: Task, priority: float):
        self.session = session
        self.plan_date = plan_date
        self.task = task
        self.priority = priority

    def __repr__(self):
        return f"MissedSession({self.session.session_key} on {self.plan_date}, priority={self.priority:.0f})"


class RedistributionEngine:
    def __init__(self, settings: UserSettings, commitments: List[FixedCommitment], today: Optional[str] = None,
                 config: Optional[SchedulingConfig] = None, logger: Optional[logging.Logger] = None,
                 fault_injector: Optional[Callable[[List[StudyPlan]], None]] = None):
        self.settings = settings
        self.commitments = commitments
        self.config = resolve_config(config)
        self.today = resolve_today(today, self.config.timezone)
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.finder = TimeSlotFinder(settings, commitments)
        # Called with the working plans after the queue is processed, before validation
        self.fault_injector = fault_injector

    # ================================
    # ENTRY POINT
    # ================================

    def redistribute_missed_sessions(self, plans: List[StudyPlan], tasks: List[Task],
                                     options: Optional[RedistributionOptions] = None) -> RedistributionResult:
        with plan_run():
            return self._redistribute(plans, tasks, options)

    def _redistribute(self, plans: List[StudyPlan], tasks: List[Task],
                      options: Optional[RedistributionOptions]) -> RedistributionResult:
        options = options or RedistributionOptions(max_redistribution_days=self.config.max_redistribution_days)
        original_plans = clone_plans(plans)
        working_plans = clone_plans(plans)
        tasks_by_id = {task.id: task for task in tasks}

        missed = self.collect_missed_sessions(working_plans, tasks_by_id)
        if not missed:
            return self._result(True, original_plans, [], [], [], "No missed sessions found.")

        problems = self.validate_before(working_plans, missed)
        if problems:
            message = f"Pre-redistribution validation failed: {', '.join(problems)}"
            self.logger.warning(message)
            return self._result(False, original_plans, [], [m.session for m in missed], [message], message)

        try:
            moved, failed, reasons = self.process_queue(working_plans, missed, options)

            if self.fault_injector is not None:
                self.fault_injector(working_plans)

            conflicts = self.validate_after(working_plans)
            if conflicts:
                if options.enable_rollback:
                    raise RedistributionRollbackError(conflicts)
                reasons.extend(conflicts)
        except TimePilotError as e:
            if not options.enable_rollback:
                raise
            return self.rollback(original_plans, [m.session for m in missed], e)

        for plan in working_plans:
            refresh_plan_totals(plan)
        working_plans.sort(key=lambda p: p.date)

        success = bool(moved)
        if success:
            message = f"Successfully redistributed {len(moved)} of {len(missed)} missed sessions"
        else:
            message = f"Failed to redistribute any of {len(missed)} missed sessions"
        self.logger.info(message, extra={"moved": len(moved), "failed": len(failed)})
        return self._result(success, working_plans, moved, failed, reasons, message, processed=len(missed))

    # ================================
    # COLLECTION & PRIORITY
    # ================================

    def collect_missed_sessions(self, plans: List[StudyPlan], tasks_by_id: Dict[str, Task]) -> List[MissedSession]:
        missed = []
        bands = self.config.priority
        for plan in plans:
            if plan.date >= self.today:
                continue
            for session in plan.planned_tasks:
                task = tasks_by_id.get(session.task_id)
                if task is None or task.status == TaskStatus.COMPLETED:
                    continue
                if not is_missed(session, plan.date, self.today):
                    continue
                priority = calculate_redistribution_priority(session, plan.date, task, self.today, bands)
                missed.append(MissedSession(session, plan.date, task, priority))
        return missed

    def validate_before(self, plans: List[StudyPlan], missed: List[MissedSession]) -> List[str]:
        problems = []
        if not any(plan.date >= self.today for plan in plans):
            problems.append("No future study days available for redistribution")
        if not any(m.task.status != TaskStatus.COMPLETED for m in missed):
            problems.append("All tasks with missed sessions are no longer pending")
        return problems

    # ================================
    # QUEUE PROCESSING
    # ================================

    def process_queue(self, plans: List[StudyPlan], missed: List[MissedSession],
                      options: RedistributionOptions) -> Tuple[List[StudySession], List[StudySession], List[str]]:
        plans_by_date = {plan.date: plan for plan in plans}
        capacity = DailyCapacityTracker(self.settings, self.commitments)
        for plan in plans:
            capacity.seed(plan.date, plan.planned_tasks)
        next_number = self._next_session_numbers(plans)

        # Max-heap on priority; the counter keeps equal priorities in collection order
        counter = itertools.count()
        heap = [(-item.priority if options.prioritize_important_tasks else 0, next(counter), item) for item in missed]
        heapq.heapify(heap)

        moved, failed, reasons = [], [], []
        while heap:
            _, _, item = heapq.heappop(heap)
            missed_session = item.session
            if current_state(missed_session) != SessionState.MISSED_ORIGINAL:
                missed_session = transition(missed_session, SessionState.MISSED_ORIGINAL)

            placements = self.find_placements(item, plans_by_date, capacity, options)
            origin = plans_by_date[item.plan_date]
            index = self._index_of(origin, item.session)

            if placements is None:
                failed_session = transition(missed_session, SessionState.FAILED_REDISTRIBUTION)
                failed_session.scheduling_metadata.failure_reasons.append(NO_SLOT_REASON)
                failed_session.scheduling_metadata.priority = item.priority
                failed_session.scheduling_metadata.last_processed_at = now_timestamp(self.config.timezone)
                origin.planned_tasks[index] = failed_session
                failed.append(failed_session)
                reasons.append(f"{item.task.title}: {NO_SLOT_REASON}")
                self.logger.info("Could not redistribute %s", item.session.session_key,
                                 extra={"task_id": item.task.id, "priority": item.priority})
                continue

            del origin.planned_tasks[index]
            for part_number, (date, slot) in enumerate(placements):
                new_session = self._moved_copy(missed_session, item, date, slot, item.priority)
                if part_number > 0:
                    next_number[item.task.id] += 1
                    new_session.session_number = next_number[item.task.id]
                plans_by_date[date].planned_tasks.append(new_session)
                moved.append(new_session)
            self.logger.debug("Moved %s to %s", item.session.session_key, [d for d, _ in placements])

        # Days first opened by a move join the result
        known = {plan.date for plan in plans}
        plans.extend(plan for date, plan in sorted(plans_by_date.items())
                     if date not in known and plan.planned_tasks)
        return moved, failed, reasons

    def find_placements(self, item: MissedSession, plans_by_date: Dict[str, StudyPlan],
                        capacity: DailyCapacityTracker, options: RedistributionOptions) -> Optional[list]:
        """
        Find where a missed session can go, debiting capacity and reserving the
        slots as it goes. Returns [(date, TimeSlot), ...] or None; on None every
        reservation made for this session has been undone.
        """
        hours = item.session.allocated_hours
        min_session = self.settings.min_session_length / 60
        last_day = add_days(item.task.deadline, -self.settings.buffer_days) if item.task.has_deadline else None
        placements = []
        reserved = []

        for offset in range(options.max_redistribution_days):
            date = add_days(self.today, offset)
            if last_day is not None and date > last_day:
                break
            if not is_work_day(date, self.settings) and not options.allow_weekend_overflow:
                continue

            plan = plans_by_date.get(date)
            if plan is None:
                plan = new_plan(date, self.settings, self.commitments)
                plans_by_date[date] = plan

            wanted = hours
            if options.respect_daily_limits and not capacity.can_place(date, wanted):
                if options.preserve_session_size:
                    continue
                wanted = round_hours(min(wanted, capacity.remaining(date)))

            slot = self.finder.find(wanted, plan.planned_tasks, date) if wanted > 0 else None
            if slot is None and not options.preserve_session_size:
                wanted = round_hours(min(wanted, self.finder.largest_gap_hours(plan.planned_tasks, date)))
                slot = self.finder.find(wanted, plan.planned_tasks, date) if wanted >= min_session else None
            if slot is None:
                continue

            placeholder = item.session.model_copy(update={'start_time': slot.start, 'end_time': slot.end,
                                                          'allocated_hours': slot.duration})
            plan.planned_tasks.append(placeholder)
            if options.respect_daily_limits:
                capacity.place(date, slot.duration)
            reserved.append((plan, placeholder, date))
            placements.append((date, slot))
            hours = round_hours(hours - slot.duration)
            if hours <= 0:
                break

        for plan, placeholder, date in reserved:
            plan.planned_tasks.remove(placeholder)
            if hours > 0 and options.respect_daily_limits:
                capacity.release(date, placeholder.allocated_hours)

        if hours > 0:
            return None
        return placements

    # ================================
    # VALIDATION & ROLLBACK
    # ================================

    def validate_after(self, plans: List[StudyPlan]) -> List[str]:
        conflicts = []
        for plan in plans:
            overlap = find_overlap(plan.planned_tasks, self.commitments, plan.date)
            if overlap is not None:
                first, second = overlap
                conflicts.append(
                    f"Sessions overlap on {plan.date}: {first.start_time}-{first.end_time} "
                    f"and {second.start_time}-{second.end_time}"
                )
        return conflicts

    def rollback(self, original_plans: List[StudyPlan], sessions: List[StudySession],
                 error: TimePilotError) -> RedistributionResult:
        reasons = error.reasons if isinstance(error, RedistributionRollbackError) else [str(error)]
        reason = ", ".join(reasons)
        self.logger.warning("Redistribution rolled back: %s", reason)
        return RedistributionResult(
            success=False,
            plans=original_plans,
            redistributed_sessions=[],
            failed_sessions=sessions,
            conflicts_resolved=0,
            total_sessions_moved=0,
            rollback_performed=True,
            feedback=RedistributionFeedback(
                message=f"Redistribution failed and was rolled back: {reason}",
                details=RedistributionDetails(
                    total_processed=len(sessions),
                    successfully_moved=0,
                    failed_to_move=len(sessions),
                    reasons=reasons,
                    suggestions=["Review study plan conflicts and try again"],
                ),
            ),
        )

    # ================================
    # HELPERS
    # ================================

    def _moved_copy(self, session: StudySession, item: MissedSession, date: str, slot, priority: float) -> StudySession:
        moved = transition(session, SessionState.REDISTRIBUTED)
        metadata = moved.scheduling_metadata or SessionSchedulingMetadata()
        original_slot = metadata.original_slot or SlotRef(
            date=item.plan_date, start_time=item.session.start_time, end_time=item.session.end_time
        )
        timestamp = now_timestamp(self.config.timezone)
        metadata.original_slot = original_slot
        metadata.reschedule_history.append(RescheduleHistoryEntry(
            from_slot=SlotRef(date=item.plan_date, start_time=item.session.start_time,
                              end_time=item.session.end_time),
            to_slot=SlotRef(date=date, start_time=slot.start, end_time=slot.end),
            timestamp=timestamp,
            reason=RescheduleReason.UNIFIED_REDISTRIBUTION,
            success=True,
        ))
        metadata.successful_moves += 1
        metadata.last_processed_at = timestamp
        metadata.priority = priority

        moved.scheduling_metadata = metadata
        moved.scheduled_time = date
        moved.start_time = slot.start
        moved.end_time = slot.end
        moved.allocated_hours = slot.duration
        moved.original_date = moved.original_date or item.plan_date
        moved.original_time = moved.original_time or item.session.start_time
        moved.rescheduled_at = timestamp
        return moved

    @staticmethod
    def _index_of(plan: StudyPlan, session: StudySession) -> int:
        for index, candidate in enumerate(plan.planned_tasks):
            if (candidate.task_id == session.task_id and candidate.session_number == session.session_number
                    and candidate.start_time == session.start_time):
                return index
        raise TimePilotError(f"Session {session.session_key} vanished from plan {plan.date}")

    @staticmethod
    def _next_session_numbers(plans: List[StudyPlan]) -> Dict[str, int]:
        numbers: Dict[str, int] = {}
        for plan in plans:
            for session in plan.planned_tasks:
                numbers[session.task_id] = max(numbers.get(session.task_id, 0), session.session_number or 0)
        return numbers

    def _result(self, success: bool, plans: List[StudyPlan], moved: List[StudySession], failed: List[StudySession],
                reasons: List[str], message: str, processed: Optional[int] = None) -> RedistributionResult:
        return RedistributionResult(
            success=success,
            plans=plans,
            redistributed_sessions=moved,
            failed_sessions=failed,
            conflicts_resolved=len(moved),
            total_sessions_moved=len(moved),
            rollback_performed=False,
            feedback=RedistributionFeedback(
                message=message,
                details=RedistributionDetails(
                    total_processed=processed if processed is not None else len(moved) + len(failed),
                    successfully_moved=len(moved),
                    failed_to_move=len(failed),
                    reasons=reasons,
                    suggestions=self.generate_suggestions(failed, reasons),
                ),
            ),
        )

    @staticmethod
    def generate_suggestions(failed: List[StudySession], reasons: List[str]) -> List[str]:
        if not failed:
            return []
        suggestions = [
            "Consider increasing daily available hours",
            "Check if task deadlines are realistic",
            "Review fixed commitments for conflicts",
        ]
        if any("deadline" in r for r in reasons):
            suggestions.append("Extend task deadlines if possible")
        if any("capacity" in r for r in reasons):
            suggestions.append("Reduce daily study load or extend study period")
        return suggestions
