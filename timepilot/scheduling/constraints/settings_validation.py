"""
Validation of settings changes and new commitments against what is already
on the calendar.
"""

import logging
from typing import List, Optional

from ...models import ConflictType
from ...schemas import (
    CommitmentConflict, FixedCommitment, SettingsChangeIssue, SettingsChangeValidation, StudyPlan, UserSettings
)
from ...services.recurrence import commitment_occurs_on
from ..utils.time_utils import time_to_minutes
from .time_constraints import get_effective_study_window, is_work_day

logger = logging.getLogger(__name__)


def validate_settings_change(old_settings: UserSettings, new_settings: UserSettings,
                             plans: List[StudyPlan]) -> SettingsChangeValidation:
    """
    Check manually rescheduled sessions against new settings.

    Automatic sessions are regenerated anyway, so only manual overrides can
    end up outside the new study window or on a day that is no longer studied.
    """
    issues = []
    for plan in plans:
        start_hour, end_hour = get_effective_study_window(plan.date, new_settings)
        for session in plan.planned_tasks:
            if not session.is_manual_override:
                continue
            if (time_to_minutes(session.start_time) < start_hour * 60
                    or time_to_minutes(session.end_time) > end_hour * 60):
                issues.append(SettingsChangeIssue(
                    date=plan.date,
                    task_id=session.task_id,
                    message=(f"Manually rescheduled session {session.start_time}-{session.end_time} is outside "
                             f"the new study window ({start_hour:02d}:00-{end_hour:02d}:00)"),
                ))
            if not is_work_day(plan.date, new_settings):
                issues.append(SettingsChangeIssue(
                    date=plan.date,
                    task_id=session.task_id,
                    message="Manually rescheduled session is on a day you no longer study",
                ))

    if issues:
        removed_days = sorted(set(old_settings.work_days) - set(new_settings.work_days))
        logger.info("Settings change conflicts with %s manual sessions", len(issues),
                    extra={"removed_work_days": removed_days})
    return SettingsChangeValidation(is_valid=not issues, issues=issues)


def _time_range(commitment: FixedCommitment) -> tuple:
    if commitment.is_all_day:
        return 0, 24 * 60 - 1
    start = time_to_minutes(commitment.start_time) if commitment.start_time else 0
    end = time_to_minutes(commitment.end_time) if commitment.end_time else 0
    return start, end


def _times_overlap(first: FixedCommitment, second: FixedCommitment) -> bool:
    first_start, first_end = _time_range(first)
    second_start, second_end = _time_range(second)
    return first_start < second_end and second_start < first_end


def _date_ranges_overlap(first: FixedCommitment, second: FixedCommitment) -> bool:
    # A commitment without a date range runs indefinitely
    if not first.date_range or not second.date_range:
        return True
    return not (first.date_range.end_date < second.date_range.start_date
                or first.date_range.start_date > second.date_range.end_date)


def check_commitment_conflicts(new_commitment: FixedCommitment, existing: List[FixedCommitment],
                               exclude_commitment_id: Optional[str] = None) -> CommitmentConflict:
    """
    Find the first existing commitment the new one collides with.

    Two recurring or two one-off commitments that overlap in time are a
    strict conflict. A one-off commitment on a date a recurring one occupies
    is an override: the one-off occurrence takes priority. All-day
    commitments never conflict.
    """
    if new_commitment.recurring and new_commitment.is_all_day:
        return CommitmentConflict(has_conflict=False)

    for other in existing:
        if other.id == exclude_commitment_id or other.is_all_day or new_commitment.is_all_day:
            continue

        if new_commitment.recurring and other.recurring:
            shared_days = set(new_commitment.days_of_week) & set(other.days_of_week)
            if shared_days and _date_ranges_overlap(new_commitment, other) and _times_overlap(new_commitment, other):
                return CommitmentConflict(has_conflict=True, conflict_type=ConflictType.STRICT,
                                          conflicting_commitment=other)

        elif not new_commitment.recurring and not other.recurring:
            dates = [d for d in new_commitment.specific_dates if d in other.specific_dates]
            if dates and _times_overlap(new_commitment, other):
                return CommitmentConflict(has_conflict=True, conflict_type=ConflictType.STRICT,
                                          conflicting_commitment=other, conflicting_dates=dates)

        else:
            recurring, one_off = (new_commitment, other) if new_commitment.recurring else (other, new_commitment)
            dates = [d for d in one_off.specific_dates if commitment_occurs_on(recurring, d)]
            if dates and _times_overlap(new_commitment, other):
                return CommitmentConflict(has_conflict=True, conflict_type=ConflictType.OVERRIDE,
                                          conflicting_commitment=other, conflicting_dates=dates)

    return CommitmentConflict(has_conflict=False)
