"""
Commitment session generation.

Fixed commitments are expanded into dated occurrences; flexible commitments
(a weekly hour target with preferred days and times) are turned into concrete
weekly blocks that avoid everything already on the calendar.
"""

import logging
from typing import Dict, List, Optional

from ..schemas import (
    CommitmentOccurrence, FixedCommitment, FlexibleCommitment, GeneratedSession, StudyPlan, UserSettings
)
from ..scheduling.constraints.time_constraints import (
    get_commitment_interval, get_commitment_intervals, get_effective_study_window, session_interval,
    blocking_sessions
)
from ..scheduling.core.constants import ALL_DAY_END, ALL_DAY_START
from ..scheduling.core.time_slot import DayInterval, free_gaps
from ..scheduling.utils.time_utils import add_days, iter_dates, minutes_to_time, round_hours, time_to_minutes, weekday
from .recurrence import expand_commitment_dates

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 90
SLOT_BUFFER_MINUTES = 5

PREFERRED_DAY_SCORE = 100
TIME_OVERLAP_SCORE = 50
DURATION_SCORE = 25
CONSISTENCY_BONUS = 10


# ================================
# FIXED COMMITMENTS
# ================================

def expand_commitment_occurrences(commitments: List[FixedCommitment], start_date: str,
                                  end_date: str) -> List[CommitmentOccurrence]:
    """Every occurrence of the commitments between two dates, ordered by date and start time."""
    occurrences = []
    for commitment in commitments:
        for date in expand_commitment_dates(commitment, start_date, end_date):
            interval = get_commitment_interval(commitment, date)
            if interval is None:
                continue
            modified = commitment.modified_occurrences.get(date)
            is_all_day = interval.start == ALL_DAY_START and interval.end == ALL_DAY_END
            occurrences.append(CommitmentOccurrence(
                commitment_id=commitment.id,
                title=(modified.title if modified and modified.title else commitment.title),
                date=date,
                start_time=None if is_all_day else interval.start_time,
                end_time=None if is_all_day else interval.end_time,
                is_all_day=is_all_day,
                category=(modified.category if modified and modified.category else commitment.category),
            ))
    occurrences.sort(key=lambda o: (o.date, o.start_time or "", o.commitment_id))
    return occurrences


# ================================
# FLEXIBLE COMMITMENTS
# ================================

def calculate_slot_score(slot: DayInterval, date: str, commitment: FlexibleCommitment) -> float:
    """Preference score for a candidate slot: day, time-range overlap and duration closeness."""
    score = 0.0
    if weekday(date) in commitment.preferred_days:
        score += PREFERRED_DAY_SCORE

    length = slot.end - slot.start
    if length > 0:
        for time_range in commitment.preferred_time_ranges:
            overlap = min(slot.end, time_to_minutes(time_range.end)) - max(slot.start, time_to_minutes(time_range.start))
            score += max(0, overlap) / length * TIME_OVERLAP_SCORE

    min_hours = commitment.session_duration_range.min / 60
    max_hours = commitment.session_duration_range.max / 60
    optimal = (min_hours + max_hours) / 2
    spread = max(optimal - min_hours, max_hours - optimal)
    if spread > 0:
        score += (1 - abs(slot.duration() - optimal) / spread) * DURATION_SCORE

    return score + CONSISTENCY_BONUS


def calculate_session_duration(remaining_hours: float, commitment: FlexibleCommitment, slot_hours: float) -> float:
    """Hours to book in a slot, or 0 when the minimum session does not fit."""
    min_hours = commitment.session_duration_range.min / 60
    max_hours = commitment.session_duration_range.max / 60
    possible = min(remaining_hours, slot_hours, max_hours)
    if possible < min_hours:
        return 0.0
    return round_hours(possible)


def find_commitment_slots(date: str, commitment: FlexibleCommitment, settings: UserSettings,
                          busy: List[DayInterval]) -> List[DayInterval]:
    """
    Free slots on a date inside the commitment's preferred time ranges and the
    study window. Each slot starts at the beginning of a gap and is at most
    the maximum session length.
    """
    start_hour, end_hour = get_effective_study_window(date, settings)
    window_start, window_end = start_hour * 60, min(end_hour * 60, ALL_DAY_END)
    min_minutes = commitment.session_duration_range.min
    max_minutes = commitment.session_duration_range.max

    slots = []
    for time_range in commitment.preferred_time_ranges:
        range_start = max(time_to_minutes(time_range.start), window_start)
        range_end = min(time_to_minutes(time_range.end), window_end)
        if range_start >= range_end:
            continue
        for gap in free_gaps(busy, range_start, range_end, SLOT_BUFFER_MINUTES):
            if gap.fits(min_minutes):
                slots.append(DayInterval(gap.start, min(gap.end, gap.start + max_minutes)))
    return slots


def _busy_on(date: str, commitments: List[FixedCommitment], plans_by_date: Dict[str, StudyPlan]) -> List[DayInterval]:
    busy = get_commitment_intervals(commitments, date)
    plan = plans_by_date.get(date)
    if plan is not None:
        busy.extend(session_interval(s) for s in blocking_sessions(plan.planned_tasks))
    return busy


def generate_weekly_sessions(commitment: FlexibleCommitment, week_days: List[str], settings: UserSettings,
                             commitments: List[FixedCommitment],
                             plans_by_date: Dict[str, StudyPlan]) -> List[GeneratedSession]:
    """Fill one week's hour target from the best-scoring free slots."""
    candidates = []
    for date in week_days:
        day = weekday(date)
        if day not in commitment.preferred_days or day not in settings.work_days:
            continue
        for slot in find_commitment_slots(date, commitment, settings, _busy_on(date, commitments, plans_by_date)):
            candidates.append((calculate_slot_score(slot, date, commitment), date, slot))

    candidates.sort(key=lambda c: (-c[0], c[1], c[2].start))

    sessions = []
    booked: Dict[str, List[DayInterval]] = {}
    remaining = commitment.total_hours_per_week
    for _, date, slot in candidates:
        if remaining <= 0:
            break
        if any(slot.overlaps(other) for other in booked.get(date, [])):
            continue
        duration = calculate_session_duration(remaining, commitment, slot.duration())
        if duration <= 0:
            continue
        end = slot.start + round(duration * 60)
        booked.setdefault(date, []).append(DayInterval(slot.start, end + SLOT_BUFFER_MINUTES))
        sessions.append(GeneratedSession(
            date=date,
            start_time=minutes_to_time(slot.start),
            end_time=minutes_to_time(end),
            duration=duration,
            day_of_week=weekday(date),
        ))
        remaining = round_hours(remaining - duration)

    if remaining > 0:
        logger.debug("Week of %s short by %s hours for %s", week_days[0] if week_days else "-", remaining,
                     commitment.title, extra={"commitment_id": commitment.id})
    return sorted(sessions, key=lambda s: (s.date, s.start_time))


def generate_flexible_commitment_sessions(commitment: FlexibleCommitment, settings: UserSettings,
                                          commitments: List[FixedCommitment], plans: List[StudyPlan],
                                          today: str, end_date: Optional[str] = None) -> List[GeneratedSession]:
    """
    Weekly blocks for a flexible commitment over its date range, or the next
    ninety days from today when it has none. Weeks run from the range start.
    """
    if commitment.date_range:
        start, end = commitment.date_range.start_date, commitment.date_range.end_date
    else:
        start, end = today, add_days(today, DEFAULT_HORIZON_DAYS)
    if end_date is not None:
        end = min(end, end_date)
    if start > end:
        return []

    plans_by_date = {plan.date: plan for plan in plans}
    days = list(iter_dates(start, end))
    sessions = []
    for offset in range(0, len(days), 7):
        sessions.extend(generate_weekly_sessions(commitment, days[offset:offset + 7], settings,
                                                 commitments, plans_by_date))

    logger.info("Generated %s sessions for flexible commitment %s", len(sessions), commitment.title,
                extra={"commitment_id": commitment.id, "start": start, "end": end})
    return sessions
