"""
Time-related constraint checking functions: study windows, work days,
commitment blocks and daily capacity.
"""

from typing import List, Optional, Tuple

from ...schemas import FixedCommitment, StudySession, UserSettings
from ...services.recurrence import commitment_occurs_on
from ..core.constants import ALL_DAY_START, ALL_DAY_END, AVOIDED
from ..core.time_slot import DayInterval
from ..utils.time_utils import weekday, time_to_minutes


def get_effective_study_window(date: str, settings: UserSettings) -> Tuple[int, int]:
    """
    Study window (start_hour, end_hour) for a date.
    An active date-specific window wins over an active weekday window, which wins over the default.
    """
    for window in settings.date_specific_study_windows:
        if window.date == date and window.is_active:
            return window.start_hour, window.end_hour

    day = weekday(date)
    for window in settings.day_specific_study_windows:
        if window.day_of_week == day and window.is_active:
            return window.start_hour, window.end_hour

    return settings.study_window_start_hour, settings.study_window_end_hour


def is_work_day(date: str, settings: UserSettings) -> bool:
    return weekday(date) in settings.work_days


def get_daily_study_hours(date: str, settings: UserSettings) -> float:
    """Base study hours for a date, honouring weekday overrides."""
    day = weekday(date)
    for override in settings.day_specific_study_hours:
        if override.day_of_week == day and override.is_active:
            return override.study_hours
    return settings.daily_available_hours


def get_commitment_interval(commitment: FixedCommitment, date: str) -> Optional[DayInterval]:
    """
    Busy interval a commitment occupies on a date, or None when it does not apply.
    Modified occurrences take precedence over weekday timings, which take precedence over base times.
    """
    if not commitment_occurs_on(commitment, date):
        return None

    start_time, end_time = commitment.start_time, commitment.end_time
    is_all_day = commitment.is_all_day

    if commitment.use_day_specific_timing:
        day = weekday(date)
        for timing in commitment.day_specific_timings:
            if timing.day_of_week == day:
                start_time = timing.start_time or start_time
                end_time = timing.end_time or end_time
                is_all_day = timing.is_all_day
                break

    modified = commitment.modified_occurrences.get(date)
    if modified:
        if modified.is_all_day is not None:
            is_all_day = modified.is_all_day
        start_time = modified.start_time or start_time
        end_time = modified.end_time or end_time

    if is_all_day:
        return DayInterval(ALL_DAY_START, ALL_DAY_END, commitment)

    start = time_to_minutes(start_time) if start_time else ALL_DAY_START
    end = time_to_minutes(end_time) if end_time else ALL_DAY_END
    if end <= start:
        return None
    return DayInterval(start, end, commitment)


def get_commitment_intervals(commitments: List[FixedCommitment], date: str) -> List[DayInterval]:
    intervals = []
    for commitment in commitments:
        interval = get_commitment_interval(commitment, date)
        if interval is not None:
            intervals.append(interval)
    return intervals


def has_all_day_commitment(commitments: List[FixedCommitment], date: str) -> bool:
    return any(
        interval.start == ALL_DAY_START and interval.end == ALL_DAY_END
        for interval in get_commitment_intervals(commitments, date)
    )


def calculate_committed_hours(date: str, commitments: List[FixedCommitment]) -> float:
    """Hours of commitments on a date that count toward the daily study budget."""
    total = 0.0
    for interval in get_commitment_intervals(commitments, date):
        if interval.occupant.counts_toward_daily_hours:
            total += interval.duration()
    return total


def calculate_daily_available_hours(date: str, settings: UserSettings, commitments: List[FixedCommitment]) -> float:
    """
    Study hours available on a date: base hours minus counted commitment hours, floored at zero.
    An all-day commitment leaves nothing.
    """
    if has_all_day_commitment(commitments, date):
        return 0.0
    return max(0.0, get_daily_study_hours(date, settings) - calculate_committed_hours(date, commitments))


def avoided_intervals(settings: UserSettings) -> List[DayInterval]:
    return [
        DayInterval(time_to_minutes(r.start), time_to_minutes(r.end), AVOIDED)
        for r in settings.avoid_time_ranges
        if time_to_minutes(r.end) > time_to_minutes(r.start)
    ]


def session_interval(session: StudySession) -> DayInterval:
    return DayInterval(time_to_minutes(session.start_time), time_to_minutes(session.end_time), session)


def blocking_sessions(sessions: List[StudySession]) -> List[StudySession]:
    """Sessions that occupy time on the calendar: skipped sessions free their slot."""
    return [s for s in sessions if not s.is_skipped]


def validate_session_times(sessions: List[StudySession], commitments: List[FixedCommitment], date: str) -> bool:
    """
    Return True when no session overlaps another session or a commitment on the date.
    """
    return find_overlap(sessions, commitments, date) is None


def find_overlap(sessions: List[StudySession], commitments: List[FixedCommitment], date: str):
    """
    First overlapping pair on the date involving at least one session, or None.
    Commitments overlapping each other are the user's own calendar and are ignored.
    """
    session_intervals = sorted(session_interval(s) for s in blocking_sessions(sessions))
    commitment_intervals = get_commitment_intervals(commitments, date)
    for index, interval in enumerate(session_intervals):
        for other in session_intervals[index + 1:] + commitment_intervals:
            if interval.overlaps(other):
                return interval, other
    return None
