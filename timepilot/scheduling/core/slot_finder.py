"""
Earliest-fit time slot search within a day's study window.
"""

import logging
from typing import List, Optional

from ...exceptions import InvalidDurationError
from ...schemas import FixedCommitment, StudySession, TimeSlot, UserSettings
from ..constraints.time_constraints import (
    get_effective_study_window, get_commitment_intervals, avoided_intervals,
    session_interval, blocking_sessions
)
from .constants import ALL_DAY_END
from .time_slot import DayInterval, free_gaps
from ..utils.time_utils import minutes_to_time

logger = logging.getLogger(__name__)


def collect_busy_intervals(existing_sessions: List[StudySession], commitments: List[FixedCommitment],
                           date: str, settings: UserSettings) -> List[DayInterval]:
    """All busy intervals for a date: placed sessions, commitment blocks and avoided ranges."""
    busy = [session_interval(s) for s in blocking_sessions(existing_sessions)]
    busy.extend(get_commitment_intervals(commitments, date))
    busy.extend(avoided_intervals(settings))
    return sorted(busy)


def get_window_minutes(date: str, settings: UserSettings) -> tuple:
    start_hour, end_hour = get_effective_study_window(date, settings)
    return start_hour * 60, min(end_hour * 60, ALL_DAY_END)


def find_next_available_time_slot(required_hours: float, existing_sessions: List[StudySession],
                                  commitments: List[FixedCommitment], date: str,
                                  settings: UserSettings) -> Optional[TimeSlot]:
    """
    Find the earliest gap in the study window that fits the required duration.

    Busy intervals are swept in start order; after each one the cursor moves to
    max(cursor, end + buffer). Returns None when nothing fits; a non-positive
    duration is a caller error.
    """
    required_minutes = round(required_hours * 60) if required_hours > 0 else 0
    if required_minutes <= 0:
        raise InvalidDurationError(f"Cannot search for a slot of {required_hours} hours")

    window_start, window_end = get_window_minutes(date, settings)
    busy = collect_busy_intervals(existing_sessions, commitments, date, settings)

    for gap in free_gaps(busy, window_start, window_end, settings.buffer_time_between_sessions):
        if gap.fits(required_minutes):
            return TimeSlot(
                start=minutes_to_time(gap.start),
                end=minutes_to_time(gap.start + required_minutes),
                duration=required_minutes / 60,
            )

    logger.debug("No %s minute slot on %s", required_minutes, date,
                 extra={"date": date, "required_minutes": required_minutes})
    return None


def get_available_time_slots(existing_sessions: List[StudySession], commitments: List[FixedCommitment],
                             date: str, settings: UserSettings) -> List[TimeSlot]:
    """Every free gap of the study window on a date."""
    window_start, window_end = get_window_minutes(date, settings)
    busy = collect_busy_intervals(existing_sessions, commitments, date, settings)
    return [
        TimeSlot(start=gap.start_time, end=gap.end_time, duration=gap.duration())
        for gap in free_gaps(busy, window_start, window_end, settings.buffer_time_between_sessions)
    ]


class TimeSlotFinder:
    """Binds settings and commitments so strategies can search slots by date."""

    def __init__(self, settings: UserSettings, commitments: List[FixedCommitment]):
        self.settings = settings
        self.commitments = commitments

    def find(self, required_hours: float, sessions: List[StudySession], date: str) -> Optional[TimeSlot]:
        return find_next_available_time_slot(required_hours, sessions, self.commitments, date, self.settings)

    def available_slots(self, sessions: List[StudySession], date: str) -> List[TimeSlot]:
        return get_available_time_slots(sessions, self.commitments, date, self.settings)

    def largest_gap_hours(self, sessions: List[StudySession], date: str) -> float:
        slots = self.available_slots(sessions, date)
        return max((slot.duration for slot in slots), default=0.0)
