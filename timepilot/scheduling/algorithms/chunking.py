"""
Chunking algorithms for breaking a task's hours into per-day sessions.
"""

import math
from typing import Callable, List, Optional

from ...schemas import Task, UserSettings
from ..core.constants import DEFAULT_MAX_SESSION_HOURS
from ..utils.time_utils import round_hours


def max_session_hours(settings: UserSettings) -> float:
    """Longest session the distributor will propose: the session cap or the daily budget."""
    return min(settings.max_session_hours or DEFAULT_MAX_SESSION_HOURS, settings.daily_available_hours)


def calculate_chunk_strategy(task: Task, total_hours: float, days: List[str], settings: UserSettings) -> dict:
    """
    Decide how a task's remaining hours are split over its candidate days.

    Returns a dict with the chosen strategy name and the raw (unrounded) session lengths:
    - one_sitting: a single block with everything
    - preferred_duration: blocks of the task's preferred length, when the range has room for them
    - even_split: as few sessions as the minimum length allows, spread evenly and capped
    """
    if total_hours <= 0:
        return {'strategy': 'empty', 'sessions': []}

    if task.is_one_time_task:
        return {'strategy': 'one_sitting', 'sessions': [total_hours]}

    min_session = settings.min_session_length / 60
    max_session = max_session_hours(settings)

    preferred = task.session_duration
    if preferred and math.ceil(total_hours / preferred) <= len(days):
        sessions = []
        remaining = total_hours
        for _ in range(math.ceil(total_hours / preferred)):
            length = min(preferred, remaining)
            if length >= min_session or not sessions:
                sessions.append(length)
                remaining -= length
        if remaining > 0 and sessions:
            sessions[-1] += remaining
        return {'strategy': 'preferred_duration', 'sessions': sessions}

    session_count = min(len(days), math.floor(total_hours / min_session))
    if session_count == 0:
        session_count = len(days)

    sessions = []
    remaining = total_hours
    for i in range(session_count):
        if remaining <= 0:
            break
        length = min(remaining / (session_count - i), max_session, remaining)
        if length >= min_session:
            sessions.append(length)
            remaining -= length

    if remaining > 0 and sessions:
        sessions[0] += remaining
    elif not sessions and days:
        # Shorter than the minimum session but still real work
        sessions = [total_hours]

    return {'strategy': 'even_split', 'sessions': sessions}


def optimize_session_distribution(task: Task, total_hours: float, days: List[str],
                                  settings: UserSettings) -> List[float]:
    """
    Ordered session lengths for a task, one intended per successive day.
    Lengths are rounded to whole minutes and the first session absorbs the
    rounding difference so the total is preserved.
    """
    sessions = calculate_chunk_strategy(task, total_hours, days, settings)['sessions']
    if not sessions:
        return []

    rounded = [round_hours(length) for length in sessions]
    drift = round_hours(round_hours(total_hours) - sum(rounded))
    rounded[0] = round_hours(rounded[0] + drift)
    return [length for length in rounded if length > 0]


def find_one_sitting_day(task: Task, days: List[str], fits: Callable[[str], bool]) -> Optional[str]:
    """
    Pick the day for a one-sitting task.

    Important tasks are placed as early as possible; the rest prefer the last
    valid day (the effective deadline) and fall back toward today.
    """
    ordered = days if task.importance else list(reversed(days))
    for day in ordered:
        if fits(day):
            return day
    return None


class SessionDistributor:
    """Binds settings so strategies can ask for a task's session lengths."""

    def __init__(self, settings: UserSettings):
        self.settings = settings

    def distribute(self, task: Task, total_hours: float, days: List[str]) -> List[float]:
        return optimize_session_distribution(task, total_hours, days, self.settings)

    def one_sitting_day(self, task: Task, days: List[str], fits: Callable[[str], bool]) -> Optional[str]:
        return find_one_sitting_day(task, days, fits)

    @property
    def min_session_hours(self) -> float:
        return self.settings.min_session_length / 60

    @property
    def max_session_hours(self) -> float:
        return max_session_hours(self.settings)
