"""
Time interval representation for a single calendar day.
"""

from typing import Any

from .constants import COMMITMENT, AVOIDED
from ..utils.time_utils import minutes_to_time


class DayInterval:
    """
    A busy or free stretch of one day, measured in minutes from midnight.
    Each interval represents exactly one thing:
    - A study session (occupant=StudySession)
    - A commitment block (occupant=COMMITMENT or the commitment itself)
    - An avoided range from settings (occupant=AVOIDED)
    - Free time (occupant=None)
    """
    def __init__(self, start: int, end: int, occupant: Any = None):
        self.start = start
        self.end = end
        self.occupant = occupant

    def duration(self) -> float:
        """Length in hours."""
        return (self.end - self.start) / 60

    def overlaps(self, other: "DayInterval") -> bool:
        return self.start < other.end and other.start < self.end

    def fits(self, minutes: int) -> bool:
        return self.end - self.start >= minutes

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    def __lt__(self, other):
        return (self.start, self.end) < (other.start, other.end)

    def __eq__(self, other):
        if not isinstance(other, DayInterval):
            return NotImplemented
        return self.start == other.start and self.end == other.end and self.occupant is other.occupant

    def __hash__(self):
        return hash((self.start, self.end, id(self.occupant)))

    def __repr__(self):
        if self.occupant is None:
            return f"FreeInterval({self.start_time} - {self.end_time})"
        elif self.occupant == AVOIDED:
            return f"AvoidedInterval({self.start_time} - {self.end_time})"
        elif self.occupant == COMMITMENT or hasattr(self.occupant, 'recurring'):
            name = getattr(self.occupant, 'title', 'commitment')
            return f"CommitmentInterval({self.start_time} - {self.end_time}, {name})"
        else:
            name = getattr(self.occupant, 'task_id', str(self.occupant))
            return f"SessionInterval({self.start_time} - {self.end_time}, {name})"


def free_gaps(busy: list, window_start: int, window_end: int, buffer_minutes: int = 0) -> list:
    """
    Return the free intervals between sorted busy intervals inside a window.
    The cursor only moves forward, so nested or overlapping busy intervals are tolerated.
    """
    gaps = []
    cursor = window_start
    for interval in sorted(busy):
        gap_end = min(interval.start, window_end)
        if gap_end > cursor:
            gaps.append(DayInterval(cursor, gap_end))
        cursor = max(cursor, interval.end + buffer_minutes)
    if cursor < window_end:
        gaps.append(DayInterval(cursor, window_end))
    return gaps
