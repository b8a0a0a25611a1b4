"""
Per-date ledger of remaining study hours.
"""

from typing import Dict, Iterable, List

from ...schemas import FixedCommitment, StudySession, UserSettings
from ..constraints.time_constraints import calculate_daily_available_hours
from ..utils.time_utils import round_hours

# Float slack when comparing hour amounts that were rounded to whole minutes
EPSILON = 1e-6


class DailyCapacityTracker:
    """
    remaining(date) = capacity(date) - placed(date)

    capacity is the day's study hours minus counted commitment hours; placed is
    the sum of non-completed session hours already on the date. Placements that
    would overdraw a day are rejected rather than clamped.
    """
    def __init__(self, settings: UserSettings, commitments: List[FixedCommitment]):
        self.settings = settings
        self.commitments = commitments
        self._capacity: Dict[str, float] = {}
        self._placed: Dict[str, float] = {}

    def capacity(self, date: str) -> float:
        if date not in self._capacity:
            self._capacity[date] = calculate_daily_available_hours(date, self.settings, self.commitments)
        return self._capacity[date]

    def placed(self, date: str) -> float:
        return self._placed.get(date, 0.0)

    def remaining(self, date: str) -> float:
        """Hours still free on a date, floored at zero."""
        return max(0.0, round_hours(self.capacity(date) - self.placed(date)))

    def can_place(self, date: str, hours: float) -> bool:
        return hours > 0 and hours <= self.capacity(date) - self.placed(date) + EPSILON

    def place(self, date: str, hours: float) -> bool:
        """Debit a placement. Returns False and leaves the ledger untouched if it would overdraw."""
        if not self.can_place(date, hours):
            return False
        self._placed[date] = round_hours(self.placed(date) + hours)
        return True

    def release(self, date: str, hours: float) -> None:
        self._placed[date] = max(0.0, round_hours(self.placed(date) - hours))

    def seed(self, date: str, sessions: Iterable[StudySession]) -> None:
        """Account for sessions that already sit on a date. Completed sessions consume nothing."""
        hours = sum(s.allocated_hours for s in sessions if not s.is_completed and not s.is_skipped)
        if hours:
            self._placed[date] = round_hours(self.placed(date) + hours)

    def utilization(self, date: str) -> float:
        capacity = self.capacity(date)
        if capacity <= 0:
            return 1.0 if self.placed(date) > 0 else 0.0
        return self.placed(date) / capacity

    def copy(self) -> "DailyCapacityTracker":
        clone = DailyCapacityTracker(self.settings, self.commitments)
        clone._capacity = dict(self._capacity)
        clone._placed = dict(self._placed)
        return clone
