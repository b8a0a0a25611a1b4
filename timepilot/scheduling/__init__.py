"""
TimePilot Scheduling System

Slot search, capacity tracking, planning strategies and session recovery for
multi-day study plans. Works independently of the HTTP layer.
"""

from .core.time_slot import DayInterval, free_gaps
from .core.constants import ALL_DAY_START, ALL_DAY_END, COMMITMENT, AVOIDED

# Version for future API compatibility
__version__ = "1.0.0"
