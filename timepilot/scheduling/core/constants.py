"""
Shared constants for the scheduling system.
"""

MINUTES_PER_DAY = 24 * 60
ALL_DAY_START = 0
ALL_DAY_END = MINUTES_PER_DAY - 1

DEFAULT_MIN_WORK_BLOCK_MINUTES = 30
DEFAULT_MAX_SESSION_HOURS = 4
DEFAULT_NO_DEADLINE_SESSION_HOURS = 2
BALANCED_NO_DEADLINE_SESSION_HOURS = 1.5

# Leftovers below one minute are rounding noise, not unscheduled work
UNSCHEDULED_EPSILON_HOURS = 1 / 60

# Occupant markers for day intervals
COMMITMENT = "commitment"
AVOIDED = "avoided"
