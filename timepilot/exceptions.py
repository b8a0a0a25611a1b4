"""
Exceptions raised by the scheduling engine.

Expected scheduling failures (a session that cannot fit, a task that is not
feasible) are returned as data. These are reserved for invalid arguments and
broken invariants.
"""


class TimePilotError(Exception):
    """Base class for engine errors."""


class InvalidDurationError(TimePilotError, ValueError):
    """A slot was requested for a zero or negative duration."""


class InvalidTransitionError(TimePilotError):
    """A study session was moved to a state its current state cannot reach."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move session from {current.value} to {target.value}")


class RedistributionRollbackError(TimePilotError):
    """Post-conditions failed after a redistribution batch; the batch must be discarded."""

    def __init__(self, reasons):
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons) or "post-validation failed")


class SessionNotFoundError(TimePilotError, LookupError):
    """No session matches the requested task, session number and date."""

    def __init__(self, task_id, session_number, date=None):
        self.task_id = task_id
        self.session_number = session_number
        self.date = date
        where = f" on {date}" if date else ""
        super().__init__(f"Session {task_id}-{session_number} not found{where}")
