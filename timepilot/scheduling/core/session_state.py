"""
Study session lifecycle.

scheduled -> in_progress -> completed | skipped_user | skipped_system
scheduled / in_progress, date passed incomplete -> missed_original
missed_original -> redistributed | failed_redistribution

A redistributed session behaves like a scheduled one on its new date.
Sessions with is_manual_override are frozen: automatic moves never apply.
"""

from typing import Dict, Optional, Set

from ...exceptions import InvalidTransitionError
from ...models import SessionState, SessionStatus, SkipReason, TERMINAL_STATES
from ...schemas import SessionSchedulingMetadata, StudySession
from ..utils.time_utils import time_to_minutes

_LIVE_TARGETS = {
    SessionState.COMPLETED,
    SessionState.SKIPPED_USER,
    SessionState.SKIPPED_SYSTEM,
    SessionState.MISSED_ORIGINAL,
}

TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
    SessionState.SCHEDULED: _LIVE_TARGETS | {SessionState.IN_PROGRESS},
    SessionState.IN_PROGRESS: set(_LIVE_TARGETS),
    SessionState.REDISTRIBUTED: _LIVE_TARGETS | {SessionState.IN_PROGRESS},
    SessionState.MISSED_ORIGINAL: {SessionState.REDISTRIBUTED, SessionState.FAILED_REDISTRIBUTION},
}

# States reached only by the engine, never by the user
AUTOMATIC_STATES = {
    SessionState.MISSED_ORIGINAL,
    SessionState.REDISTRIBUTED,
    SessionState.FAILED_REDISTRIBUTION,
    SessionState.SKIPPED_SYSTEM,
}


def current_state(session: StudySession) -> SessionState:
    """State recorded on the session, falling back to its display status."""
    if session.is_completed:
        return SessionState.COMPLETED
    if session.is_skipped:
        if session.skip_metadata and session.skip_metadata.reason != SkipReason.USER_CHOICE:
            return SessionState.SKIPPED_SYSTEM
        return SessionState.SKIPPED_USER
    if session.scheduling_metadata and session.scheduling_metadata.state:
        return session.scheduling_metadata.state
    if session.status == SessionStatus.IN_PROGRESS:
        return SessionState.IN_PROGRESS
    return SessionState.SCHEDULED


def can_transition(current: SessionState, target: SessionState) -> bool:
    return target in TRANSITIONS.get(current, set())


def is_within_session_window(session: StudySession, plan_date: str, today: str, now_minutes: int) -> bool:
    return (plan_date == today
            and time_to_minutes(session.start_time) <= now_minutes < time_to_minutes(session.end_time))


def transition(session: StudySession, target: SessionState, plan_date: Optional[str] = None,
               today: Optional[str] = None, now_minutes: Optional[int] = None) -> StudySession:
    """
    Return a copy of the session moved to target.

    Raises InvalidTransitionError for moves the lifecycle does not allow,
    for starting a session outside its own window, and for automatic moves
    of a manually rescheduled session.
    """
    state = current_state(session)
    if state in TERMINAL_STATES or not can_transition(state, target):
        raise InvalidTransitionError(state, target)

    if session.is_manual_override and target in AUTOMATIC_STATES:
        raise InvalidTransitionError(state, target)

    if target == SessionState.IN_PROGRESS:
        if plan_date is None or today is None or now_minutes is None:
            raise InvalidTransitionError(state, target)
        if not is_within_session_window(session, plan_date, today, now_minutes):
            raise InvalidTransitionError(state, target)

    metadata = (session.scheduling_metadata.model_copy(deep=True)
                if session.scheduling_metadata else SessionSchedulingMetadata())
    metadata.state = target

    update = {'scheduling_metadata': metadata}
    if target == SessionState.COMPLETED:
        update.update(done=True, status=SessionStatus.COMPLETED)
    elif target in (SessionState.SKIPPED_USER, SessionState.SKIPPED_SYSTEM):
        update['status'] = SessionStatus.SKIPPED
    elif target == SessionState.IN_PROGRESS:
        update['status'] = SessionStatus.IN_PROGRESS
    elif target == SessionState.REDISTRIBUTED:
        update['status'] = SessionStatus.SCHEDULED

    return session.model_copy(update=update, deep=True)


def is_missed(session: StudySession, plan_date: str, today: str) -> bool:
    """A past-dated session that was neither finished nor settled."""
    if plan_date >= today or session.is_manual_override:
        return False
    return current_state(session) in (
        SessionState.SCHEDULED, SessionState.IN_PROGRESS, SessionState.MISSED_ORIGINAL,
    )
