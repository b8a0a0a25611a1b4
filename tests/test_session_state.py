import pytest

from timepilot.exceptions import InvalidTransitionError
from timepilot.models import SessionState, SessionStatus
from timepilot.scheduling.core.session_state import current_state, is_missed, transition


def test_completing_a_session(make_session):
    session = make_session()

    completed = transition(session, SessionState.COMPLETED)

    assert completed.done and completed.status == SessionStatus.COMPLETED
    assert current_state(completed) == SessionState.COMPLETED
    assert not session.done


@pytest.mark.parametrize("target", list(SessionState))
def test_terminal_states_are_final(make_session, target):
    completed = make_session(done=True, status="completed")

    with pytest.raises(InvalidTransitionError):
        transition(completed, target)


def test_in_progress_only_inside_the_session_window(make_session, today):
    session = make_session(start="09:00", end="10:00")

    started = transition(session, SessionState.IN_PROGRESS, plan_date=today, today=today, now_minutes=9 * 60 + 30)
    assert started.status == SessionStatus.IN_PROGRESS

    with pytest.raises(InvalidTransitionError):
        transition(session, SessionState.IN_PROGRESS, plan_date=today, today=today, now_minutes=11 * 60)
    with pytest.raises(InvalidTransitionError):
        transition(session, SessionState.IN_PROGRESS)


def test_missed_sessions_can_only_be_redistributed_or_failed(make_session):
    missed = transition(make_session(), SessionState.MISSED_ORIGINAL)

    with pytest.raises(InvalidTransitionError):
        transition(missed, SessionState.COMPLETED)
    assert current_state(transition(missed, SessionState.REDISTRIBUTED)) == SessionState.REDISTRIBUTED
    assert current_state(transition(missed, SessionState.FAILED_REDISTRIBUTION)) == SessionState.FAILED_REDISTRIBUTION


def test_manual_sessions_are_frozen_for_automatic_moves(make_session):
    manual = make_session(is_manual_override=True)

    with pytest.raises(InvalidTransitionError):
        transition(manual, SessionState.MISSED_ORIGINAL)
    assert transition(manual, SessionState.SKIPPED_USER).status == SessionStatus.SKIPPED


def test_is_missed(make_session, today):
    assert is_missed(make_session(), "2026-10-18", today)
    assert not is_missed(make_session(), today, today)
    assert not is_missed(make_session(done=True, status="completed"), "2026-10-18", today)
    assert not is_missed(make_session(status="skipped"), "2026-10-18", today)
    assert not is_missed(make_session(is_manual_override=True), "2026-10-18", today)
