import pytest

from timepilot.schemas import DateRange, FixedCommitment, FlexibleCommitment, SessionDurationRange, TimeRange
from timepilot.services.commitment_sessions import (
    calculate_session_duration, expand_commitment_occurrences, generate_flexible_commitment_sessions
)


@pytest.fixture
def running():
    return FlexibleCommitment(
        id="run", title="Running", total_hours_per_week=3,
        preferred_days=[1, 3],
        preferred_time_ranges=[TimeRange(start="18:00", end="21:00")],
        session_duration_range=SessionDurationRange(min=60, max=90),
        date_range=DateRange(start_date="2026-10-19", end_date="2026-10-25"),
    )


def test_weekly_hours_are_split_over_preferred_days(settings, running, today):
    sessions = generate_flexible_commitment_sessions(running, settings, [], [], today=today)

    assert [(s.date, s.start_time, s.end_time, s.duration, s.day_of_week) for s in sessions] == [
        ("2026-10-19", "18:00", "19:30", 1.5, 1),
        ("2026-10-21", "18:00", "19:30", 1.5, 3),
    ]


def test_sessions_avoid_fixed_commitments_with_a_buffer(settings, running, today):
    choir = FixedCommitment(id="choir", title="Choir", specific_dates=[today], start_time="18:00", end_time="19:00")

    sessions = generate_flexible_commitment_sessions(running, settings, [choir], [], today=today)

    assert (sessions[0].date, sessions[0].start_time, sessions[0].end_time) == (today, "19:05", "20:35")


def test_sessions_avoid_planned_study(settings, running, make_plan, make_session, today):
    plans = [make_plan(today, [make_session(start="18:00", end="20:30")])]

    sessions = generate_flexible_commitment_sessions(running, settings, [], plans, today=today)

    assert today not in [s.date for s in sessions]


def test_no_date_range_uses_rolling_horizon(settings, running, today):
    open_ended = running.model_copy(update={'date_range': None})

    sessions = generate_flexible_commitment_sessions(open_ended, settings, [], [], today=today, end_date="2026-11-01")

    assert sum(s.duration for s in sessions) == pytest.approx(6)
    assert all(today <= s.date <= "2026-11-01" for s in sessions)


def test_session_duration_respects_minimum(running):
    assert calculate_session_duration(3, running, 0.5) == 0
    assert calculate_session_duration(0.75, running, 2) == 0
    assert calculate_session_duration(3, running, 2) == 1.5


def test_expand_commitment_occurrences(today):
    seminar = FixedCommitment(id="seminar", title="Seminar", recurring=True, days_of_week=[1, 3],
                              start_time="10:00", end_time="11:00")
    holiday = FixedCommitment(id="holiday", title="Holiday", specific_dates=["2026-10-20"], is_all_day=True)

    occurrences = expand_commitment_occurrences([seminar, holiday], today, "2026-10-21")

    assert [(o.date, o.title, o.start_time, o.is_all_day) for o in occurrences] == [
        ("2026-10-19", "Seminar", "10:00", False),
        ("2026-10-20", "Holiday", None, True),
        ("2026-10-21", "Seminar", "10:00", False),
    ]
