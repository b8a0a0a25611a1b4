import pytest

from timepilot.scheduling.algorithms.chunking import (
    SessionDistributor, calculate_chunk_strategy, find_one_sitting_day
)

DAYS = ["2026-10-19", "2026-10-20", "2026-10-21"]


def test_even_split(settings, make_task):
    distributor = SessionDistributor(settings)

    assert distributor.distribute(make_task(estimated_hours=6), 6, DAYS) == [2, 2, 2]


def test_sessions_are_capped_and_first_absorbs_rest(settings, make_task):
    settings.max_session_hours = 1.5

    lengths = SessionDistributor(settings).distribute(make_task(estimated_hours=6), 6, DAYS)

    assert lengths == [3, 1.5, 1.5]
    assert sum(lengths) == 6


def test_preferred_duration(settings, make_task):
    task = make_task(estimated_hours=3, session_duration=1.5)

    assert calculate_chunk_strategy(task, 3, DAYS, settings) == {
        'strategy': 'preferred_duration', 'sessions': [1.5, 1.5]
    }


def test_one_sitting_is_a_single_block(settings, make_task):
    task = make_task(estimated_hours=3, is_one_time_task=True)

    assert SessionDistributor(settings).distribute(task, 3, DAYS) == [3]


def test_work_below_minimum_becomes_one_session(settings, make_task):
    task = make_task(estimated_hours=0.1)

    assert SessionDistributor(settings).distribute(task, 0.1, DAYS) == [pytest.approx(0.1)]


def test_rounding_preserves_total(settings, make_task):
    lengths = SessionDistributor(settings).distribute(make_task(estimated_hours=1), 1, DAYS)

    assert lengths == [pytest.approx(1 / 3)] * 3
    assert sum(lengths) == pytest.approx(1)


def test_one_sitting_day_prefers_deadline_unless_important(make_task):
    fits = lambda day: day != "2026-10-21"

    assert find_one_sitting_day(make_task(), DAYS, fits) == "2026-10-20"
    assert find_one_sitting_day(make_task(importance=True), DAYS, fits) == "2026-10-19"
    assert find_one_sitting_day(make_task(), DAYS, lambda day: False) is None
