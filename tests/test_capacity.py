from timepilot.schemas import (
    DateSpecificStudyWindow, DaySpecificStudyHours, DaySpecificStudyWindow, FixedCommitment, OccurrenceModification
)
from timepilot.scheduling.constraints.time_constraints import (
    calculate_committed_hours, calculate_daily_available_hours, get_commitment_interval,
    get_effective_study_window
)
from timepilot.scheduling.core.capacity import DailyCapacityTracker


def gym(**overrides):
    fields = dict(id="gym", title="Gym", recurring=True, days_of_week=[1, 3],
                  start_time="12:00", end_time="13:00", counts_toward_daily_hours=True)
    fields.update(overrides)
    return FixedCommitment(**fields)


def test_counted_commitments_reduce_capacity(settings, today):
    assert calculate_committed_hours(today, [gym()]) == 1
    assert calculate_daily_available_hours(today, settings, [gym()]) == 3
    # Tuesday has no occurrence
    assert calculate_daily_available_hours("2026-10-20", settings, [gym()]) == 4


def test_uncounted_commitments_leave_capacity(settings, today):
    assert calculate_daily_available_hours(today, settings, [gym(counts_toward_daily_hours=False)]) == 4


def test_all_day_commitment_leaves_nothing(settings, today):
    trip = FixedCommitment(id="trip", title="Trip", specific_dates=[today], is_all_day=True)

    assert calculate_daily_available_hours(today, settings, [trip]) == 0


def test_weekday_hours_override(settings, today):
    settings.day_specific_study_hours = [DaySpecificStudyHours(day_of_week=1, study_hours=1.5)]

    assert calculate_daily_available_hours(today, settings, []) == 1.5


def test_study_window_precedence(settings, today):
    settings.day_specific_study_windows = [DaySpecificStudyWindow(day_of_week=1, start_hour=8, end_hour=20)]
    assert get_effective_study_window(today, settings) == (8, 20)

    settings.date_specific_study_windows = [DateSpecificStudyWindow(date=today, start_hour=10, end_hour=12)]
    assert get_effective_study_window(today, settings) == (10, 12)

    settings.date_specific_study_windows[0].is_active = False
    assert get_effective_study_window(today, settings) == (8, 20)


def test_modified_occurrence_wins(today):
    commitment = gym(modified_occurrences={today: OccurrenceModification(start_time="15:00", end_time="17:00")})

    interval = get_commitment_interval(commitment, today)

    assert (interval.start_time, interval.end_time) == ("15:00", "17:00")


def test_deleted_occurrence_does_not_apply(today):
    assert get_commitment_interval(gym(deleted_occurrences=[today]), today) is None


def test_tracker_rejects_overdraw(settings, today):
    tracker = DailyCapacityTracker(settings, [gym()])

    assert tracker.place(today, 2)
    assert not tracker.place(today, 2)
    assert tracker.remaining(today) == 1
    assert tracker.placed(today) == 2

    tracker.release(today, 2)
    assert tracker.remaining(today) == 3


def test_tracker_seed_ignores_completed_and_skipped(settings, make_session, today):
    tracker = DailyCapacityTracker(settings, [])
    tracker.seed(today, [
        make_session(start="06:00", end="07:00"),
        make_session(start="07:00", end="09:00", done=True, status="completed"),
        make_session(start="09:00", end="10:00", status="skipped"),
    ])

    assert tracker.placed(today) == 1
    assert tracker.utilization(today) == 0.25


def test_tracker_copy_is_independent(settings, today):
    tracker = DailyCapacityTracker(settings, [])
    clone = tracker.copy()
    clone.place(today, 3)

    assert tracker.remaining(today) == 4
    assert clone.remaining(today) == 1
