from timepilot.schemas import DateRange, FixedCommitment
from timepilot.services.recurrence import (
    build_commitment_rrule, commitment_occurs_on, create_daily_rrule, create_rrule_string, expand_commitment_dates
)


def weekly(**overrides):
    fields = dict(id="c1", title="Seminar", recurring=True, days_of_week=[1, 3],
                  start_time="10:00", end_time="11:00")
    fields.update(overrides)
    return FixedCommitment(**fields)


def test_weekday_commitment():
    commitment = weekly()

    assert commitment_occurs_on(commitment, "2026-10-19")
    assert not commitment_occurs_on(commitment, "2026-10-20")
    assert build_commitment_rrule(commitment) == "FREQ=WEEKLY;BYDAY=MO,WE"


def test_expand_respects_deleted_occurrences():
    commitment = weekly(deleted_occurrences=["2026-10-21"])

    assert expand_commitment_dates(commitment, "2026-10-19", "2026-10-28") == ["2026-10-19", "2026-10-26", "2026-10-28"]


def test_date_range_bounds_occurrences():
    commitment = weekly(date_range=DateRange(start_date="2026-10-20", end_date="2026-10-27"))

    assert expand_commitment_dates(commitment, "2026-10-01", "2026-11-30") == ["2026-10-21", "2026-10-26"]
    assert not commitment_occurs_on(commitment, "2026-10-19")


def test_interval_rule_anchored_at_range_start():
    commitment = weekly(
        recurrence_rule="FREQ=WEEKLY;INTERVAL=2;BYDAY=MO",
        date_range=DateRange(start_date="2026-10-19", end_date="2026-12-31"),
    )

    assert commitment_occurs_on(commitment, "2026-10-19")
    assert not commitment_occurs_on(commitment, "2026-10-26")
    assert commitment_occurs_on(commitment, "2026-11-02")


def test_invalid_rule_never_occurs():
    assert not commitment_occurs_on(weekly(recurrence_rule="FREQ=SOMETIMES"), "2026-10-19")


def test_one_off_commitment():
    commitment = FixedCommitment(id="c2", title="Dentist", specific_dates=["2026-10-22", "2026-10-20"])

    assert commitment_occurs_on(commitment, "2026-10-22")
    assert not commitment_occurs_on(commitment, "2026-10-21")
    assert expand_commitment_dates(commitment, "2026-10-19", "2026-10-31") == ["2026-10-20", "2026-10-22"]


def test_create_rrule_string():
    assert create_rrule_string("DAILY", interval=3, count=5) == "FREQ=DAILY;INTERVAL=3;COUNT=5"


def test_every_other_day_rule_is_anchored_at_range_start():
    commitment = weekly(recurrence_rule=create_daily_rrule(interval=2),
                        date_range=DateRange(start_date="2026-10-19", end_date="2026-10-31"))

    assert commitment.recurrence_rule == "FREQ=DAILY;INTERVAL=2"
    assert expand_commitment_dates(commitment, "2026-10-19", "2026-10-25") == [
        "2026-10-19", "2026-10-21", "2026-10-23", "2026-10-25"
    ]
    assert not commitment_occurs_on(commitment, "2026-10-20")
