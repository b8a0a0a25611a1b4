from timepilot.models import ConflictType
from timepilot.schemas import DateRange, FixedCommitment
from timepilot.scheduling.constraints.settings_validation import (
    check_commitment_conflicts, validate_settings_change
)


def test_manual_session_outside_new_window(settings, make_plan, make_session, today):
    plans = [make_plan(today, [
        make_session(start="07:00", end="08:00", is_manual_override=True),
        make_session(start="06:00", end="07:00", number=2),
    ])]
    new_settings = settings.model_copy(update={'study_window_start_hour': 9})

    validation = validate_settings_change(settings, new_settings, plans)

    assert not validation.is_valid
    [issue] = validation.issues
    assert (issue.date, issue.task_id) == (today, "task-1")
    assert "outside the new study window" in issue.message


def test_manual_session_on_removed_work_day(settings, make_plan, make_session, today):
    plans = [make_plan(today, [make_session(start="10:00", end="11:00", is_manual_override=True)])]
    new_settings = settings.model_copy(update={'work_days': [2, 3, 4, 5]})

    validation = validate_settings_change(settings, new_settings, plans)

    assert [issue.message for issue in validation.issues] == [
        "Manually rescheduled session is on a day you no longer study"
    ]


def test_compatible_settings_change(settings, make_plan, make_session, today):
    plans = [make_plan(today, [make_session(start="10:00", end="11:00", is_manual_override=True)])]

    assert validate_settings_change(settings, settings.model_copy(update={'daily_available_hours': 2}), plans).is_valid


def lecture(**overrides):
    fields = dict(id="lecture", title="Lecture", recurring=True, days_of_week=[1],
                  start_time="09:00", end_time="10:30")
    fields.update(overrides)
    return FixedCommitment(**fields)


def test_recurring_commitments_on_same_day_conflict():
    new = lecture(id="lab", title="Lab", start_time="10:00", end_time="12:00")

    conflict = check_commitment_conflicts(new, [lecture()])

    assert conflict.has_conflict
    assert conflict.conflict_type == ConflictType.STRICT
    assert conflict.conflicting_commitment.id == "lecture"


def test_recurring_commitments_with_disjoint_ranges_do_not_conflict():
    first = lecture(date_range=DateRange(start_date="2026-09-01", end_date="2026-09-30"))
    second = lecture(id="lab", date_range=DateRange(start_date="2026-10-01", end_date="2026-10-31"))

    assert not check_commitment_conflicts(second, [first]).has_conflict


def test_one_off_on_recurring_day_is_an_override(today):
    exam = FixedCommitment(id="exam", title="Exam", specific_dates=[today, "2026-10-20"],
                           start_time="10:00", end_time="12:00")

    conflict = check_commitment_conflicts(exam, [lecture()])

    assert conflict.conflict_type == ConflictType.OVERRIDE
    assert conflict.conflicting_dates == [today]


def test_one_off_commitments_sharing_a_date(today):
    dentist = FixedCommitment(id="dentist", title="Dentist", specific_dates=[today],
                              start_time="14:00", end_time="15:00")
    call = FixedCommitment(id="call", title="Call", specific_dates=[today], start_time="14:30", end_time="15:30")

    conflict = check_commitment_conflicts(call, [dentist])

    assert conflict.conflict_type == ConflictType.STRICT
    assert conflict.conflicting_dates == [today]


def test_all_day_and_excluded_commitments_never_conflict():
    all_day = lecture(id="holiday", is_all_day=True, start_time=None, end_time=None)

    assert not check_commitment_conflicts(all_day, [lecture()]).has_conflict
    assert not check_commitment_conflicts(lecture(), [all_day]).has_conflict
    assert not check_commitment_conflicts(lecture(), [lecture()], exclude_commitment_id="lecture").has_conflict
