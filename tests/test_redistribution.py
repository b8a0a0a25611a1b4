import pytest

from timepilot.exceptions import RedistributionRollbackError
from timepilot.models import RescheduleReason, SessionState, SessionStatus
from timepilot.schemas import RedistributionOptions
from timepilot.scheduling.algorithms.redistribution import RedistributionEngine
from timepilot.scheduling.core.session_state import current_state
from timepilot.services.study_plan_service import redistribute_missed_sessions


@pytest.fixture
def missed_plans(make_plan, make_session):
    return [
        make_plan("2026-10-16", [make_session("task-a", start="06:00", end="08:00", number=1)]),
        make_plan("2026-10-20", [make_session("task-a", start="06:00", end="07:00", number=2)]),
    ]


def duplicate_first_future_session(plans):
    for plan in plans:
        if plan.date >= "2026-10-19" and plan.planned_tasks:
            plan.planned_tasks.append(plan.planned_tasks[0].model_copy())
            return


def test_missed_session_moves_to_first_free_day(settings, make_task, missed_plans, today):
    task = make_task("task-a", estimated_hours=3, deadline="2026-10-25")

    result = redistribute_missed_sessions(missed_plans, [task], settings, [], today=today)

    assert result.success
    assert result.total_sessions_moved == 1
    [moved] = result.redistributed_sessions
    assert (moved.scheduled_time, moved.start_time, moved.end_time) == (today, "06:00", "08:00")
    assert moved.status == SessionStatus.SCHEDULED
    assert current_state(moved) == SessionState.REDISTRIBUTED
    assert moved.original_date == "2026-10-16"
    history = moved.scheduling_metadata.reschedule_history
    assert history[-1].reason == RescheduleReason.UNIFIED_REDISTRIBUTION
    assert [p.date for p in result.plans] == ["2026-10-16", "2026-10-19", "2026-10-20"]
    assert result.plans[0].planned_tasks == []


def test_missed_session_past_deadline_fails(settings, make_task, missed_plans, today):
    task = make_task("task-a", estimated_hours=3, deadline="2026-10-18")

    result = redistribute_missed_sessions(missed_plans, [task], settings, [], today=today)

    assert not result.success
    [failed] = result.failed_sessions
    assert current_state(failed) == SessionState.FAILED_REDISTRIBUTION
    assert failed.scheduling_metadata.failure_reasons
    assert result.feedback.details.suggestions
    assert result.plans[0].planned_tasks[0].scheduling_metadata.state == SessionState.FAILED_REDISTRIBUTION


def test_respects_daily_limits(settings, make_task, make_plan, make_session, today):
    settings.daily_available_hours = 2
    plans = [
        make_plan("2026-10-16", [make_session("task-a", start="06:00", end="08:00", number=1)]),
        make_plan(today, [make_session("task-b", start="06:00", end="07:00", number=1)]),
    ]
    tasks = [make_task("task-a", estimated_hours=4, deadline="2026-10-25"),
             make_task("task-b", estimated_hours=1, deadline="2026-10-25")]

    result = redistribute_missed_sessions(plans, tasks, settings, [], today=today)

    assert result.redistributed_sessions[0].scheduled_time == "2026-10-20"


def test_split_across_days_when_size_is_not_preserved(settings, make_task, make_plan, make_session, today):
    settings.daily_available_hours = 2
    plans = [
        make_plan("2026-10-16", [make_session("task-a", start="06:00", end="08:00", number=1)]),
        make_plan(today, [make_session("task-b", start="06:00", end="07:00", number=1)]),
    ]
    tasks = [make_task("task-a", estimated_hours=4, deadline="2026-10-25"),
             make_task("task-b", estimated_hours=1, deadline="2026-10-25")]
    options = RedistributionOptions(preserve_session_size=False)

    result = redistribute_missed_sessions(plans, tasks, settings, [], options=options, today=today)

    parts = [(s.scheduled_time, s.allocated_hours) for s in result.redistributed_sessions]
    assert parts == [(today, 1), ("2026-10-20", 1)]


def test_important_sessions_are_processed_first(settings, make_task, make_plan, make_session, today):
    settings.daily_available_hours = 2
    plans = [
        make_plan("2026-10-16", [
            make_session("task-a", start="06:00", end="08:00", number=1),
            make_session("task-b", start="08:00", end="10:00", number=1),
        ]),
        make_plan(today, []),
    ]
    tasks = [make_task("task-a", estimated_hours=2, deadline="2026-10-19"),
             make_task("task-b", estimated_hours=2, deadline="2026-10-19", importance=True)]

    result = redistribute_missed_sessions(plans, tasks, settings, [], today=today)

    assert [s.task_id for s in result.redistributed_sessions] == ["task-b"]
    assert [s.task_id for s in result.failed_sessions] == ["task-a"]


def test_overlap_after_move_rolls_back(settings, make_task, missed_plans, today):
    task = make_task("task-a", estimated_hours=3, deadline="2026-10-25")
    before = [plan.model_dump() for plan in missed_plans]

    result = redistribute_missed_sessions(missed_plans, [task], settings, [], today=today,
                                          fault_injector=duplicate_first_future_session)

    assert result.rollback_performed
    assert not result.success
    assert result.total_sessions_moved == 0
    assert [plan.model_dump() for plan in result.plans] == before
    assert [plan.model_dump() for plan in missed_plans] == before


def test_overlap_without_rollback_is_reported(settings, make_task, missed_plans, today):
    task = make_task("task-a", estimated_hours=3, deadline="2026-10-25")
    options = RedistributionOptions(enable_rollback=False)

    result = redistribute_missed_sessions(missed_plans, [task], settings, [], options=options, today=today,
                                          fault_injector=duplicate_first_future_session)

    assert not result.rollback_performed
    assert any("overlap" in reason for reason in result.feedback.details.reasons)


def test_engine_errors_propagate_without_rollback(settings, make_task, missed_plans, today):
    def fail(plans):
        raise RedistributionRollbackError(["injected"])

    task = make_task("task-a", estimated_hours=3, deadline="2026-10-25")
    engine = RedistributionEngine(settings, [], today=today, fault_injector=fail)

    with pytest.raises(RedistributionRollbackError):
        engine.redistribute_missed_sessions(missed_plans, [task], RedistributionOptions(enable_rollback=False))


def test_nothing_to_do(settings, make_task, make_plan, make_session, today):
    plans = [make_plan(today, [make_session("task-a")])]

    result = redistribute_missed_sessions(plans, [make_task("task-a")], settings, [], today=today)

    assert result.success
    assert result.feedback.message == "No missed sessions found."


def test_manual_and_completed_sessions_are_not_missed(settings, make_task, make_plan, make_session, today):
    plans = [
        make_plan("2026-10-16", [
            make_session("task-a", start="06:00", end="07:00", number=1, is_manual_override=True),
            make_session("task-a", start="07:00", end="08:00", number=2, done=True, status="completed"),
        ]),
        make_plan(today, []),
    ]

    result = redistribute_missed_sessions(plans, [make_task("task-a", deadline="2026-10-25")], settings, [],
                                          today=today)

    assert result.feedback.message == "No missed sessions found."
