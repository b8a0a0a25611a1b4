import pytest

from timepilot.models import StudyPlanMode, TargetFrequency
from timepilot.schemas import FixedCommitment, UnscheduledSuggestion
from timepilot.services.study_plan_service import generate_new_study_plan, generate_new_study_plan_with_preservation
from timepilot.scheduling.algorithms.strategies import (
    check_frequency_deadline_conflict, filter_days_by_frequency
)
from timepilot.scheduling.constraints.time_constraints import validate_session_times
from timepilot.scheduling.core.planner import PlanGenerator
from timepilot.scheduling.utils.slot_utils import scheduled_hours_by_task
from timepilot.scheduling.utils.time_utils import add_days, iter_dates, weekday

ALL_MODES = [StudyPlanMode.EVEN, StudyPlanMode.BALANCED, StudyPlanMode.EISENHOWER]


def sessions_of(plans, task_id):
    return [(plan.date, s) for plan in plans for s in plan.planned_tasks if s.task_id == task_id]


@pytest.mark.parametrize("mode", ALL_MODES)
def test_one_sitting_that_fits_nowhere_is_reported(settings, make_task, today, mode):
    settings.daily_available_hours = 2
    settings.study_plan_mode = mode
    task = make_task(estimated_hours=3, is_one_time_task=True, deadline=add_days(today, 4))

    result = generate_new_study_plan([task], settings, [], today=today)

    assert result.plans == []
    assert result.suggestions == [UnscheduledSuggestion(
        task_title=task.title, unscheduled_minutes=180, importance=False, deadline=task.deadline,
    )]


def test_even_mode_spreads_over_the_range(settings, make_task, today):
    task = make_task(estimated_hours=6, deadline=add_days(today, 2))

    result = generate_new_study_plan([task], settings, [], today=today)

    assert [p.date for p in result.plans] == ["2026-10-19", "2026-10-20", "2026-10-21"]
    for number, plan in enumerate(result.plans, start=1):
        [session] = plan.planned_tasks
        assert (session.start_time, session.end_time, session.allocated_hours) == ("06:00", "08:00", 2)
        assert session.session_number == number
        assert plan.total_study_hours == 2
    assert result.suggestions == []


def test_eisenhower_fills_each_day_by_priority(settings, make_task, today):
    settings.study_plan_mode = StudyPlanMode.EISENHOWER
    important = make_task("task-a", estimated_hours=3, deadline="2026-10-20", importance=True)
    other = make_task("task-b", estimated_hours=3, deadline="2026-10-20")

    result = generate_new_study_plan([other, important], settings, [], today=today)

    first_day = result.plans[0]
    assert first_day.date == today
    assert [(s.task_id, s.start_time, s.end_time) for s in first_day.planned_tasks] == [
        ("task-a", "06:00", "09:00"), ("task-b", "09:00", "10:00"),
    ]
    assert scheduled_hours_by_task(result.plans) == {"task-a": 3, "task-b": 3}


def test_balanced_mode_schedules_important_work_first(settings, make_task, today):
    settings.study_plan_mode = StudyPlanMode.BALANCED
    settings.daily_available_hours = 2
    urgent = make_task("task-x", estimated_hours=3, deadline="2026-10-20")
    important = make_task("task-y", estimated_hours=4, deadline="2026-10-30", importance=True)

    result = generate_new_study_plan([urgent, important], settings, [], today=today)

    assert result.suggestions == []
    assert result.plans[0].planned_tasks[0].task_id == "task-y"
    assert scheduled_hours_by_task(result.plans) == {"task-x": pytest.approx(3), "task-y": pytest.approx(4)}


def test_open_task_daily_sessions(settings, make_task, today):
    task = make_task(estimated_hours=4, target_frequency=TargetFrequency.DAILY)

    result = generate_new_study_plan([task], settings, [], today=today)

    assert [(date, s.allocated_hours) for date, s in sessions_of(result.plans, task.id)] == [
        ("2026-10-19", 1.5), ("2026-10-20", 1.5), ("2026-10-21", 1),
    ]


def test_completed_sessions_are_kept_and_counted(settings, make_task, make_session, make_plan, today):
    task = make_task(estimated_hours=3, deadline="2026-10-21")
    existing = [
        make_plan("2026-10-18", [make_session(start="06:00", end="07:00", done=True, status="completed")]),
        make_plan("2026-10-20", [make_session(start="06:00", end="08:00", number=2)]),
    ]

    result = generate_new_study_plan([task], settings, [], existing_plans=existing, today=today)

    assert result.plans[0].date == "2026-10-18"
    assert result.plans[0].planned_tasks[0].is_completed
    assert scheduled_hours_by_task(result.plans)[task.id] == pytest.approx(3)
    # Inputs are untouched
    assert existing[1].planned_tasks[0].start_time == "06:00"


def test_completed_tasks_are_not_planned(settings, make_task, today):
    task = make_task(estimated_hours=2, deadline="2026-10-21", status="completed")

    result = generate_new_study_plan([task], settings, [], today=today)

    assert result.plans == [] and result.suggestions == []


def test_frequency_conflict_recommends_higher_frequency(settings, make_task, today):
    task = make_task(estimated_hours=10, deadline="2026-10-23", target_frequency=TargetFrequency.WEEKLY)

    conflict = check_frequency_deadline_conflict(task, settings, today)

    assert conflict['has_conflict']
    assert conflict['recommended_frequency'] == TargetFrequency.THREE_TIMES_WEEK


def test_three_times_a_week_caps_each_week(make_task, today):
    task = make_task(target_frequency=TargetFrequency.THREE_TIMES_WEEK, deadline="2026-10-25")
    days = list(iter_dates(today, "2026-10-25"))

    assert filter_days_by_frequency(task, days, {}) == ["2026-10-19", "2026-10-20", "2026-10-21", "2026-10-25"]


def test_generator_rejects_placement_beyond_capacity(settings, make_task, today):
    generator = PlanGenerator(settings, [], today=today)
    task = make_task(estimated_hours=10, deadline="2026-10-25")

    assert generator.try_place(task, today, 5) is None
    assert generator.try_place(task, today, 4) is not None
    assert generator.remaining_hours(task) == 6
    assert generator.capacity.remaining(today) == 0


# ================================
# PLAN PROPERTIES
# ================================

@pytest.fixture
def workload(make_task, today):
    return [
        make_task("essay", estimated_hours=5, deadline="2026-10-23", importance=True),
        make_task("reading", estimated_hours=8, deadline="2026-10-26"),
        make_task("project", estimated_hours=3, deadline="2026-10-22", is_one_time_task=True),
        make_task("drills", estimated_hours=4, target_frequency=TargetFrequency.THREE_TIMES_WEEK),
        make_task("review", estimated_hours=6, deadline="2026-10-30", target_frequency=TargetFrequency.FLEXIBLE),
    ]


@pytest.fixture
def lecture():
    return FixedCommitment(id="lecture", title="Lecture", recurring=True, days_of_week=[1, 3],
                           start_time="09:00", end_time="11:00", counts_toward_daily_hours=True)


@pytest.mark.parametrize("generate", [generate_new_study_plan, generate_new_study_plan_with_preservation])
@pytest.mark.parametrize("mode", ALL_MODES)
def test_plan_properties(settings, workload, lecture, today, mode, generate):
    settings.study_plan_mode = mode
    settings.buffer_days = 1
    settings.work_days = [1, 2, 3, 4, 5]
    tasks_by_id = {task.id: task for task in workload}

    result = generate(workload, settings, [lecture], today=today)

    for plan in result.plans:
        assert validate_session_times(plan.planned_tasks, [lecture], plan.date)
        assert weekday(plan.date) in settings.work_days
        assert today <= plan.date
        assert plan.total_study_hours <= plan.available_hours + 1e-6
        for session in plan.planned_tasks:
            task = tasks_by_id[session.task_id]
            if task.deadline:
                assert plan.date <= add_days(task.deadline, -settings.buffer_days)
            else:
                assert plan.date <= add_days(today, 30)

    for task_id, hours in scheduled_hours_by_task(result.plans).items():
        assert hours <= tasks_by_id[task_id].estimated_hours + 1e-6

    # Every minute that did not make it onto the calendar is reported
    scheduled = scheduled_hours_by_task(result.plans)
    reported = {s.task_title: s.unscheduled_minutes for s in result.suggestions}
    for task in workload:
        assert reported.get(task.title, 0) == round((task.estimated_hours - scheduled.get(task.id, 0.0)) * 60)


@pytest.mark.parametrize("mode", ALL_MODES)
def test_generation_is_deterministic(settings, workload, lecture, today, mode):
    settings.study_plan_mode = mode

    first = generate_new_study_plan(workload, settings, [lecture], today=today)
    second = generate_new_study_plan(workload, settings, [lecture], today=today)

    assert first.model_dump() == second.model_dump()
