import pytest

from timepilot.config import SchedulingConfig
from timepilot.schemas import StudyPlan, StudySession, Task, UserSettings
from timepilot.scheduling.constraints.time_constraints import calculate_daily_available_hours
from timepilot.scheduling.utils.slot_utils import plan_id_for, refresh_plan_totals
from timepilot.scheduling.utils.time_utils import duration_hours

# A Monday
TODAY = "2026-10-19"


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def config():
    return SchedulingConfig()


@pytest.fixture
def settings():
    return UserSettings(daily_available_hours=4, min_session_length=15, buffer_time_between_sessions=0)


@pytest.fixture
def make_task():
    def _make_task(task_id="task-1", **overrides):
        fields = {"id": task_id, "title": task_id.replace("-", " ").title(), "estimated_hours": 2}
        fields.update(overrides)
        return Task(**fields)
    return _make_task


@pytest.fixture
def make_session():
    def _make_session(task_id="task-1", start="09:00", end="10:00", number=1, **overrides):
        fields = {
            "task_id": task_id,
            "start_time": start,
            "end_time": end,
            "allocated_hours": duration_hours(start, end),
            "session_number": number,
        }
        fields.update(overrides)
        return StudySession(**fields)
    return _make_session


@pytest.fixture
def make_plan(settings):
    def _make_plan(date, sessions, available_hours=None, commitments=None):
        if available_hours is None:
            available_hours = calculate_daily_available_hours(date, settings, commitments or [])
        plan = StudyPlan(id=plan_id_for(date), date=date, planned_tasks=list(sessions),
                         available_hours=available_hours)
        return refresh_plan_totals(plan)
    return _make_plan
