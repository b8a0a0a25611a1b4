import logging

from timepilot import config as config_module
from timepilot.logging_config import (
    PlanRunFilter, build_logging_config, get_plan_run_id, plan_run, reset_plan_run_id, set_plan_run_id
)
from timepilot.schemas import UserSettings
from timepilot.scheduling.constraints.time_constraints import get_effective_study_window


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TIMEPILOT_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("TIMEPILOT_NO_DEADLINE_WINDOW_DAYS", "14")
    monkeypatch.setenv("TIMEPILOT_COMPROMISED_UTILIZATION", "0.9")
    config_module.get_config.cache_clear()
    try:
        config = config_module.get_config()
        assert config.timezone == "Europe/Berlin"
        assert config.no_deadline_window_days == 14
        assert config.compromised.day_utilization == 0.9
    finally:
        config_module.get_config.cache_clear()


def test_study_window_defaults_come_from_config(monkeypatch):
    monkeypatch.setenv("TIMEPILOT_STUDY_WINDOW_START_HOUR", "8")
    monkeypatch.setenv("TIMEPILOT_STUDY_WINDOW_END_HOUR", "21")
    config_module.get_config.cache_clear()
    try:
        settings = UserSettings()
        assert (settings.study_window_start_hour, settings.study_window_end_hour) == (8, 21)
        assert get_effective_study_window("2026-10-19", settings) == (8, 21)
        assert UserSettings(study_window_start_hour=7).study_window_start_hour == 7
    finally:
        config_module.get_config.cache_clear()


def test_explicit_config_wins():
    explicit = config_module.SchedulingConfig(no_deadline_window_days=7)

    assert config_module.resolve_config(explicit) is explicit


def test_plan_run_id_is_attached_to_records():
    record = logging.LogRecord("timepilot", logging.INFO, __file__, 1, "message", None, None)
    token = set_plan_run_id("abc123")
    try:
        PlanRunFilter().filter(record)
    finally:
        reset_plan_run_id(token)

    assert record.plan_run_id == "abc123"

    PlanRunFilter().filter(record)
    assert record.plan_run_id == "-"


def test_nested_runs_share_the_outer_run_id():
    with plan_run() as outer:
        with plan_run() as inner:
            assert inner == outer == get_plan_run_id()
        with plan_run("fixed") as explicit:
            assert explicit == "fixed"
        assert get_plan_run_id() == outer

    assert get_plan_run_id() is None


def test_logging_config_levels():
    config = build_logging_config("DEBUG")

    assert config["loggers"]["timepilot"]["level"] == "DEBUG"
    assert config["root"]["level"] == "WARNING"
    assert config["handlers"]["console"]["filters"] == ["plan_run"]
