"""
Engine configuration.

Values come from the environment (optionally a .env file). The scoring bands
and thresholds below only need to keep their relative ordering; exact values
are tunable.
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


class PriorityBands(BaseModel):
    """Points used to order missed sessions for recovery."""
    importance: float = 1000
    overdue: float = 500
    due_within_1_day: float = 400
    due_within_3_days: float = 300
    due_within_7_days: float = 200
    distant_base: float = 100
    age_per_day: float = 10
    age_cap: float = 200
    size_per_hour: float = 20
    size_cap: float = 100


class CompromisedThresholds(BaseModel):
    day_utilization: float = Field(0.8, gt=0, le=1)
    relative_size: float = Field(0.5, gt=0, le=1)
    min_absorption: float = Field(0.9, gt=0, le=1)


class SchedulingConfig(BaseModel):
    timezone: str = "UTC"
    log_level: str = "INFO"
    default_window_start_hour: int = 6
    default_window_end_hour: int = 23
    no_deadline_window_days: int = 30
    even_redistribution_rounds: int = 10
    deletion_redistribution_passes: int = 3
    max_redistribution_days: int = 14
    urgent_within_days: int = 3
    min_scheduled_ratio: float = 0.5
    priority: PriorityBands = Field(default_factory=PriorityBands)
    compromised: CompromisedThresholds = Field(default_factory=CompromisedThresholds)


@lru_cache
def get_config() -> SchedulingConfig:
    """Return the cached configuration built from environment variables."""
    return SchedulingConfig(
        timezone=os.getenv("TIMEPILOT_TIMEZONE", "UTC"),
        log_level=os.getenv("TIMEPILOT_LOG_LEVEL", "INFO"),
        default_window_start_hour=_env_int("TIMEPILOT_STUDY_WINDOW_START_HOUR", 6),
        default_window_end_hour=_env_int("TIMEPILOT_STUDY_WINDOW_END_HOUR", 23),
        no_deadline_window_days=_env_int("TIMEPILOT_NO_DEADLINE_WINDOW_DAYS", 30),
        even_redistribution_rounds=_env_int("TIMEPILOT_EVEN_REDISTRIBUTION_ROUNDS", 10),
        max_redistribution_days=_env_int("TIMEPILOT_MAX_REDISTRIBUTION_DAYS", 14),
        compromised=CompromisedThresholds(
            day_utilization=_env_float("TIMEPILOT_COMPROMISED_UTILIZATION", 0.8),
            relative_size=_env_float("TIMEPILOT_COMPROMISED_RELATIVE_SIZE", 0.5),
            min_absorption=_env_float("TIMEPILOT_MIN_ABSORPTION", 0.9),
        ),
    )


def resolve_config(config: Optional[SchedulingConfig] = None) -> SchedulingConfig:
    return config if config is not None else get_config()
