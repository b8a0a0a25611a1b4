"""
Logging setup for the engine and the HTTP surface.

Every planning or redistribution run is tagged with a short plan run id so
the log lines of one run can be grepped together. Nested runs (a preservation
pass that generates and then repairs, a deletion pass that regenerates) share
the id of the outermost run.
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from logging.config import dictConfig
from typing import Iterator, Optional

_plan_run_id: ContextVar[Optional[str]] = ContextVar("plan_run_id", default=None)
_configured = False

NO_RUN_ID = "-"


def new_plan_run_id() -> str:
    return uuid.uuid4().hex[:8]


def set_plan_run_id(run_id: Optional[str]):
    """Tag log records emitted in the current context with a run id."""
    return _plan_run_id.set(run_id)


def reset_plan_run_id(token) -> None:
    _plan_run_id.reset(token)


def get_plan_run_id() -> Optional[str]:
    return _plan_run_id.get()


@contextmanager
def plan_run(run_id: Optional[str] = None) -> Iterator[str]:
    """
    Run the block under a plan run id. An explicit id wins, then an id set by
    an enclosing run, then a fresh one.
    """
    current = run_id or get_plan_run_id() or new_plan_run_id()
    token = set_plan_run_id(current)
    try:
        yield current
    finally:
        reset_plan_run_id(token)


class PlanRunFilter(logging.Filter):
    """Stamp records with the plan run id active when they were emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.plan_run_id = get_plan_run_id() or NO_RUN_ID
        return True


def build_logging_config(log_level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plan_run": {
                "format": "%(asctime)s - %(levelname)s - %(name)s - [run %(plan_run_id)s] %(message)s",
            }
        },
        "filters": {
            "plan_run": {"()": PlanRunFilter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "plan_run",
                "filters": ["plan_run"],
            }
        },
        "loggers": {
            # Third-party loggers stay at WARNING; engine records propagate to the root handler
            "timepilot": {"level": log_level},
        },
        "root": {"handlers": ["console"], "level": "WARNING"},
    }


def configure_logging(*, log_level: str = "INFO", force: bool = False) -> None:
    """Install the console handler. Later calls are ignored unless forced."""
    global _configured
    if _configured and not force:
        return

    dictConfig(build_logging_config(log_level.upper()))
    _configured = True
    logging.getLogger(__name__).debug("Logging configured at %s", log_level)
