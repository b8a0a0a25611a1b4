"""
Recurrence utilities using dateutil.rrule for commitment occurrences.
RRULE is the engine for recurring commitments (RFC 5545 standard); plain
weekday commitments are converted to a weekly RRULE on the fly.
"""

import logging
from datetime import datetime
from typing import List, Optional

from dateutil import rrule

from ..schemas import FixedCommitment
from ..scheduling.utils.time_utils import parse_date, format_date, weekday

logger = logging.getLogger(__name__)

# Fixed anchor for interval rules that carry no date range of their own (a Sunday)
RRULE_ANCHOR = datetime(1970, 1, 4)

# Sunday-first weekday numbers to RRULE BYDAY codes
BYDAY_CODES = ["SU", "MO", "TU", "WE", "TH", "FR", "SA"]


def commitment_occurs_on(commitment: FixedCommitment, date: str) -> bool:
    """
    Check if a commitment has an occurrence on a date.

    Deleted occurrences never apply. Recurring commitments honour their
    inclusive date range; one-off commitments only match their specific dates.
    """
    if date in commitment.deleted_occurrences:
        return False

    if not commitment.recurring:
        return date in commitment.specific_dates

    if commitment.date_range and not (
        commitment.date_range.start_date <= date <= commitment.date_range.end_date
    ):
        return False

    if commitment.recurrence_rule:
        rule = _parse_rule(commitment)
        if rule is None:
            return False
        day = datetime.combine(parse_date(date), datetime.min.time())
        return bool(rule.between(day, day, inc=True))

    return weekday(date) in commitment.days_of_week


def expand_commitment_dates(commitment: FixedCommitment, start_date: str, end_date: str) -> List[str]:
    """
    Expand a commitment into the dates it occurs on between start_date and end_date (inclusive).
    """
    if start_date > end_date:
        return []

    if not commitment.recurring:
        return sorted(
            d for d in commitment.specific_dates
            if start_date <= d <= end_date and d not in commitment.deleted_occurrences
        )

    window_start, window_end = start_date, end_date
    if commitment.date_range:
        window_start = max(window_start, commitment.date_range.start_date)
        window_end = min(window_end, commitment.date_range.end_date)
        if window_start > window_end:
            return []

    rule = _parse_rule(commitment)
    if rule is None:
        return []

    occurrences = rule.between(
        datetime.combine(parse_date(window_start), datetime.min.time()),
        datetime.combine(parse_date(window_end), datetime.min.time()),
        inc=True,
    )
    return [
        format_date(occurrence.date()) for occurrence in occurrences
        if format_date(occurrence.date()) not in commitment.deleted_occurrences
    ]


def build_commitment_rrule(commitment: FixedCommitment) -> Optional[str]:
    """Return the RRULE string describing a recurring commitment."""
    if commitment.recurrence_rule:
        return commitment.recurrence_rule
    if not commitment.recurring or not commitment.days_of_week:
        return None
    byday = [BYDAY_CODES[day] for day in sorted(set(commitment.days_of_week))]
    return create_weekly_rrule(byday=byday)


def _parse_rule(commitment: FixedCommitment):
    rule_string = build_commitment_rrule(commitment)
    if rule_string is None:
        return None

    anchor = RRULE_ANCHOR
    if commitment.date_range:
        anchor = datetime.combine(parse_date(commitment.date_range.start_date), datetime.min.time())

    try:
        return rrule.rrulestr(rule_string, dtstart=anchor)
    except (ValueError, TypeError) as e:
        logger.warning("RRULE parsing failed for commitment %s: %s", commitment.id, e)
        return None


# Convenience functions for common RRULE patterns
def create_daily_rrule(interval: int = 1, count: Optional[int] = None, until: Optional[datetime] = None) -> str:
    """Create RRULE for daily recurrence"""
    return create_rrule_string("DAILY", interval=interval, count=count, until=until)


def create_weekly_rrule(byday: Optional[List[str]] = None, interval: int = 1, count: Optional[int] = None, until: Optional[datetime] = None) -> str:
    """Create RRULE for weekly recurrence"""
    return create_rrule_string("WEEKLY", interval=interval, count=count, until=until, byday=byday)


def create_rrule_string(freq: str, interval: int = 1, count: Optional[int] = None,
                       until: Optional[datetime] = None, byday: Optional[List[str]] = None) -> str:
    """
    Create an RRULE string for any pattern

    Examples:
        create_rrule_string("DAILY", interval=3)  # Every 3 days
        create_rrule_string("WEEKLY", byday=["MO", "WE", "FR"])  # Mon, Wed, Fri
        create_rrule_string("WEEKLY", until=datetime(2026, 12, 18))  # Weekly until the end of term
    """
    parts = [f"FREQ={freq}"]

    if interval > 1:
        parts.append(f"INTERVAL={interval}")

    if count:
        parts.append(f"COUNT={count}")

    if until:
        parts.append(f"UNTIL={until.strftime('%Y%m%dT%H%M%S')}")

    if byday:
        parts.append(f"BYDAY={','.join(byday)}")

    return ";".join(parts)
