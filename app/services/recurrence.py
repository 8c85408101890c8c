"""Recurrence Evaluator.

Pure date math for repeating rules: no I/O and no state. Every function
validates the rule definition first and raises InvalidRule instead of
guessing a frequency.

Supports:
- Daily recurrence (every N days after the reference date)
- Weekly recurrence (every N weeks, on one or more weekdays)
- Monthly recurrence (every N months, clamped to the month's last day)
- Yearly recurrence (every N years, Feb 29 clamped to Feb 28)
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Tuple

from dateutil.relativedelta import relativedelta
from dateutil.rrule import MO, WEEKLY, rrule

from app.config import settings
from app.schemas.repeating_rule import Frequency, RuleDefinition
from app.services.errors import InvalidRule

logger = logging.getLogger(__name__)


def validate_rule_definition(value: Any) -> RuleDefinition:
    """Validate a rule definition in any accepted form.

    Args:
        value: RuleDefinition, persisted mapping or simple RRULE string

    Returns:
        The parsed RuleDefinition

    Raises:
        InvalidRule: If the definition is malformed or impossible
    """
    return RuleDefinition.parse(value)


@contextmanager
def _supported_range(rule: RuleDefinition, after_date: date):
    """Turn date overflow (year past 9999, huge intervals) into InvalidRule."""
    try:
        yield
    except (OverflowError, ValueError) as e:
        raise InvalidRule(
            "Rule has no occurrence within the supported date range",
            details={"rule": rule.to_storage(), "after": after_date.isoformat()}
        ) from e


def next_occurrence(definition: Any, after_date: date, start_date: Optional[date] = None) -> date:
    """Return the first date strictly after ``after_date`` that satisfies the rule.

    Args:
        definition: The rule definition (validated here)
        after_date: Reference date; the result is always later than it
        start_date: Anchor of the recurrence. Weekly phase, day of month and
                    month/day of year come from it. Defaults to ``after_date``.
                    The result is never earlier than the anchor.

    Returns:
        Next occurrence date

    Raises:
        InvalidRule: If the definition is invalid or the next occurrence
                     would fall past ``date.max``
    """
    rule = validate_rule_definition(definition)
    anchor = start_date or after_date

    with _supported_range(rule, after_date):
        if rule.frequency == Frequency.DAILY:
            return _next_daily(rule, after_date, anchor)
        elif rule.frequency == Frequency.WEEKLY:
            return _next_weekly(rule, after_date, anchor)
        elif rule.frequency == Frequency.MONTHLY:
            return _next_monthly(rule, after_date, anchor)
        return _next_yearly(rule, after_date, anchor)


def _next_daily(rule: RuleDefinition, after_date: date, anchor: date) -> date:
    if after_date < anchor:
        return anchor
    return after_date + timedelta(days=rule.interval)


def _next_weekly(rule: RuleDefinition, after_date: date, anchor: date) -> date:
    """Calculate next weekly occurrence.

    Weeks start on Monday. Only weeks that are a multiple of ``interval``
    weeks away from the anchor's week are eligible.
    """
    weekdays = rule.weekday_numbers or (anchor.weekday(),)
    anchor_week = anchor - timedelta(days=anchor.weekday())
    earliest = max(after_date + timedelta(days=1), anchor)

    # Start the rrule at the eligible week containing (or preceding) earliest
    weeks = (earliest - anchor_week).days // 7
    week_start = anchor_week + timedelta(weeks=weeks - weeks % rule.interval)

    schedule = rrule(
        WEEKLY,
        interval=rule.interval,
        byweekday=weekdays,
        wkst=MO,
        dtstart=datetime.combine(week_start, time.min),
    )
    found = schedule.after(datetime.combine(earliest, time.min), inc=True)
    if found is None:
        raise OverflowError(f"no weekly occurrence on or after {earliest}")
    return found.date()


def _next_monthly(rule: RuleDefinition, after_date: date, anchor: date) -> date:
    """Calculate next monthly occurrence.

    Candidates are always computed from the anchor, so a day-31 rule clamps
    to the 30th or 28th/29th and returns to the 31st in longer months.
    """
    day = rule.day_of_month or anchor.day
    months = (after_date.year - anchor.year) * 12 + after_date.month - anchor.month
    step = max(0, months // rule.interval)

    while True:
        # relativedelta clamps an absolute day to the end of the month
        candidate = anchor + relativedelta(months=step * rule.interval, day=day)
        if candidate > after_date and candidate >= anchor:
            return candidate
        step += 1


def _next_yearly(rule: RuleDefinition, after_date: date, anchor: date) -> date:
    """Calculate next yearly occurrence on the anchor's month and day."""
    step = max(0, (after_date.year - anchor.year) // rule.interval)

    while True:
        candidate = anchor + relativedelta(years=step * rule.interval)
        if candidate > after_date:
            return candidate
        step += 1


def _periods(rule: RuleDefinition, count: int):
    if rule.frequency == Frequency.WEEKLY:
        return timedelta(weeks=rule.interval * count)
    elif rule.frequency == Frequency.MONTHLY:
        return relativedelta(months=rule.interval * count)
    return relativedelta(years=rule.interval * count)


def latest_occurrence_on_or_before(
    definition: Any,
    pointer: date,
    reference_date: date,
    start_date: Optional[date] = None,
    max_steps: Optional[int] = None,
) -> Tuple[date, date]:
    """Find the most recent due occurrence, for the catch-up policy.

    Walks forward from ``pointer`` (an occurrence that is already due) while
    the following occurrence is still on or before ``reference_date``. When
    the walk needs more than ``max_steps`` steps it restarts two periods
    before ``reference_date``, so the result is the same either way.

    Args:
        definition: The rule definition
        pointer: The rule's stored next occurrence, ``<= reference_date``
        reference_date: The materialization date
        start_date: The rule's anchor
        max_steps: Walk limit, defaults to ``settings.MAX_CATCHUP_STEPS``

    Returns:
        ``(latest, following)``: the occurrence to spawn, and the first
        occurrence strictly after ``reference_date``

    Raises:
        InvalidRule: If the definition is invalid or the following
                     occurrence would fall past ``date.max``
    """
    rule = validate_rule_definition(definition)
    if pointer > reference_date:
        raise ValueError(f"Occurrence {pointer} is not due on {reference_date}")

    if rule.frequency == Frequency.DAILY:
        with _supported_range(rule, reference_date):
            skipped = (reference_date - pointer).days // rule.interval
            latest = pointer + timedelta(days=skipped * rule.interval)
            return latest, latest + timedelta(days=rule.interval)

    limit = max_steps or settings.MAX_CATCHUP_STEPS
    latest = pointer
    following = next_occurrence(rule, latest, start_date)
    for _ in range(limit):
        if following > reference_date:
            return latest, following
        latest, following = following, next_occurrence(rule, following, start_date)

    if following <= reference_date:
        logger.warning(
            f"Catch-up from {pointer} to {reference_date} exceeded {limit} steps; "
            f"restarting two periods before {reference_date}"
        )
        with _supported_range(rule, reference_date):
            window_start = max(pointer, reference_date - _periods(rule, 2))
        latest = next_occurrence(rule, window_start, start_date)
        following = next_occurrence(rule, latest, start_date)
        while following <= reference_date:
            latest, following = following, next_occurrence(rule, following, start_date)
    return latest, following
