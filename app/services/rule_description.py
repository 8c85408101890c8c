"""Human-readable phrases for repeating rules ("Every 2 weeks on Monday")."""
from typing import Any

from app.schemas.repeating_rule import Frequency, RuleDefinition

WEEKDAY_NAMES = {
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
    "Fri": "Friday",
    "Sat": "Saturday",
    "Sun": "Sunday",
}

UNITS = {
    Frequency.DAILY: "day",
    Frequency.WEEKLY: "week",
    Frequency.MONTHLY: "month",
    Frequency.YEARLY: "year",
}


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def describe_rule(definition: Any) -> str:
    """
    Render a rule definition as a short phrase.

    Args:
        definition: RuleDefinition, persisted mapping or simple RRULE string

    Returns:
        e.g. "Every 3 days", "Every week on Mon, Wed, Fri", "Every month on the 15th"

    Raises:
        InvalidRule: If the definition is malformed
    """
    rule = RuleDefinition.parse(definition)
    unit = UNITS[rule.frequency]

    if rule.interval == 1:
        text = f"Every {unit}"
    else:
        text = f"Every {rule.interval} {unit}s"

    if rule.weekdays:
        if len(rule.weekdays) == 1:
            text += f" on {WEEKDAY_NAMES[rule.weekdays[0]]}"
        else:
            text += " on " + ", ".join(rule.weekdays)
    if rule.day_of_month is not None:
        text += f" on the {ordinal(rule.day_of_month)}"

    return text
