from datetime import date, timedelta

import pytest

from app.schemas.repeating_rule import RuleDefinition
from app.services.errors import InvalidRule
from app.services.recurrence import (
    latest_occurrence_on_or_before,
    next_occurrence,
    validate_rule_definition,
)


def test_weekly_on_monday_moves_to_following_monday():
    rule = {"frequency": "weekly", "interval": 1, "weekdays": ["Mon"]}
    assert next_occurrence(rule, date(2024, 1, 1), date(2024, 1, 1)) == date(2024, 1, 8)


def test_monthly_day_31_clamps_and_recovers():
    rule = {"frequency": "monthly", "interval": 1, "dayOfMonth": 31}
    start = date(2024, 1, 31)
    february = next_occurrence(rule, start, start)
    assert february == date(2024, 2, 29)
    assert next_occurrence(rule, february, start) == date(2024, 3, 31)
    assert next_occurrence(rule, date(2024, 3, 31), start) == date(2024, 4, 30)


def test_monthly_defaults_to_anchor_day():
    rule = {"frequency": "monthly", "interval": 2}
    assert next_occurrence(rule, date(2024, 1, 10), date(2024, 1, 10)) == date(2024, 3, 10)


def test_monthly_day_before_anchor_skips_to_next_month():
    rule = {"frequency": "monthly", "interval": 1, "dayOfMonth": 15}
    assert next_occurrence(rule, date(2024, 1, 10), date(2024, 1, 20)) == date(2024, 2, 15)


def test_weekly_interval_two_multiple_days():
    rule = {"frequency": "weekly", "interval": 2, "weekdays": ["Fri", "Mon"]}
    start = date(2024, 1, 1)
    assert next_occurrence(rule, start, start) == date(2024, 1, 5)
    assert next_occurrence(rule, date(2024, 1, 5), start) == date(2024, 1, 15)
    assert next_occurrence(rule, date(2024, 1, 9), start) == date(2024, 1, 15)


def test_weekly_without_weekdays_uses_anchor_weekday():
    rule = {"frequency": "weekly", "interval": 1}
    wednesday = date(2024, 1, 3)
    assert next_occurrence(rule, wednesday, wednesday) == date(2024, 1, 10)


def test_daily_interval():
    rule = {"frequency": "daily", "interval": 3}
    assert next_occurrence(rule, date(2024, 1, 1)) == date(2024, 1, 4)
    assert next_occurrence(rule, date(2024, 2, 28)) == date(2024, 3, 2)


def test_daily_before_start_returns_start():
    rule = {"frequency": "daily", "interval": 3}
    assert next_occurrence(rule, date(2023, 12, 25), date(2024, 1, 1)) == date(2024, 1, 1)


def test_yearly_leap_day_clamps_to_february_28():
    rule = {"frequency": "yearly", "interval": 1}
    start = date(2024, 2, 29)
    assert next_occurrence(rule, start, start) == date(2025, 2, 28)
    assert next_occurrence(rule, date(2025, 2, 28), start) == date(2026, 2, 28)
    assert next_occurrence(rule, date(2027, 3, 1), start) == date(2028, 2, 29)


@pytest.mark.parametrize(
    "rule",
    [
        {"frequency": "daily", "interval": 1},
        {"frequency": "daily", "interval": 5},
        {"frequency": "weekly", "interval": 1, "weekdays": ["Tue", "Sun"]},
        {"frequency": "weekly", "interval": 3},
        {"frequency": "monthly", "interval": 1, "dayOfMonth": 30},
        {"frequency": "monthly", "interval": 4},
        {"frequency": "yearly", "interval": 2},
    ],
)
def test_next_occurrence_is_strictly_later_and_not_before_start(rule):
    start = date(2024, 1, 31)
    for offset in range(-10, 400, 7):
        after = start + timedelta(days=offset)
        result = next_occurrence(rule, after, start)
        assert result > after
        assert result >= start


@pytest.mark.parametrize(
    "value",
    [
        {"frequency": "daily", "interval": 0},
        {"frequency": "daily", "interval": -1},
        {"frequency": "daily", "interval": "2"},
        {"frequency": "daily", "interval": 1.5},
        {"frequency": "daily"},
        {"frequency": "hourly", "interval": 1},
        {"frequency": "weekly", "interval": 1, "weekdays": []},
        {"frequency": "weekly", "interval": 1, "weekdays": ["Mon", "Funday"]},
        {"frequency": "weekly", "interval": 1, "weekdays": ["Mon", "Mon"]},
        {"frequency": "monthly", "interval": 1, "dayOfMonth": 0},
        {"frequency": "monthly", "interval": 1, "dayOfMonth": 32},
        {"frequency": "daily", "interval": 1, "weekdays": ["Mon"]},
        {"frequency": "weekly", "interval": 1, "dayOfMonth": 3},
        {"frequency": "daily", "interval": 1, "until": "2025-01-01"},
        ["daily", 1],
        None,
    ],
)
def test_invalid_definitions_raise(value):
    with pytest.raises(InvalidRule):
        next_occurrence(value, date(2024, 1, 1))


@pytest.mark.parametrize(
    "rule",
    [
        {"frequency": "yearly", "interval": 8000},
        {"frequency": "daily", "interval": 10 ** 7},
        {"frequency": "weekly", "interval": 10 ** 6},
        {"frequency": "monthly", "interval": 10 ** 5},
    ],
)
def test_occurrence_past_date_range_is_invalid(rule):
    with pytest.raises(InvalidRule):
        next_occurrence(rule, date(2024, 1, 1), date(2024, 1, 1))


def test_weekly_interval_across_year_boundary():
    rule = {"frequency": "weekly", "interval": 2, "weekdays": ["Tue", "Thu"]}
    assert next_occurrence(rule, date(2024, 12, 25), date(2024, 12, 25)) == date(2024, 12, 26)
    assert next_occurrence(rule, date(2024, 12, 26), date(2024, 12, 25)) == date(2025, 1, 7)


def test_weekdays_are_normalised_to_week_order():
    rule = validate_rule_definition({"frequency": "weekly", "interval": 1, "weekdays": ["Fri", "Mon"]})
    assert rule.weekdays == ("Mon", "Fri")
    assert rule.weekday_numbers == (0, 4)


def test_storage_encoding():
    rule = validate_rule_definition({"frequency": "monthly", "interval": 1, "dayOfMonth": 15})
    assert rule.to_storage() == {"frequency": "monthly", "interval": 1, "dayOfMonth": 15}


class TestRRule:
    def test_weekly_byday(self):
        rule = RuleDefinition.parse("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR")
        assert rule.to_storage() == {"frequency": "weekly", "interval": 2, "weekdays": ["Mon", "Fri"]}

    def test_prefix_and_default_interval(self):
        rule = RuleDefinition.parse("RRULE:FREQ=MONTHLY;BYMONTHDAY=15")
        assert rule.interval == 1
        assert rule.day_of_month == 15

    def test_lowercase_parts(self):
        rule = RuleDefinition.parse("freq=weekly;byday=fr,tu")
        assert rule.weekdays == ("Tue", "Fri")

    def test_to_rrule(self):
        rule = RuleDefinition.parse({"frequency": "weekly", "interval": 2, "weekdays": ["Fri", "Mon"]})
        assert rule.to_rrule() == "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR"

    @pytest.mark.parametrize(
        "rrule",
        [
            "",
            "FREQ=DAILY;COUNT=3",
            "FREQ=MONTHLY;BYDAY=1MO",
            "FREQ=MONTHLY;BYMONTHDAY=-1",
            "FREQ=MONTHLY;BYMONTHDAY=1,15",
            "FREQ=WEEKLY;BYDAY=XX",
            "FREQ=DAILY;UNTIL=20250101",
            "FREQ=MONTHLY;BYSETPOS=1",
            "INTERVAL=2",
            "FREQ=DAILY;INTERVAL=two",
            "FREQ=HOURLY",
            "FREQ",
        ],
    )
    def test_unsupported(self, rrule):
        with pytest.raises(InvalidRule):
            RuleDefinition.parse(rrule)


class TestCatchUp:
    def test_daily_spawns_latest_only(self):
        latest, following = latest_occurrence_on_or_before(
            {"frequency": "daily", "interval": 1}, date(2024, 1, 1), date(2024, 1, 10)
        )
        assert latest == date(2024, 1, 10)
        assert following == date(2024, 1, 11)

    def test_daily_interval_keeps_phase(self):
        latest, following = latest_occurrence_on_or_before(
            {"frequency": "daily", "interval": 3}, date(2024, 1, 1), date(2024, 1, 9)
        )
        assert latest == date(2024, 1, 7)
        assert following == date(2024, 1, 10)

    def test_weekly(self):
        rule = {"frequency": "weekly", "interval": 1, "weekdays": ["Mon"]}
        latest, following = latest_occurrence_on_or_before(
            rule, date(2024, 1, 1), date(2024, 1, 24), date(2024, 1, 1)
        )
        assert latest == date(2024, 1, 22)
        assert following == date(2024, 1, 29)

    def test_due_exactly_on_reference_date(self):
        rule = {"frequency": "monthly", "interval": 1}
        latest, following = latest_occurrence_on_or_before(
            rule, date(2024, 1, 15), date(2024, 1, 15), date(2024, 1, 15)
        )
        assert latest == date(2024, 1, 15)
        assert following == date(2024, 2, 15)

    def test_step_limit_still_finds_latest_occurrence(self):
        rule = {"frequency": "weekly", "interval": 1, "weekdays": ["Mon"]}
        latest, following = latest_occurrence_on_or_before(
            rule, date(2024, 1, 1), date(2024, 3, 1), date(2024, 1, 1), max_steps=2
        )
        assert latest == date(2024, 2, 26)
        assert following == date(2024, 3, 4)

    def test_step_limit_with_month_end_clamp(self):
        rule = {"frequency": "monthly", "interval": 1, "dayOfMonth": 31}
        latest, following = latest_occurrence_on_or_before(
            rule, date(2024, 1, 31), date(2024, 9, 30), date(2024, 1, 31), max_steps=2
        )
        assert latest == date(2024, 9, 30)
        assert following == date(2024, 10, 31)

    def test_daily_past_date_range(self):
        with pytest.raises(InvalidRule):
            latest_occurrence_on_or_before(
                {"frequency": "daily", "interval": 10 ** 7}, date(2024, 1, 1), date(2024, 1, 2)
            )

    def test_pointer_after_reference_date(self):
        with pytest.raises(ValueError):
            latest_occurrence_on_or_before(
                {"frequency": "daily", "interval": 1}, date(2024, 1, 5), date(2024, 1, 4)
            )
