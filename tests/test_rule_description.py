import pytest

from app.services.errors import InvalidRule
from app.services.rule_description import describe_rule, ordinal


@pytest.mark.parametrize(
    "definition, expected",
    [
        ({"frequency": "daily", "interval": 1}, "Every day"),
        ({"frequency": "daily", "interval": 3}, "Every 3 days"),
        ({"frequency": "weekly", "interval": 1}, "Every week"),
        ({"frequency": "weekly", "interval": 1, "weekdays": ["Mon"]}, "Every week on Monday"),
        ({"frequency": "weekly", "interval": 2, "weekdays": ["Mon"]}, "Every 2 weeks on Monday"),
        ({"frequency": "weekly", "interval": 1, "weekdays": ["Fri", "Mon", "Wed"]}, "Every week on Mon, Wed, Fri"),
        ({"frequency": "monthly", "interval": 1}, "Every month"),
        ({"frequency": "monthly", "interval": 1, "dayOfMonth": 15}, "Every month on the 15th"),
        ({"frequency": "monthly", "interval": 3, "dayOfMonth": 1}, "Every 3 months on the 1st"),
        ({"frequency": "yearly", "interval": 1}, "Every year"),
        ({"frequency": "yearly", "interval": 2}, "Every 2 years"),
    ],
)
def test_describe_rule(definition, expected):
    assert describe_rule(definition) == expected


def test_describe_rrule_string():
    assert describe_rule("FREQ=MONTHLY;BYMONTHDAY=22") == "Every month on the 22nd"


@pytest.mark.parametrize(
    "n, expected",
    [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"), (23, "23rd"), (31, "31st")],
)
def test_ordinal(n, expected):
    assert ordinal(n) == expected


def test_describe_invalid_rule():
    with pytest.raises(InvalidRule):
        describe_rule({"frequency": "weekly", "interval": 0})
