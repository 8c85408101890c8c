"""Repeating rule schemas: the persisted rule definition plus API payloads."""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrulestr
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationError,
    field_validator,
    model_validator,
)

from app.services.errors import InvalidRule

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# RFC 5545 BYDAY codes, same order as WEEKDAYS
RRULE_WEEKDAYS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


class Frequency(str, Enum):
    """Recurrence frequency.

    Attributes:
        DAILY: Repeats every N days.
        WEEKLY: Repeats every N weeks, optionally on given weekdays.
        MONTHLY: Repeats every N months on a fixed day.
        YEARLY: Repeats every N years on the anchor's month/day.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


RRULE_FREQUENCIES = {
    DAILY: Frequency.DAILY,
    WEEKLY: Frequency.WEEKLY,
    MONTHLY: Frequency.MONTHLY,
    YEARLY: Frequency.YEARLY,
}

RRULE_PARTS = {"FREQ", "INTERVAL", "BYDAY", "BYMONTHDAY"}

# rrulestr needs a start; only the parsed parts are read back
RRULE_DTSTART = datetime(2000, 1, 3)


class RuleDefinition(BaseModel):
    """Structured recurrence definition.

    Persisted as ``{"frequency", "interval", "weekdays"?, "dayOfMonth"?}``.
    Any other shape is rejected.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    frequency: Frequency
    interval: StrictInt = Field(..., ge=1)
    weekdays: Optional[Tuple[str, ...]] = None
    day_of_month: Optional[StrictInt] = Field(default=None, ge=1, le=31, alias="dayOfMonth")

    @field_validator("weekdays")
    @classmethod
    def check_weekdays(cls, value):
        if value is None:
            return value
        if not value:
            raise ValueError("weekdays must not be empty")
        unknown = [day for day in value if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"unknown weekdays: {unknown}")
        if len(set(value)) != len(value):
            raise ValueError("weekdays must not repeat")
        # Normalise to calendar order
        return tuple(day for day in WEEKDAYS if day in value)

    @model_validator(mode="after")
    def check_frequency_fields(self):
        if self.weekdays is not None and self.frequency != Frequency.WEEKLY:
            raise ValueError("weekdays are only allowed on weekly rules")
        if self.day_of_month is not None and self.frequency != Frequency.MONTHLY:
            raise ValueError("dayOfMonth is only allowed on monthly rules")
        return self

    @property
    def weekday_numbers(self) -> Tuple[int, ...]:
        """Configured weekdays as ``date.weekday()`` numbers (Monday=0)."""
        if not self.weekdays:
            return ()
        return tuple(WEEKDAYS.index(day) for day in self.weekdays)

    @classmethod
    def parse(cls, value: Any) -> "RuleDefinition":
        """Validate a stored or submitted rule definition.

        Accepts a RuleDefinition, a mapping in the persisted encoding or an
        RRULE string restricted to FREQ, INTERVAL, BYDAY and BYMONTHDAY.

        Raises:
            InvalidRule: If the value has any other shape.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_rrule(value)
        if not isinstance(value, dict):
            raise InvalidRule(
                "Rule definition must be an object or RRULE string",
                details={"type": type(value).__name__}
            )
        try:
            return cls.model_validate(value)
        except ValidationError as e:
            raise InvalidRule(
                "Invalid rule definition",
                details={"errors": [err["msg"] for err in e.errors()]}
            ) from e

    @classmethod
    def from_rrule(cls, rrule: str) -> "RuleDefinition":
        """Translate a simple RRULE string such as ``FREQ=WEEKLY;BYDAY=MO,FR``.

        The string is parsed by dateutil. Only FREQ, INTERVAL, plain BYDAY
        weekdays and a single positive BYMONTHDAY map onto a definition.
        """
        text = rrule.strip()
        if text.upper().startswith("RRULE:"):
            text = text[len("RRULE:"):]

        # rrule fills BY* parts from dtstart, so explicit parts come from the text
        names = {chunk.partition("=")[0].strip().upper() for chunk in text.split(";") if chunk.strip()}
        unsupported = names - RRULE_PARTS
        if unsupported:
            raise InvalidRule(
                f"Unsupported RRULE parts: {sorted(unsupported)}",
                details={"rrule": rrule}
            )
        if "FREQ" not in names:
            raise InvalidRule("RRULE is missing FREQ", details={"rrule": rrule})

        try:
            parsed = rrulestr(text, dtstart=RRULE_DTSTART)
        except (ValueError, TypeError, KeyError) as e:
            raise InvalidRule(
                "Malformed RRULE",
                details={"rrule": rrule, "error": str(e)}
            ) from e

        frequency = RRULE_FREQUENCIES.get(parsed._freq)
        if frequency is None:
            raise InvalidRule("Unsupported RRULE frequency", details={"rrule": rrule})

        data: Dict[str, Any] = {"frequency": frequency.value, "interval": parsed._interval}
        if "BYDAY" in names:
            if parsed._bynweekday:
                raise InvalidRule("Ordinal BYDAY values are not supported", details={"rrule": rrule})
            data["weekdays"] = [WEEKDAYS[n] for n in parsed._byweekday or ()]
        if "BYMONTHDAY" in names:
            if parsed._bynmonthday or len(parsed._bymonthday) != 1:
                raise InvalidRule(
                    "BYMONTHDAY must be a single day between 1 and 31",
                    details={"rrule": rrule}
                )
            data["dayOfMonth"] = parsed._bymonthday[0]

        return cls.parse(data)

    def to_rrule(self) -> str:
        parts = [f"FREQ={self.frequency.value.upper()}"]
        if self.interval != 1:
            parts.append(f"INTERVAL={self.interval}")
        if self.weekdays:
            parts.append("BYDAY=" + ",".join(RRULE_WEEKDAYS[n] for n in self.weekday_numbers))
        if self.day_of_month is not None:
            parts.append(f"BYMONTHDAY={self.day_of_month}")
        return ";".join(parts)

    def to_storage(self) -> Dict[str, Any]:
        """Persisted JSON encoding."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


RuleInput = Union[str, Dict[str, Any]]


class RepeatingRuleCreate(BaseModel):
    """Schema for turning an existing task into a repeating one."""
    task_id: str
    rrule: RuleInput  # persisted encoding or simple RRULE string
    start_date: date


class RepeatingRuleUpdate(BaseModel):
    """Schema for partial rule updates. Only fields that are set are applied."""
    rule_definition: Optional[RuleInput] = None
    start_date: Optional[date] = None
    next_occurrence: Optional[date] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    notes: Optional[str] = None
    project_id: Optional[str] = None
    area_id: Optional[str] = None
    heading_id: Optional[str] = None
    tags: Optional[List[str]] = None
    checklist_template: Optional[List[str]] = None


class RepeatingRuleResponse(BaseModel):
    """Schema for repeating rule API responses."""
    id: str
    user_id: str
    rule_definition: Dict[str, Any]
    description: str
    start_date: date
    next_occurrence: date
    title: str
    notes: Optional[str] = None
    project_id: Optional[str] = None
    area_id: Optional[str] = None
    heading_id: Optional[str] = None
    tags: List[str] = []
    checklist_template: List[str] = []
    active: bool
    paused: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DescribeRequest(BaseModel):
    rrule: RuleInput


class MaterializeRequest(BaseModel):
    reference_date: Optional[date] = None  # defaults to today
