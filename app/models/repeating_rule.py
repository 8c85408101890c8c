"""Repeating Rule model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, Text
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import uuid


class RepeatingRule(SQLModel, table=True):
    """Repeating rule: a recurrence definition plus the template cloned onto each spawn."""
    __tablename__ = "repeating_rule"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36
    )
    user_id: str = Field(index=True, max_length=255)

    # {"frequency", "interval", "weekdays"?, "dayOfMonth"?}
    rule_definition: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    start_date: date
    next_occurrence: date = Field(index=True)  # never earlier than start_date

    # Template fields, copied onto every spawned task
    title: str = Field(max_length=200, min_length=1)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    project_id: Optional[str] = Field(default=None, max_length=36)
    area_id: Optional[str] = Field(default=None, max_length=36)
    heading_id: Optional[str] = Field(default=None, max_length=36)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    checklist_template: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    active: bool = Field(default=True)  # false once soft-deleted
    paused: bool = Field(default=False)
    deleted_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_deleted(self) -> bool:
        return not self.active or self.deleted_at is not None
