"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, Text
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid


class TaskStatus(str, Enum):
    """Status of a task.

    Attributes:
        INBOX: Captured but not scheduled.
        SCHEDULED: Has a scheduled date.
        COMPLETED: Marked as done.
        CANCELED: Dropped without being done.
    """
    INBOX = "inbox"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


# Statuses after which a task no longer counts as a live occurrence
CLOSED_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.CANCELED.value)


class Task(SQLModel, table=True):
    """Task entity. Only the fields the repeating engine reads or writes."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        max_length=36
    )
    user_id: str = Field(index=True, max_length=255)
    title: str = Field(max_length=200, min_length=1)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default=TaskStatus.INBOX.value, max_length=20)
    scheduled_date: Optional[date] = Field(default=None, index=True)
    project_id: Optional[str] = Field(default=None, max_length=36)
    area_id: Optional[str] = Field(default=None, max_length=36)
    heading_id: Optional[str] = Field(default=None, max_length=36)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    checklist: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))  # [{"title", "completed"}]

    # Set at spawn time, cleared when the occurrence is completed
    repeating_rule_id: Optional[str] = Field(
        default=None,
        foreign_key="repeating_rule.id",
        index=True,
        max_length=36
    )

    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
