"""Task schemas for the repeating task engine's task store."""
from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


class TaskCreate(BaseModel):
    """Schema for creating a task."""
    title: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(None)
    scheduled_date: Optional[date] = Field(None)
    project_id: Optional[str] = Field(None)
    area_id: Optional[str] = Field(None)
    heading_id: Optional[str] = Field(None)
    tags: Optional[List[str]] = Field(None, max_length=20)
    checklist: Optional[List[str]] = Field(None)  # checklist item titles


class TaskUpdate(BaseModel):
    """Schema for updating a task. Only fields that are set are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    notes: Optional[str] = Field(None)
    scheduled_date: Optional[date] = Field(None)
    project_id: Optional[str] = Field(None)
    area_id: Optional[str] = Field(None)
    heading_id: Optional[str] = Field(None)
    tags: Optional[List[str]] = Field(None, max_length=20)
    checklist: Optional[List[str]] = Field(None)


class TaskComplete(BaseModel):
    """Schema for completing a task; defaults to now."""
    completed_at: Optional[datetime] = None


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: str
    user_id: str
    title: str
    notes: Optional[str] = None
    status: str
    scheduled_date: Optional[date] = None
    project_id: Optional[str] = None
    area_id: Optional[str] = None
    heading_id: Optional[str] = None
    tags: List[str] = []
    checklist: List[Dict[str, Any]] = []
    repeating_rule_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
