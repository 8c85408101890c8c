"""Repeating rule router."""
from fastapi import APIRouter, Depends, Query, status
from typing import Any, Dict, List

from app.schemas.repeating_rule import (
    DescribeRequest,
    MaterializeRequest,
    RepeatingRuleCreate,
    RepeatingRuleResponse,
    RepeatingRuleUpdate,
)
from app.models.repeating_rule import RepeatingRule
from app.services.recurrence_engine import RecurrenceEngine
from app.services.rule_description import describe_rule
from app.middleware.auth import get_current_user, CurrentUser
from app.db.config import get_session
from sqlmodel import Session

router = APIRouter(prefix="/repeating-rules", tags=["Repeating Rules"])


def get_engine(
    session: Session = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> RecurrenceEngine:
    """Dependency for getting an owner-scoped RecurrenceEngine."""
    return RecurrenceEngine(session, current_user.user_id)


def to_response(rule: RepeatingRule) -> RepeatingRuleResponse:
    data = {name: getattr(rule, name) for name in RepeatingRuleResponse.model_fields if name != "description"}
    data["description"] = describe_rule(rule.rule_definition)
    return RepeatingRuleResponse.model_validate(data)


@router.get("", response_model=List[RepeatingRuleResponse])
async def list_rules(
    include_deleted: bool = Query(False, description="Include soft-deleted rules"),
    engine: RecurrenceEngine = Depends(get_engine),
):
    """List the authenticated user's repeating rules."""
    return [to_response(rule) for rule in engine.rules.list(engine.owner_id, include_deleted=include_deleted)]


@router.post("", response_model=RepeatingRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    rule_data: RepeatingRuleCreate,
    engine: RecurrenceEngine = Depends(get_engine),
):
    """Make an existing task repeating."""
    rule_id = engine.create_rule_from_task(rule_data.task_id, rule_data.rrule, rule_data.start_date)
    return to_response(engine.rules.get(rule_id, engine.owner_id))


@router.post("/describe", response_model=Dict[str, str])
async def describe(request: DescribeRequest):
    """Render a rule definition as a phrase, e.g. "Every 2 weeks on Monday"."""
    return {"description": RecurrenceEngine.describe_rule(request.rrule)}


@router.post("/materialize", response_model=Dict[str, Any])
async def materialize(
    request: MaterializeRequest,
    engine: RecurrenceEngine = Depends(get_engine),
):
    """Spawn every occurrence due on the reference date (default: today)."""
    task_ids = engine.materialize_due(request.reference_date)
    return {"task_ids": task_ids, "count": len(task_ids)}


@router.get("/{rule_id}", response_model=RepeatingRuleResponse)
async def get_rule(rule_id: str, engine: RecurrenceEngine = Depends(get_engine)):
    """Get a specific repeating rule by ID."""
    return to_response(engine.rules.get(rule_id, engine.owner_id))


@router.put("/{rule_id}", response_model=RepeatingRuleResponse)
async def update_rule(
    rule_id: str,
    changes: RepeatingRuleUpdate,
    engine: RecurrenceEngine = Depends(get_engine),
):
    """Update a rule's definition, schedule or template fields."""
    engine.update_rule(rule_id, changes)
    return to_response(engine.rules.get(rule_id, engine.owner_id))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(rule_id: str, engine: RecurrenceEngine = Depends(get_engine)):
    """Soft-delete a repeating rule. Spawned tasks are kept."""
    engine.remove_rule(rule_id)


@router.post("/{rule_id}/pause", response_model=RepeatingRuleResponse)
async def pause_rule(rule_id: str, engine: RecurrenceEngine = Depends(get_engine)):
    """Stop spawning occurrences until resumed."""
    return to_response(engine.rules.pause(rule_id, engine.owner_id))


@router.post("/{rule_id}/resume", response_model=RepeatingRuleResponse)
async def resume_rule(rule_id: str, engine: RecurrenceEngine = Depends(get_engine)):
    """Resume a paused rule, skipping occurrences missed while paused."""
    return to_response(engine.rules.resume(rule_id, engine.owner_id))
