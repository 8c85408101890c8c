"""Template Sync: absorb edits made to a live occurrence into its rule template."""
import logging
from datetime import datetime
from typing import Any, Dict

from sqlmodel import Session, select

from app.models.repeating_rule import RepeatingRule
from app.models.task import Task

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = ("title", "notes", "project_id", "area_id", "heading_id", "tags", "checklist_template")


def template_from_task(task: Task) -> Dict[str, Any]:
    """Snapshot of the task fields that make up a rule template."""
    return {
        "title": task.title,
        "notes": task.notes,
        "project_id": task.project_id,
        "area_id": task.area_id,
        "heading_id": task.heading_id,
        "tags": list(task.tags or []),
        "checklist_template": [item["title"] for item in (task.checklist or [])],
    }


def sync_from_task(session: Session, task_id: str) -> bool:
    """
    Copy the linked task's editable fields onto its rule template.

    Does not commit and never touches next_occurrence or rule_definition.

    Args:
        session: Open session; the caller owns the transaction
        task_id: Task currently linked to a rule

    Returns:
        True if the template changed, False if it already matched, the task
        is not linked or the rule has been deleted
    """
    task = session.get(Task, task_id)
    if not task or not task.repeating_rule_id:
        return False

    statement = select(RepeatingRule).where(
        RepeatingRule.id == task.repeating_rule_id,
        RepeatingRule.user_id == task.user_id,
    )
    rule = session.exec(statement).first()
    if not rule or rule.is_deleted:
        return False

    changed = False
    for field, value in template_from_task(task).items():
        if getattr(rule, field) != value:
            setattr(rule, field, value)
            changed = True

    if changed:
        rule.updated_at = datetime.utcnow()
        session.add(rule)
        logger.info(f"Synced template of rule {rule.id} from task {task.id}")
    return changed
