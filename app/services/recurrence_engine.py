"""Repeating task engine facade used by the task API and the periodic trigger."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlmodel import Session

from app.schemas.repeating_rule import RepeatingRuleUpdate
from app.services.materializer import Materializer
from app.services.repeating_rule_service import RepeatingRuleService
from app.services.rule_description import describe_rule


class RecurrenceEngine:
    """Owner-scoped entry points of the repeating task engine.

    Every call that depends on "today" takes it explicitly, falling back to
    the current date only at this boundary.
    """

    def __init__(self, session: Session, owner_id: str):
        self.session = session
        self.owner_id = owner_id
        self.rules = RepeatingRuleService(session)
        self.materializer = Materializer(session)

    def create_rule_from_task(self, task_id: str, rrule: Any, start_date: date) -> str:
        return self.rules.create_from_task(task_id, rrule, start_date, self.owner_id)

    def update_rule(
        self,
        rule_id: str,
        changes: Union[RepeatingRuleUpdate, Dict[str, Any]],
        today: Optional[date] = None,
    ) -> None:
        if isinstance(changes, dict):
            changes = RepeatingRuleUpdate(**changes)
        self.rules.update(rule_id, self.owner_id, changes, today=today)

    def remove_rule(self, rule_id: str) -> None:
        self.rules.remove(rule_id, self.owner_id)

    @staticmethod
    def describe_rule(rrule: Any) -> str:
        return describe_rule(rrule)

    def materialize_due(self, reference_date: Optional[date] = None) -> List[str]:
        """Spawn every occurrence due on ``reference_date`` (default: today)."""
        return self.materializer.spawn_due(self.owner_id, reference_date or date.today())

    def on_task_completed(self, task_id: str, completed_at: Union[date, datetime]) -> Optional[date]:
        """Hook for the task-update path when a linked task becomes completed."""
        return self.materializer.advance_on_completion(task_id, completed_at, owner_id=self.owner_id)
