"""Repeating Rule Store: lifecycle operations on repeating rules, scoped by owner."""
import logging
from datetime import date, datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.models.repeating_rule import RepeatingRule
from app.models.task import Task
from app.schemas.repeating_rule import RepeatingRuleUpdate
from app.services.errors import InvalidRule, NotFound, PersistenceFailure
from app.services.recurrence import next_occurrence, validate_rule_definition
from app.services.rule_lifecycle import RuleEvent, can_transition, derive_state
from app.services.template_sync import TEMPLATE_FIELDS, template_from_task

logger = logging.getLogger(__name__)


class RepeatingRuleService:
    """Service class for repeating rule CRUD with invariant enforcement."""

    def __init__(self, session: Session):
        self.session = session

    def create_from_task(
        self,
        task_id: str,
        rule_definition: Any,
        start_date: date,
        owner_id: str,
    ) -> str:
        """
        Turn an existing task into a repeating one.

        The task's current fields become the template and the task is linked
        to the new rule. A scheduled task is the occurrence for ``start_date``,
        so the pointer starts at the following occurrence. An unscheduled
        task leaves the pointer at ``start_date``.

        Returns:
            The new rule id

        Raises:
            NotFound: Task missing or owned by someone else
            InvalidRule: Malformed rule definition
        """
        rule = validate_rule_definition(rule_definition)
        task = self._get_task(task_id, owner_id)

        # Also rejects rules whose second occurrence is past the supported range
        following = next_occurrence(rule, start_date, start_date)
        pointer = following if task.scheduled_date is not None else start_date

        now = datetime.utcnow()
        repeating_rule = RepeatingRule(
            user_id=owner_id,
            rule_definition=rule.to_storage(),
            start_date=start_date,
            next_occurrence=pointer,
            created_at=now,
            updated_at=now,
            **template_from_task(task)
        )
        self.session.add(repeating_rule)
        # The rule row has to exist before the task can reference it
        self._flush("create repeating rule")

        task.repeating_rule_id = repeating_rule.id
        task.updated_at = now

        self.session.add(task)
        self._commit("create repeating rule")
        self.session.refresh(repeating_rule)

        logger.info(
            f"Created repeating rule {repeating_rule.id} from task {task_id} "
            f"for user {owner_id}, next occurrence {pointer}"
        )
        return repeating_rule.id

    def get(self, rule_id: str, owner_id: str, include_deleted: bool = False) -> RepeatingRule:
        """Get a rule by id, ensuring ownership. Raises NotFound."""
        statement = (
            select(RepeatingRule)
            .where(RepeatingRule.id == rule_id)
            .where(RepeatingRule.user_id == owner_id)
        )
        if not include_deleted:
            statement = statement.where(RepeatingRule.deleted_at.is_(None))
        rule = self.session.exec(statement).first()
        if not rule:
            raise NotFound("Repeating rule not found", details={"rule_id": rule_id})
        return rule

    def list(self, owner_id: str, include_deleted: bool = False) -> List[RepeatingRule]:
        """List a user's rules, oldest first."""
        statement = select(RepeatingRule).where(RepeatingRule.user_id == owner_id)
        if not include_deleted:
            statement = statement.where(RepeatingRule.deleted_at.is_(None))
        statement = statement.order_by(RepeatingRule.created_at.asc())
        return list(self.session.exec(statement).all())

    def update(
        self,
        rule_id: str,
        owner_id: str,
        changes: RepeatingRuleUpdate,
        today: Optional[date] = None,
    ) -> RepeatingRule:
        """
        Apply a partial update.

        A new definition or start date takes effect going forward: the pointer
        becomes the first occurrence after ``max(today, start_date)``.
        Already spawned tasks are not touched.

        Raises:
            NotFound: Rule missing, deleted or owned by someone else
            InvalidRule: Bad definition, a pointer before the start date, or
                         a pointer sent along with a schedule change
        """
        rule = self.get(rule_id, owner_id)
        today = today or date.today()
        update_data = changes.model_dump(exclude_unset=True)

        # Work out the new schedule before touching the tracked instance
        definition = rule.rule_definition
        if update_data.get("rule_definition") is not None:
            definition = validate_rule_definition(update_data["rule_definition"]).to_storage()
        start_date = update_data.get("start_date") or rule.start_date

        if definition != rule.rule_definition or start_date != rule.start_date:
            if update_data.get("next_occurrence") is not None:
                raise InvalidRule(
                    "Next occurrence cannot be set together with a new definition or start date",
                    details={"rule_id": rule_id}
                )
            pointer = next_occurrence(definition, max(today, start_date), start_date)
        else:
            pointer = update_data.get("next_occurrence") or rule.next_occurrence

        if pointer < start_date:
            raise InvalidRule(
                "Next occurrence cannot be before the start date",
                details={"next_occurrence": str(pointer), "start_date": str(start_date)}
            )
        if "title" in update_data and not update_data["title"]:
            raise InvalidRule("Title cannot be empty", details={"rule_id": rule_id})

        for field in TEMPLATE_FIELDS:
            if field in update_data:
                value = update_data[field]
                if field in ("tags", "checklist_template"):
                    value = list(value or [])
                setattr(rule, field, value)

        rule.rule_definition = definition
        rule.start_date = start_date
        rule.next_occurrence = pointer
        rule.updated_at = datetime.utcnow()
        self.session.add(rule)
        self._commit("update repeating rule")
        self.session.refresh(rule)
        return rule

    def remove(self, rule_id: str, owner_id: str, now: Optional[datetime] = None) -> None:
        """Soft-delete a rule. Spawned tasks are left untouched."""
        rule = self.get(rule_id, owner_id)
        if not can_transition(derive_state(rule, False), RuleEvent.REMOVE):
            raise NotFound("Repeating rule not found", details={"rule_id": rule_id})

        now = now or datetime.utcnow()
        rule.active = False
        rule.deleted_at = now
        rule.updated_at = now
        self.session.add(rule)
        self._commit("remove repeating rule")
        logger.info(f"Removed repeating rule {rule_id} for user {owner_id}")

    def pause(self, rule_id: str, owner_id: str) -> RepeatingRule:
        """Stop materializing a rule until it is resumed. Pausing twice is a no-op."""
        rule = self.get(rule_id, owner_id)
        if not can_transition(derive_state(rule, False), RuleEvent.PAUSE):
            return rule

        rule.paused = True
        rule.updated_at = datetime.utcnow()
        self.session.add(rule)
        self._commit("pause repeating rule")
        self.session.refresh(rule)
        return rule

    def resume(self, rule_id: str, owner_id: str, today: Optional[date] = None) -> RepeatingRule:
        """
        Resume a paused rule.

        Occurrences that fell due while paused are skipped: a past pointer
        moves to the first occurrence on or after ``today``.
        """
        rule = self.get(rule_id, owner_id)
        if not can_transition(derive_state(rule, False), RuleEvent.RESUME):
            return rule

        today = today or date.today()
        if rule.next_occurrence < today:
            rule.next_occurrence = next_occurrence(
                rule.rule_definition, today - timedelta(days=1), rule.start_date
            )
        rule.paused = False
        rule.updated_at = datetime.utcnow()
        self.session.add(rule)
        self._commit("resume repeating rule")
        self.session.refresh(rule)
        return rule

    def _get_task(self, task_id: str, owner_id: str) -> Task:
        statement = select(Task).where(Task.id == task_id).where(Task.user_id == owner_id)
        task = self.session.exec(statement).first()
        if not task:
            raise NotFound("Task not found", details={"task_id": task_id})
        return task

    def _flush(self, action: str) -> None:
        self._write(self.session.flush, action)

    def _commit(self, action: str) -> None:
        self._write(self.session.commit, action)

    def _write(self, operation, action: str) -> None:
        try:
            operation()
        except SQLAlchemyError as e:
            logger.error(f"Failed to {action}: {e}")
            self.session.rollback()
            raise PersistenceFailure(f"Failed to {action}") from e
