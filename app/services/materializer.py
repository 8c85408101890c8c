"""
Materializer

Turns due repeating rules into concrete task instances and moves each rule's
pointer forward. Each rule is handled in its own short transaction:

1. re-read the rule with a write-intent lock
2. re-check the precondition (unchanged since the scan, still due, no live occurrence)
3. bump the pointer with a conditional UPDATE guarded by the scanned values
4. insert the new task, unless one is already linked for that date, and commit

A lost race surfaces as AlreadySpawned and the rule is skipped for this pass,
so every occurrence is spawned at most once. Any other failure is rolled back
and logged for that rule alone; the rest of the pass continues.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.config import Settings, settings as default_settings
from app.models.repeating_rule import RepeatingRule
from app.models.task import CLOSED_STATUSES, Task, TaskStatus
from app.services.errors import AlreadySpawned, InvalidRule, NotFound, PersistenceFailure
from app.services.recurrence import latest_occurrence_on_or_before, next_occurrence
from app.services.rule_lifecycle import RuleEvent, can_transition, derive_state, transition
from app.services.template_sync import sync_from_task
from app.utils.logger import get_logger
from app.utils.metrics import PASS_DURATION, metrics_collector

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuleSnapshot:
    """Values read during the scan; the spawn transaction must still see them."""
    rule_id: str
    user_id: str
    next_occurrence: date
    updated_at: datetime


def live_occurrence_exists(session: Session, rule_id: str) -> bool:
    """True if a task linked to the rule is still open."""
    statement = (
        select(Task.id)
        .where(Task.repeating_rule_id == rule_id)
        .where(Task.status.not_in(CLOSED_STATUSES))
    )
    return session.exec(statement).first() is not None


def occurrence_exists(session: Session, rule_id: str, scheduled_date: date) -> bool:
    """True if a task linked to the rule is already scheduled on the date, open or not."""
    statement = (
        select(Task.id)
        .where(Task.repeating_rule_id == rule_id)
        .where(Task.scheduled_date == scheduled_date)
    )
    return session.exec(statement).first() is not None


class Materializer:
    """Spawns due occurrences and advances rules when occurrences are completed."""

    def __init__(self, session: Session, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or default_settings

    def due_rules(self, owner_id: str, reference_date: date) -> List[RuleSnapshot]:
        """Snapshot every active, unpaused rule of the owner due on ``reference_date``."""
        statement = (
            select(RepeatingRule)
            .where(RepeatingRule.user_id == owner_id)
            .where(RepeatingRule.active == True)  # noqa: E712
            .where(RepeatingRule.paused == False)  # noqa: E712
            .where(RepeatingRule.deleted_at.is_(None))
            .where(RepeatingRule.next_occurrence <= reference_date)
            .order_by(RepeatingRule.next_occurrence.asc(), RepeatingRule.created_at.asc())
        )
        return [
            RuleSnapshot(
                rule_id=rule.id,
                user_id=rule.user_id,
                next_occurrence=rule.next_occurrence,
                updated_at=rule.updated_at,
            )
            for rule in self.session.exec(statement).all()
        ]

    @metrics_collector.time_operation(PASS_DURATION)
    def spawn_due(self, owner_id: str, reference_date: date) -> List[str]:
        """
        Run one materialization pass for an owner.

        Args:
            owner_id: Owner whose rules are scanned
            reference_date: "Today" for this pass

        Returns:
            Ids of the tasks created in this pass
        """
        created = []
        for snapshot in self.due_rules(owner_id, reference_date):
            task_id = self.spawn_rule(snapshot, reference_date)
            if task_id:
                created.append(task_id)

        logger.info(
            "Materialization pass finished",
            owner_id=owner_id,
            reference_date=reference_date,
            spawned=len(created),
        )
        return created

    def spawn_rule(self, snapshot: RuleSnapshot, reference_date: date) -> Optional[str]:
        """
        Spawn the due occurrence of one rule in its own transaction.

        Returns:
            The new task id, or None if the rule was skipped
        """
        try:
            task_id = self._spawn(snapshot, reference_date)
            self.session.commit()
        except AlreadySpawned as e:
            self.session.rollback()
            metrics_collector.spawn_skipped()
            logger.info("Skipped rule", rule_id=snapshot.rule_id, reason=e.message)
            return None
        except InvalidRule as e:
            self.session.rollback()
            metrics_collector.materialization_error()
            logger.error("Stored rule definition is invalid", rule_id=snapshot.rule_id, details=e.details)
            return None
        except SQLAlchemyError as e:
            self.session.rollback()
            metrics_collector.materialization_error()
            logger.error("Spawn failed", rule_id=snapshot.rule_id, error=str(e))
            raise PersistenceFailure(
                "Failed to spawn repeating task",
                details={"rule_id": snapshot.rule_id}
            ) from e
        except Exception:
            self.session.rollback()
            metrics_collector.materialization_error()
            logger.exception("Unexpected error while spawning rule", rule_id=snapshot.rule_id)
            return None

        if task_id is None:
            metrics_collector.spawn_skipped()
            logger.info("Occurrence already exists; pointer advanced", rule_id=snapshot.rule_id)
            return None

        metrics_collector.occurrence_spawned()
        logger.info("Spawned occurrence", rule_id=snapshot.rule_id, task_id=task_id)
        return task_id

    def _spawn(self, snapshot: RuleSnapshot, reference_date: date) -> Optional[str]:
        statement = (
            select(RepeatingRule)
            .where(RepeatingRule.id == snapshot.rule_id)
            .where(RepeatingRule.user_id == snapshot.user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rule = self.session.exec(statement).first()
        if rule is None:
            raise AlreadySpawned("Rule no longer exists")
        if rule.next_occurrence != snapshot.next_occurrence or rule.updated_at != snapshot.updated_at:
            raise AlreadySpawned("Rule changed since it was scanned")
        if rule.next_occurrence > reference_date:
            raise AlreadySpawned("Rule is no longer due")

        state = derive_state(rule, live_occurrence_exists(self.session, rule.id))
        if not can_transition(state, RuleEvent.DUE_REACHED):
            raise AlreadySpawned(f"Rule is {state.value}")

        # Catch-up: spawn only the latest due occurrence and skip the rest
        occurrence, following = latest_occurrence_on_or_before(
            rule.rule_definition,
            rule.next_occurrence,
            reference_date,
            rule.start_date,
            self.settings.MAX_CATCHUP_STEPS,
        )
        now = datetime.utcnow()
        result = self.session.exec(
            update(RepeatingRule)
            .where(RepeatingRule.id == rule.id)
            .where(RepeatingRule.next_occurrence == snapshot.next_occurrence)
            .where(RepeatingRule.updated_at == snapshot.updated_at)
            .values(next_occurrence=following, updated_at=now)
        )
        if result.rowcount != 1:
            raise AlreadySpawned("Pointer was advanced concurrently")

        # A canceled occurrence on the same date stays linked; move past it
        if occurrence_exists(self.session, rule.id, occurrence):
            return None

        task = Task(
            user_id=rule.user_id,
            title=rule.title,
            notes=rule.notes,
            status=TaskStatus.SCHEDULED.value,
            scheduled_date=occurrence,
            project_id=rule.project_id,
            area_id=rule.area_id,
            heading_id=rule.heading_id,
            tags=list(rule.tags or []),
            checklist=[{"title": title, "completed": False} for title in rule.checklist_template or []],
            repeating_rule_id=rule.id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(task)
        self.session.flush()
        return task.id

    def advance_on_completion(
        self,
        task_id: str,
        completed_at: Union[date, datetime],
        owner_id: Optional[str] = None,
    ) -> Optional[date]:
        """
        Absorb the completed occurrence into its rule and restart the rule's clock.

        Syncs the template from the task, sets the pointer to the first
        occurrence after the completion date and unlinks the task. Everything
        pending in the session, including the task's own status change, is
        committed together.

        Args:
            task_id: The task being completed
            completed_at: Completion moment; only its calendar date is used
            owner_id: When given, the task must belong to this owner

        Returns:
            The rule's new next occurrence, or None if the task was not
            linked or its rule has been deleted

        Raises:
            NotFound: Task missing or owned by someone else
            PersistenceFailure: The store failed; nothing is committed
        """
        completed_on = completed_at.date() if isinstance(completed_at, datetime) else completed_at
        pointer = None
        rule = None

        try:
            task = self.session.get(Task, task_id)
            if task is None or (owner_id is not None and task.user_id != owner_id):
                raise NotFound("Task not found", details={"task_id": task_id})

            if task.repeating_rule_id:
                statement = (
                    select(RepeatingRule)
                    .where(RepeatingRule.id == task.repeating_rule_id)
                    .where(RepeatingRule.user_id == task.user_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                rule = self.session.exec(statement).first()
                now = datetime.utcnow()

                if rule is not None and not rule.is_deleted:
                    # The task being completed is the rule's live occurrence
                    transition(derive_state(rule, True), RuleEvent.OCCURRENCE_COMPLETED)
                    sync_from_task(self.session, task.id)
                    pointer = next_occurrence(rule.rule_definition, completed_on, rule.start_date)
                    rule.next_occurrence = pointer
                    rule.updated_at = now
                    self.session.add(rule)

                task.repeating_rule_id = None
                task.updated_at = now
                self.session.add(task)

            self.session.commit()
        except (NotFound, InvalidRule):
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            metrics_collector.materialization_error()
            logger.error("Completion advance failed", task_id=task_id, error=str(e))
            raise PersistenceFailure(
                "Failed to advance repeating rule",
                details={"task_id": task_id}
            ) from e

        if pointer is not None:
            metrics_collector.completion_advanced()
            logger.info("Advanced rule on completion", rule_id=rule.id, task_id=task_id, next_occurrence=pointer)
        return pointer
