"""Task service: the task store the repeating engine reads from and spawns into."""
from sqlmodel import Session, select
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
from datetime import date, datetime
import logging

from app.models.task import Task, TaskStatus
from app.schemas.task import TaskCreate, TaskUpdate
from app.services.errors import NotFound, PersistenceFailure
from app.services.materializer import Materializer

logger = logging.getLogger(__name__)


class TaskService:
    """Service class for task CRUD, scoped by owner."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, user_id: str, task_data: TaskCreate) -> Task:
        """Create a new task. A task with a scheduled date starts out scheduled."""
        task = Task(
            user_id=user_id,
            title=task_data.title,
            notes=task_data.notes,
            status=TaskStatus.SCHEDULED.value if task_data.scheduled_date else TaskStatus.INBOX.value,
            scheduled_date=task_data.scheduled_date,
            project_id=task_data.project_id,
            area_id=task_data.area_id,
            heading_id=task_data.heading_id,
            tags=task_data.tags or [],
            checklist=[{"title": title, "completed": False} for title in task_data.checklist or []],
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow()
        )

        self.session.add(task)
        self._commit("create task")
        self.session.refresh(task)
        return task

    def get_by_id(self, task_id: str, user_id: str) -> Task:
        """Get a specific task by ID, ensuring user ownership. Raises NotFound."""
        statement = (
            select(Task)
            .where(Task.id == task_id)
            .where(Task.user_id == user_id)
        )
        task = self.session.exec(statement).first()
        if not task:
            raise NotFound("Task not found", details={"task_id": task_id})
        return task

    def list_for_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        scheduled_on: Optional[date] = None,
        repeating_rule_id: Optional[str] = None,
    ) -> List[Task]:
        """Get a user's tasks with optional filters."""
        statement = select(Task).where(Task.user_id == user_id)

        if status:
            statement = statement.where(Task.status == status)
        if scheduled_on:
            statement = statement.where(Task.scheduled_date == scheduled_on)
        if repeating_rule_id:
            statement = statement.where(Task.repeating_rule_id == repeating_rule_id)

        statement = statement.order_by(Task.scheduled_date.asc().nullslast(), Task.created_at.asc())
        return list(self.session.exec(statement).all())

    def update(self, task_id: str, user_id: str, task_data: TaskUpdate) -> Task:
        """Update a task's editable fields. Completion goes through complete()."""
        task = self.get_by_id(task_id, user_id)

        update_data = task_data.model_dump(exclude_unset=True)
        checklist = update_data.pop("checklist", None)
        if update_data.get("title") is None:
            update_data.pop("title", None)
        for key, value in update_data.items():
            setattr(task, key, value)
        if checklist is not None:
            task.checklist = [{"title": title, "completed": False} for title in checklist]
        if "scheduled_date" in update_data and task.status == TaskStatus.INBOX.value and task.scheduled_date:
            task.status = TaskStatus.SCHEDULED.value

        task.updated_at = datetime.utcnow()
        self.session.add(task)
        self._commit("update task")
        self.session.refresh(task)
        return task

    def complete(self, task_id: str, user_id: str, completed_at: Optional[datetime] = None) -> Task:
        """
        Mark a task completed.

        A task linked to a repeating rule goes through the completion hook,
        which commits the status change together with the rule update.
        Completing an already completed task changes nothing.
        """
        task = self.get_by_id(task_id, user_id)
        if task.status == TaskStatus.COMPLETED.value:
            return task

        completed_at = completed_at or datetime.utcnow()
        task.status = TaskStatus.COMPLETED.value
        task.completed_at = completed_at
        task.updated_at = datetime.utcnow()
        self.session.add(task)

        if task.repeating_rule_id:
            Materializer(self.session).advance_on_completion(task.id, completed_at, owner_id=user_id)
        else:
            self._commit("complete task")

        self.session.refresh(task)
        return task

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error trying to {action}: {e}")
            self.session.rollback()
            raise PersistenceFailure(f"Failed to {action}") from e
