from datetime import date, datetime

import pytest

from app.models.task import Task
from app.services.errors import NotFound
from app.services.recurrence_engine import RecurrenceEngine
from tests.conftest import USER_ID


@pytest.fixture
def engine_facade(session):
    return RecurrenceEngine(session, USER_ID)


def test_full_cycle(session, engine_facade, make_task):
    task = make_task(title="Take out recycling")
    rule_id = engine_facade.create_rule_from_task(task.id, "FREQ=WEEKLY;BYDAY=TH", date(2024, 1, 4))

    # The originating task is unscheduled, so it is the live occurrence until completed
    assert engine_facade.materialize_due(date(2024, 1, 4)) == []
    task.status = "completed"
    task.completed_at = datetime(2024, 1, 4, 20, 0)
    session.add(task)
    assert engine_facade.on_task_completed(task.id, task.completed_at) == date(2024, 1, 11)

    created = engine_facade.materialize_due(date(2024, 1, 11))
    assert len(created) == 1
    assert session.get(Task, created[0]).title == "Take out recycling"

    engine_facade.update_rule(rule_id, {"title": "Take out recycling and glass"}, today=date(2024, 1, 11))
    assert engine_facade.rules.get(rule_id, USER_ID).title == "Take out recycling and glass"

    engine_facade.remove_rule(rule_id)
    with pytest.raises(NotFound):
        engine_facade.rules.get(rule_id, USER_ID)


def test_describe_rule():
    assert RecurrenceEngine.describe_rule({"frequency": "weekly", "interval": 2, "weekdays": ["Thu"]}) == (
        "Every 2 weeks on Thursday"
    )
