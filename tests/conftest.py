from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from app.db.config import build_engine, get_session
from app.db.init import init_db
from app.main import app
from app.middleware.auth import CurrentUser, get_current_user
from app.models.repeating_rule import RepeatingRule
from app.models.task import Task, TaskStatus
from app.utils.metrics import metrics_collector

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

WEEKLY_MONDAY = {"frequency": "weekly", "interval": 1, "weekdays": ["Mon"]}
DAILY = {"frequency": "daily", "interval": 1}


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_collector.reset()
    yield
    metrics_collector.reset()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'engine.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_task(session):
    def _make_task(user_id: str = USER_ID, **fields) -> Task:
        fields.setdefault("title", "Water the plants")
        if fields.get("scheduled_date"):
            fields.setdefault("status", TaskStatus.SCHEDULED.value)
        task = Task(user_id=user_id, **fields)
        session.add(task)
        session.commit()
        session.refresh(task)
        return task

    return _make_task


@pytest.fixture
def make_rule(session):
    def _make_rule(
        definition=None,
        start_date: date = date(2024, 1, 1),
        next_occurrence: date = None,
        user_id: str = USER_ID,
        **fields,
    ) -> RepeatingRule:
        fields.setdefault("title", "Water the plants")
        rule = RepeatingRule(
            user_id=user_id,
            rule_definition=definition or WEEKLY_MONDAY,
            start_date=start_date,
            next_occurrence=next_occurrence or start_date,
            **fields,
        )
        session.add(rule)
        session.commit()
        session.refresh(rule)
        return rule

    return _make_rule


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(user_id=USER_ID)
    yield TestClient(app)
    app.dependency_overrides.clear()
