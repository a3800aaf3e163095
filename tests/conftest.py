from __future__ import annotations

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from taskflow.infra import models  # noqa: F401
from taskflow.infra.db import Base, create_session_factory
from taskflow.infra.repository import RecurrenceRuleRepository, TaskRepository
from taskflow.services.recurrence_service import RecurrenceService
from taskflow.services.task_service import TaskService


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def rule_repo(session_factory) -> RecurrenceRuleRepository:
    return RecurrenceRuleRepository(session_factory)


@pytest.fixture()
def task_repo(session_factory) -> TaskRepository:
    return TaskRepository(session_factory)


@pytest.fixture()
def recurrence_service(rule_repo, task_repo) -> RecurrenceService:
    return RecurrenceService(rule_repo, task_repo)


@pytest.fixture()
def task_service(task_repo, recurrence_service) -> TaskService:
    return TaskService(task_repo, recurrence_service)
