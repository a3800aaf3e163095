from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from taskflow.api.app import create_app
from taskflow.config import Settings, load_settings
from taskflow.infra.db import create_db_engine, create_session_factory, init_db
from taskflow.infra.logging import setup_logging
from taskflow.infra.repository import RecurrenceRuleRepository, TaskRepository
from taskflow.services.recurrence_service import RecurrenceService
from taskflow.services.scheduler import RecurrenceScheduler
from taskflow.services.task_service import TaskService

logger = logging.getLogger(__name__)


def build_app(settings: Settings, session_factory: sessionmaker) -> FastAPI:
    rules = RecurrenceRuleRepository(session_factory)
    tasks = TaskRepository(session_factory)
    recurrence = RecurrenceService(rules, tasks)
    task_service = TaskService(tasks, recurrence)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = RecurrenceScheduler(tasks, recurrence, settings)
    return create_app(recurrence, task_service, scheduler)


def main() -> None:
    settings = load_settings()
    setup_logging(settings)

    engine = create_db_engine(settings.database_url)
    try:
        init_db(engine)
    except Exception:  # noqa: BLE001
        logger.exception("Database is not reachable")
        raise SystemExit(1)

    app = build_app(settings, create_session_factory(engine))
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
    main()
