from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow.domain.errors import ConflictError, NotFoundError, TaskflowError
from taskflow.services.recurrence_service import RecurrenceService
from taskflow.services.scheduler import RecurrenceScheduler
from taskflow.services.task_service import TaskService

from .routes import rules_router, tasks_router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra, "meta": {}})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(TaskflowError)
    async def domain_error_handler(request: Request, exc: TaskflowError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
            for error in exc.errors()
        ]
        return _error(422, "Validation failed", details=details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))


def create_app(
    recurrence_service: RecurrenceService,
    task_service: TaskService,
    scheduler: RecurrenceScheduler | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown()

    app = FastAPI(title="taskflow", lifespan=lifespan)
    app.state.recurrence_service = recurrence_service
    app.state.task_service = task_service

    _register_error_handlers(app)
    app.include_router(rules_router, prefix="/api")
    app.include_router(tasks_router, prefix="/api")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    logger.debug("Application created (scheduler %s)", "enabled" if scheduler else "disabled")
    return app
