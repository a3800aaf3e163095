from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from taskflow.infra.models import utcnow
from taskflow.services.recurrence_service import RecurrenceService
from taskflow.services.task_service import TaskService

from .schemas import RuleCreate, RuleOut, RuleUpdateIn, TaskCreate, TaskOut, to_naive_utc

rules_router = APIRouter(prefix="/recurrence-rules", tags=["recurrence"])
tasks_router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_user_id(x_user_id: Annotated[Optional[str], Header()] = None) -> str:
    """Header-based identity stub; real authentication lives elsewhere."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_recurrence_service(request: Request) -> RecurrenceService:
    return request.app.state.recurrence_service


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


UserId = Annotated[str, Depends(get_user_id)]
Recurrence = Annotated[RecurrenceService, Depends(get_recurrence_service)]
Tasks = Annotated[TaskService, Depends(get_task_service)]


def envelope(data: object) -> dict:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return {"data": data, "meta": {}}


@rules_router.post("", status_code=status.HTTP_201_CREATED)
def create_rule(payload: RuleCreate, user_id: UserId, service: Recurrence) -> dict:
    rule = service.create_rule(payload.to_data())
    return envelope(RuleOut.from_entity(rule))


@rules_router.get("/{rule_id}")
def get_rule(rule_id: int, user_id: UserId, service: Recurrence) -> dict:
    return envelope(RuleOut.from_entity(service.get_rule(rule_id)))


@rules_router.patch("/{rule_id}")
def update_rule(rule_id: int, payload: RuleUpdateIn, user_id: UserId, service: Recurrence) -> dict:
    rule = service.update_rule(rule_id, payload.to_update())
    return envelope(RuleOut.from_entity(rule))


@rules_router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(rule_id: int, user_id: UserId, service: Recurrence) -> Response:
    service.delete_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@rules_router.get("/{rule_id}/occurrences")
def list_occurrences(
    rule_id: int,
    user_id: UserId,
    service: Recurrence,
    from_date: Annotated[Optional[datetime], Query(alias="fromDate")] = None,
    count: Annotated[int, Query(ge=1, le=100)] = 10,
) -> dict:
    start = to_naive_utc(from_date) or utcnow()
    occurrences = service.generate_occurrences(rule_id, start, count)
    return envelope([occurrence.isoformat() for occurrence in occurrences])


@rules_router.post("/apply/{task_id}", status_code=status.HTTP_201_CREATED)
def apply_recurrence(task_id: int, user_id: UserId, service: Recurrence):
    successor = service.apply_recurrence_to_task(task_id, user_id)
    if successor is None:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Unable to apply recurrence to task", "meta": {}},
        )
    return envelope(TaskOut.from_entity(successor))


@tasks_router.post("", status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskCreate, user_id: UserId, service: Tasks) -> dict:
    task = service.create_task(user_id, payload.to_data(), tags=payload.tags)
    return envelope(TaskOut.from_entity(task))


@tasks_router.get("/{task_id}")
def get_task(task_id: int, user_id: UserId, service: Tasks) -> dict:
    return envelope(TaskOut.from_entity(service.get_task(task_id, user_id)))


@tasks_router.post("/{task_id}/complete")
def complete_task(task_id: int, user_id: UserId, service: Tasks) -> dict:
    task, successor = service.mark_done(task_id, user_id)
    return envelope(
        {
            "task": TaskOut.from_entity(task).model_dump(mode="json", by_alias=True),
            "successor": (
                TaskOut.from_entity(successor).model_dump(mode="json", by_alias=True)
                if successor
                else None
            ),
        }
    )


@tasks_router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: int, user_id: UserId, service: Tasks) -> Response:
    service.delete_task(task_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
