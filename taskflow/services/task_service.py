from __future__ import annotations

from taskflow.domain.entities import TaskEntity
from taskflow.domain.enums import TaskStatus
from taskflow.domain.errors import NotFoundError
from taskflow.infra.models import utcnow
from taskflow.infra.repository import TaskRepository

from .recurrence_service import RecurrenceService


class TaskService:
    def __init__(self, repo: TaskRepository, recurrence: RecurrenceService) -> None:
        self._repo = repo
        self._recurrence = recurrence

    def get_task(self, task_id: int, user_id: str) -> TaskEntity:
        task = self._repo.get_task(task_id, user_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def create_task(self, user_id: str, data: dict, tags: list[str] | None = None) -> TaskEntity:
        normalized = self._normalize_data(data)
        normalized["user_id"] = user_id
        normalized.setdefault("status", TaskStatus.NOT_STARTED.value)
        if normalized.get("recurrence_rule_id") is not None:
            # Raises NotFoundError for dangling references.
            self._recurrence.get_rule(normalized["recurrence_rule_id"])
        category_id = normalized.get("category_id")
        if category_id is not None and not self._repo.category_exists(category_id, user_id):
            raise NotFoundError("Category", category_id)
        return self._repo.create_task(normalized, tag_names=tags or ())

    def update_task(self, task_id: int, user_id: str, data: dict) -> TaskEntity:
        normalized = self._normalize_data(data)
        status = normalized.get("status")
        if status == TaskStatus.DONE.value and "completed_at" not in normalized:
            normalized["completed_at"] = utcnow()
        if status and status != TaskStatus.DONE.value:
            normalized["completed_at"] = None
        task = self._repo.update_task(task_id, user_id, normalized)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def delete_task(self, task_id: int, user_id: str) -> None:
        if not self._repo.delete_task(task_id, user_id):
            raise NotFoundError("Task", task_id)

    def mark_done(self, task_id: int, user_id: str) -> tuple[TaskEntity, TaskEntity | None]:
        task = self.get_task(task_id, user_id)
        if task.status == TaskStatus.DONE:
            return task, None
        task = self.update_task(task_id, user_id, {"status": TaskStatus.DONE})
        successor = None
        if task.is_recurring:
            successor = self._recurrence.apply_recurrence_to_task(task.id, user_id)
        return task, successor

    def _normalize_data(self, data: dict) -> dict:
        normalized = dict(data)
        if "status" in normalized and isinstance(normalized["status"], TaskStatus):
            normalized["status"] = normalized["status"].value
        return normalized
