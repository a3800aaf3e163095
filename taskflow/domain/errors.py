from __future__ import annotations


class TaskflowError(Exception):
    """Base class for domain errors surfaced to API clients."""


class NotFoundError(TaskflowError):
    def __init__(self, resource: str, resource_id: object) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(TaskflowError):
    pass


class RuleInUseError(ConflictError):
    def __init__(self, rule_id: int, task_count: int) -> None:
        super().__init__("Cannot delete recurrence rule that is in use")
        self.rule_id = rule_id
        self.task_count = task_count
