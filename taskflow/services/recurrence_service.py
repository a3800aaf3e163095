from __future__ import annotations

import logging
from datetime import datetime

from taskflow.domain.entities import RecurrenceRuleEntity, RuleUpdate, TaskEntity
from taskflow.domain.errors import NotFoundError
from taskflow.domain.recurrence import iter_occurrences
from taskflow.infra.repository import RecurrenceRuleRepository, TaskRepository

logger = logging.getLogger(__name__)


class RecurrenceService:
    def __init__(self, rules: RecurrenceRuleRepository, tasks: TaskRepository) -> None:
        self._rules = rules
        self._tasks = tasks

    def create_rule(self, data: dict) -> RecurrenceRuleEntity:
        rule = self._rules.create_rule(data)
        logger.info("Created recurrence rule %s (%s every %s)", rule.id, rule.frequency, rule.interval)
        return rule

    def get_rule(self, rule_id: int) -> RecurrenceRuleEntity:
        rule = self._rules.get_rule(rule_id)
        if rule is None:
            raise NotFoundError("Recurrence rule", rule_id)
        return rule

    def update_rule(self, rule_id: int, update: RuleUpdate) -> RecurrenceRuleEntity:
        changes = update.changes()
        if not changes:
            return self.get_rule(rule_id)
        rule = self._rules.update_rule(rule_id, changes)
        if rule is None:
            raise NotFoundError("Recurrence rule", rule_id)
        return rule

    def delete_rule(self, rule_id: int) -> None:
        if not self._rules.delete_rule(rule_id):
            raise NotFoundError("Recurrence rule", rule_id)
        logger.info("Deleted recurrence rule %s", rule_id)

    def generate_occurrences(
        self,
        rule_id: int,
        from_date: datetime,
        count: int = 10,
        *,
        include_start: bool = True,
    ) -> list[datetime]:
        rule = self.get_rule(rule_id)
        return list(iter_occurrences(rule, from_date, count, include_start=include_start))

    def apply_recurrence_to_task(self, task_id: int, user_id: str) -> TaskEntity | None:
        """Create the next instance of a recurring task.

        Returns ``None`` when the task does not exist for ``user_id``, has no
        recurrence rule, or the rule's end date leaves no further occurrence.
        Each call creates a new successor; callers decide how often to call.
        """
        successor = self._tasks.create_next_occurrence(task_id, user_id, self._next_due_date)
        if successor is not None:
            logger.info(
                "Created task %s as next occurrence of task %s due %s", successor.id, task_id, successor.due_date
            )
        return successor

    @staticmethod
    def _next_due_date(task: TaskEntity) -> datetime | None:
        rule = task.recurrence_rule
        if rule is None:
            return None

        reference = task.due_date or task.created_at
        next_due = next(iter_occurrences(rule, reference, 1, include_start=False), None)
        if next_due is None:
            logger.info("Recurrence for task %s is exhausted (end date %s)", task.id, rule.end_date)
        return next_due
