from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from taskflow.domain.entities import RecurrenceRuleEntity, TagEntity, TaskEntity
from taskflow.domain.enums import Frequency, TaskStatus, Weekday
from taskflow.domain.errors import RuleInUseError


class FakeRuleRepo:
    def __init__(self) -> None:
        self.rules: dict[int, RecurrenceRuleEntity] = {}
        self.in_use: set[int] = set()
        self._id = 1

    def get_rule(self, rule_id: int) -> RecurrenceRuleEntity | None:
        return self.rules.get(rule_id)

    def create_rule(self, data: dict) -> RecurrenceRuleEntity:
        rule = RecurrenceRuleEntity(
            id=self._id,
            frequency=Frequency(data["frequency"]),
            interval=data.get("interval", 1),
            by_weekday=tuple(Weekday(code) for code in data.get("by_weekday") or ()),
            by_month_day=tuple(data.get("by_month_day") or ()),
            end_date=data.get("end_date"),
        )
        self.rules[rule.id] = rule
        self._id += 1
        return rule

    def update_rule(self, rule_id: int, changes: dict) -> RecurrenceRuleEntity | None:
        rule = self.rules.get(rule_id)
        if rule is None:
            return None
        values = dict(changes)
        for key in ("by_weekday", "by_month_day"):
            if key in values:
                values[key] = tuple(values[key] or ())
        updated = replace(rule, **values)
        self.rules[rule_id] = updated
        return updated

    def delete_rule(self, rule_id: int) -> bool:
        if rule_id not in self.rules:
            return False
        if rule_id in self.in_use:
            raise RuleInUseError(rule_id, 1)
        del self.rules[rule_id]
        return True


class FakeTaskRepo:
    def __init__(self, rules: FakeRuleRepo) -> None:
        self.rules = rules
        self.tasks: list[TaskEntity] = []
        self.created: list[dict] = []
        self.tags: dict[int, TagEntity] = {}
        self.categories: dict[int, str] = {}
        self._id = 1

    def add_tag(self, name: str) -> TagEntity:
        tag = TagEntity(id=len(self.tags) + 1, name=name)
        self.tags[tag.id] = tag
        return tag

    def get_task(self, task_id: int, user_id: str) -> TaskEntity | None:
        task = next((t for t in self.tasks if t.id == task_id and t.user_id == user_id), None)
        if task and task.recurrence_rule_id is not None:
            task = replace(task, recurrence_rule=self.rules.get_rule(task.recurrence_rule_id))
        return task

    def create_task(self, data: dict, tag_ids=(), tag_names=()) -> TaskEntity:
        self.created.append(dict(data))
        tags = [self.tags[tag_id] for tag_id in tag_ids]
        tags.extend(self.add_tag(name) for name in tag_names)
        now = datetime(2024, 1, 1, 8, 0)
        task = TaskEntity(
            id=self._id,
            user_id=data["user_id"],
            category_id=data.get("category_id"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            status=TaskStatus(data.get("status", "not_started")),
            priority=data.get("priority", 2),
            due_date=data.get("due_date"),
            created_at=data.get("created_at", now),
            updated_at=now,
            completed_at=data.get("completed_at"),
            recurrence_rule_id=data.get("recurrence_rule_id"),
            tags=tuple(tags),
        )
        self.tasks.append(task)
        self._id += 1
        return task

    def category_exists(self, category_id: int, user_id: str) -> bool:
        return self.categories.get(category_id) == user_id

    def create_next_occurrence(self, task_id: int, user_id: str, schedule) -> TaskEntity | None:
        source = self.get_task(task_id, user_id)
        if source is None:
            return None
        due_date = schedule(source)
        if due_date is None:
            return None
        return self.create_task(
            {
                "user_id": source.user_id,
                "category_id": source.category_id,
                "title": source.title,
                "description": source.description,
                "status": TaskStatus.NOT_STARTED.value,
                "priority": source.priority,
                "due_date": due_date,
                "completed_at": None,
                "recurrence_rule_id": source.recurrence_rule_id,
            },
            tag_ids=[tag.id for tag in source.tags],
        )

    def update_task(self, task_id: int, user_id: str, data: dict) -> TaskEntity | None:
        task = self.get_task(task_id, user_id)
        if not task:
            return None
        updated = replace(
            task,
            status=TaskStatus(data.get("status", task.status.value)),
            completed_at=data.get("completed_at", task.completed_at),
        )
        self.tasks = [updated if t.id == task_id else t for t in self.tasks]
        return updated

    def delete_task(self, task_id: int, user_id: str) -> bool:
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if not (t.id == task_id and t.user_id == user_id)]
        return len(self.tasks) != before

    def list_completed_recurring(self, since: datetime) -> list[TaskEntity]:
        return [
            task
            for task in self.tasks
            if task.status == TaskStatus.DONE
            and task.recurrence_rule_id is not None
            and task.completed_at is not None
            and task.completed_at >= since
        ]
