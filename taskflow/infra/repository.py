from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from taskflow.domain.entities import RecurrenceRuleEntity, TagEntity, TaskEntity
from taskflow.domain.enums import Frequency, TaskStatus, Weekday
from taskflow.domain.errors import RuleInUseError

from .models import CategoryModel, RecurrenceRuleModel, TagModel, TaskModel

STATUS_DONE = TaskStatus.DONE.value


def _weekdays_from_column(raw: list | None) -> tuple[Weekday, ...]:
    if not raw:
        return ()
    return tuple(Weekday(code) for code in raw if code in Weekday.__members__)


def _rule_to_entity(model: RecurrenceRuleModel) -> RecurrenceRuleEntity:
    return RecurrenceRuleEntity(
        id=model.id,
        frequency=Frequency(model.frequency),
        interval=model.interval,
        by_weekday=_weekdays_from_column(model.by_weekday),
        by_month_day=tuple(model.by_month_day or ()),
        end_date=model.end_date,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        user_id=model.user_id,
        category_id=model.category_id,
        title=model.title,
        description=model.description,
        status=TaskStatus(model.status),
        priority=model.priority,
        due_date=model.due_date,
        created_at=model.created_at,
        updated_at=model.updated_at,
        completed_at=model.completed_at,
        recurrence_rule_id=model.recurrence_rule_id,
        recurrence_rule=_rule_to_entity(model.recurrence_rule) if model.recurrence_rule else None,
        tags=tuple(TagEntity(id=tag.id, name=tag.name) for tag in model.tags),
    )


def _rule_columns(data: dict) -> dict:
    columns = dict(data)
    if "frequency" in columns and columns["frequency"] is not None:
        columns["frequency"] = Frequency(columns["frequency"]).value
    if "by_weekday" in columns:
        columns["by_weekday"] = [Weekday(code).value for code in columns["by_weekday"] or ()] or None
    if "by_month_day" in columns:
        columns["by_month_day"] = [int(day) for day in columns["by_month_day"] or ()] or None
    return columns


class RecurrenceRuleRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get_rule(self, rule_id: int) -> Optional[RecurrenceRuleEntity]:
        with self._session_factory() as session:
            rule = session.get(RecurrenceRuleModel, rule_id)
            return _rule_to_entity(rule) if rule else None

    def create_rule(self, data: dict) -> RecurrenceRuleEntity:
        with self._session_factory() as session:
            rule = RecurrenceRuleModel(**_rule_columns(data))
            session.add(rule)
            session.commit()
            session.refresh(rule)
            return _rule_to_entity(rule)

    def update_rule(self, rule_id: int, changes: dict) -> Optional[RecurrenceRuleEntity]:
        with self._session_factory() as session:
            rule = session.get(RecurrenceRuleModel, rule_id)
            if not rule:
                return None
            for key, value in _rule_columns(changes).items():
                setattr(rule, key, value)
            session.commit()
            session.refresh(rule)
            return _rule_to_entity(rule)

    def delete_rule(self, rule_id: int) -> bool:
        with self._session_factory() as session:
            rule = session.get(RecurrenceRuleModel, rule_id)
            if not rule:
                return False
            in_use = self._count_tasks_using(session, rule_id)
            if in_use:
                raise RuleInUseError(rule_id, in_use)
            session.delete(rule)
            session.commit()
            return True

    def count_tasks_using(self, rule_id: int) -> int:
        with self._session_factory() as session:
            return self._count_tasks_using(session, rule_id)

    @staticmethod
    def _count_tasks_using(session: Session, rule_id: int) -> int:
        return session.scalar(
            select(func.count()).select_from(TaskModel).where(TaskModel.recurrence_rule_id == rule_id)
        ) or 0


class TaskRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get_task(self, task_id: int, user_id: str) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.scalar(
                select(TaskModel).where(TaskModel.id == task_id, TaskModel.user_id == user_id)
            )
            return _to_entity(task) if task else None

    def category_exists(self, category_id: int, user_id: str) -> bool:
        with self._session_factory() as session:
            found = session.scalar(
                select(CategoryModel.id).where(CategoryModel.id == category_id, CategoryModel.user_id == user_id)
            )
            return found is not None

    def create_task(self, data: dict, tag_names: Iterable[str] = ()) -> TaskEntity:
        """Insert a task and its tag associations in a single transaction."""
        with self._session_factory() as session:
            task = TaskModel(**data)
            task.tags = self._get_or_create_tags(session, data["user_id"], tag_names)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def create_next_occurrence(
        self,
        task_id: int,
        user_id: str,
        schedule: Callable[[TaskEntity], Optional[datetime]],
    ) -> Optional[TaskEntity]:
        """Load a task and insert its successor within one transaction.

        ``schedule`` receives the loaded task and returns the successor's due
        date, or ``None`` when no successor should be written.
        """
        with self._session_factory() as session:
            source = session.scalar(
                select(TaskModel).where(TaskModel.id == task_id, TaskModel.user_id == user_id)
            )
            if not source:
                return None
            due_date = schedule(_to_entity(source))
            if due_date is None:
                return None

            successor = TaskModel(
                user_id=source.user_id,
                category_id=source.category_id,
                title=source.title,
                description=source.description,
                status=TaskStatus.NOT_STARTED.value,
                priority=source.priority,
                due_date=due_date,
                completed_at=None,
                recurrence_rule_id=source.recurrence_rule_id,
            )
            successor.tags = list(source.tags)
            session.add(successor)
            session.commit()
            session.refresh(successor)
            return _to_entity(successor)

    def update_task(self, task_id: int, user_id: str, data: dict) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.scalar(
                select(TaskModel).where(TaskModel.id == task_id, TaskModel.user_id == user_id)
            )
            if not task:
                return None
            for key, value in data.items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def delete_task(self, task_id: int, user_id: str) -> bool:
        with self._session_factory() as session:
            task = session.scalar(
                select(TaskModel).where(TaskModel.id == task_id, TaskModel.user_id == user_id)
            )
            if not task:
                return False
            session.delete(task)
            session.commit()
            return True

    def list_completed_recurring(self, since: datetime) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = (
                select(TaskModel)
                .where(
                    TaskModel.status == STATUS_DONE,
                    TaskModel.recurrence_rule_id.is_not(None),
                    TaskModel.completed_at.is_not(None),
                    TaskModel.completed_at >= since,
                )
                .order_by(TaskModel.completed_at.asc())
            )
            return [_to_entity(task) for task in session.scalars(stmt).unique()]

    @staticmethod
    def _get_or_create_tags(session: Session, user_id: str, names: Iterable[str]) -> list[TagModel]:
        wanted = []
        for name in names:
            cleaned = name.strip()
            if cleaned and cleaned not in wanted:
                wanted.append(cleaned)
        if not wanted:
            return []

        existing = {
            tag.name: tag
            for tag in session.scalars(
                select(TagModel).where(TagModel.user_id == user_id, TagModel.name.in_(wanted))
            )
        }
        tags = []
        for name in wanted:
            tag = existing.get(name)
            if tag is None:
                tag = TagModel(user_id=user_id, name=name)
                session.add(tag)
            tags.append(tag)
        session.flush()
        return tags
