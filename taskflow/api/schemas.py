from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from taskflow.domain.entities import RecurrenceRuleEntity, RuleUpdate, TaskEntity
from taskflow.domain.enums import Frequency, PriorityLevel, TaskStatus, Weekday

MonthDay = Annotated[int, Field(ge=-31, le=31)]


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC, converting aware inputs first."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _check_month_days(days: Optional[list[int]]) -> Optional[list[int]]:
    if days and any(day == 0 for day in days):
        raise ValueError("byMonthDay values must be non-zero")
    return days


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RuleCreate(CamelModel):
    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    by_weekday: Optional[list[Weekday]] = None
    by_month_day: Optional[list[MonthDay]] = None
    end_date: Optional[datetime] = None

    check_month_days = field_validator("by_month_day")(_check_month_days)

    @field_validator("end_date")
    @classmethod
    def normalize_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    def to_data(self) -> dict:
        return {
            "frequency": self.frequency,
            "interval": self.interval,
            "by_weekday": self.by_weekday,
            "by_month_day": self.by_month_day,
            "end_date": self.end_date,
        }


class RuleUpdateIn(CamelModel):
    frequency: Optional[Frequency] = None
    interval: Optional[int] = Field(default=None, ge=1)
    by_weekday: Optional[list[Weekday]] = None
    by_month_day: Optional[list[MonthDay]] = None
    end_date: Optional[datetime] = None

    check_month_days = field_validator("by_month_day")(_check_month_days)

    @field_validator("end_date")
    @classmethod
    def normalize_end_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_required_not_null(self) -> "RuleUpdateIn":
        for name in ("frequency", "interval"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def to_update(self) -> RuleUpdate:
        values = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if isinstance(value, list):
                value = tuple(value)
            values[name] = value
        return RuleUpdate(**values)


class RuleOut(CamelModel):
    id: int
    frequency: Frequency
    interval: int
    by_weekday: list[Weekday]
    by_month_day: list[int]
    end_date: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_entity(cls, rule: RecurrenceRuleEntity) -> "RuleOut":
        return cls(
            id=rule.id,
            frequency=rule.frequency,
            interval=rule.interval,
            by_weekday=list(rule.by_weekday),
            by_month_day=list(rule.by_month_day),
            end_date=rule.end_date,
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )


class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    priority: PriorityLevel = PriorityLevel.MEDIUM
    due_date: Optional[datetime] = None
    category_id: Optional[int] = None
    recurrence_rule_id: Optional[int] = None
    tags: list[Annotated[str, Field(min_length=1, max_length=50)]] = Field(default_factory=list)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    def to_data(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "priority": int(self.priority),
            "due_date": self.due_date,
            "category_id": self.category_id,
            "recurrence_rule_id": self.recurrence_rule_id,
        }


class TagOut(CamelModel):
    id: int
    name: str


class TaskOut(CamelModel):
    id: int
    user_id: str
    category_id: Optional[int]
    title: str
    description: str
    status: TaskStatus
    priority: int
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    recurrence_rule_id: Optional[int]
    tags: list[TagOut]

    @classmethod
    def from_entity(cls, task: TaskEntity) -> "TaskOut":
        return cls(
            id=task.id,
            user_id=task.user_id,
            category_id=task.category_id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
            completed_at=task.completed_at,
            recurrence_rule_id=task.recurrence_rule_id,
            tags=[TagOut(id=tag.id, name=tag.name) for tag in task.tags],
        )
