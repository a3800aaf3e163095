from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Optional

from .enums import Frequency, TaskStatus, Weekday


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class RecurrenceRuleEntity:
    id: int | None
    frequency: Frequency
    interval: int = 1
    by_weekday: tuple[Weekday, ...] = ()
    by_month_day: tuple[int, ...] = ()
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class RuleUpdate:
    """Partial update of a recurrence rule.

    Every field starts out as ``UNSET``; only fields that were given a value
    are written. ``None`` clears the optional columns (weekdays, month days,
    end date).
    """

    frequency: Frequency = UNSET
    interval: int = UNSET
    by_weekday: tuple[Weekday, ...] | None = UNSET
    by_month_day: tuple[int, ...] | None = UNSET
    end_date: Optional[datetime] = UNSET

    def changes(self) -> dict[str, Any]:
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not UNSET
        }


@dataclass(frozen=True)
class TagEntity:
    id: int
    name: str


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    user_id: str
    title: str
    description: str
    status: TaskStatus
    priority: int
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    category_id: int | None = None
    recurrence_rule_id: int | None = None
    recurrence_rule: RecurrenceRuleEntity | None = None
    tags: tuple[TagEntity, ...] = field(default_factory=tuple)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule_id is not None
