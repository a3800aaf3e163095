from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


task_tags = Table(
    "task_tags",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class RecurrenceRuleModel(Base):
    __tablename__ = "recurrence_rules"

    id = Column(Integer, primary_key=True)
    frequency = Column(String(10), nullable=False)
    interval = Column(Integer, nullable=False, default=1)
    by_weekday = Column(JSON, nullable=True)
    by_month_day = Column(JSON, nullable=True)
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class CategoryModel(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TagModel(Base):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_tags_user_name"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TaskModel(Base):
    __tablename__ = "tasks"
    __table_args__ = (Index("ix_tasks_status_completed_at", "status", "completed_at"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="not_started", index=True)
    priority = Column(Integer, nullable=False, default=2)
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)
    recurrence_rule_id = Column(
        Integer,
        ForeignKey("recurrence_rules.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    recurrence_rule = relationship(RecurrenceRuleModel, lazy="joined")
    tags = relationship(TagModel, secondary=task_tags, lazy="selectin", order_by=TagModel.id)
