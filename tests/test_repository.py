from __future__ import annotations

from datetime import datetime

import pytest

from taskflow.domain.enums import Frequency, TaskStatus, Weekday
from taskflow.domain.errors import RuleInUseError
from taskflow.infra.models import CategoryModel

USER = "u-42"


def _task_data(**overrides) -> dict:
    data = {
        "user_id": USER,
        "title": "Pay rent",
        "description": "",
        "status": TaskStatus.NOT_STARTED.value,
        "priority": 3,
        "due_date": datetime(2024, 1, 31, 9, 0),
    }
    data.update(overrides)
    return data


def test_rule_round_trip(rule_repo) -> None:
    rule = rule_repo.create_rule(
        {
            "frequency": Frequency.WEEKLY,
            "interval": 2,
            "by_weekday": [Weekday.TU, Weekday.TH],
            "by_month_day": None,
            "end_date": datetime(2024, 6, 30),
        }
    )

    loaded = rule_repo.get_rule(rule.id)

    assert loaded.frequency == Frequency.WEEKLY
    assert loaded.interval == 2
    assert loaded.by_weekday == (Weekday.TU, Weekday.TH)
    assert loaded.by_month_day == ()
    assert loaded.end_date == datetime(2024, 6, 30)
    assert loaded.created_at is not None


def test_rule_update_clears_lists(rule_repo) -> None:
    rule = rule_repo.create_rule({"frequency": Frequency.MONTHLY, "by_month_day": [-1]})

    updated = rule_repo.update_rule(rule.id, {"by_month_day": None, "interval": 3})

    assert updated.by_month_day == ()
    assert updated.interval == 3
    assert rule_repo.update_rule(999, {"interval": 2}) is None


def test_tags_are_created_once_per_user(task_repo) -> None:
    first = task_repo.create_task(_task_data(), tag_names=["home", "bills", "home"])
    second = task_repo.create_task(_task_data(title="Pay water"), tag_names=["bills"])

    assert [tag.name for tag in first.tags] == ["home", "bills"]
    assert second.tags[0].id == first.tags[1].id


def test_get_task_is_scoped_to_user(task_repo) -> None:
    task = task_repo.create_task(_task_data())

    assert task_repo.get_task(task.id, USER).title == "Pay rent"
    assert task_repo.get_task(task.id, "intruder") is None


def test_delete_rule_blocked_while_referenced(rule_repo, task_repo) -> None:
    rule = rule_repo.create_rule({"frequency": Frequency.MONTHLY})
    task = task_repo.create_task(_task_data(recurrence_rule_id=rule.id))

    with pytest.raises(RuleInUseError) as excinfo:
        rule_repo.delete_rule(rule.id)
    assert excinfo.value.task_count == 1
    assert rule_repo.get_rule(rule.id) is not None

    assert task_repo.delete_task(task.id, USER) is True
    assert rule_repo.delete_rule(rule.id) is True
    assert rule_repo.get_rule(rule.id) is None
    assert rule_repo.delete_rule(rule.id) is False


def test_list_completed_recurring_filters(rule_repo, task_repo) -> None:
    rule = rule_repo.create_rule({"frequency": Frequency.DAILY})
    recent = task_repo.create_task(
        _task_data(status="done", completed_at=datetime(2024, 2, 1, 12, 0), recurrence_rule_id=rule.id)
    )
    task_repo.create_task(
        _task_data(status="done", completed_at=datetime(2024, 1, 1, 12, 0), recurrence_rule_id=rule.id)
    )
    task_repo.create_task(_task_data(status="done", completed_at=datetime(2024, 2, 1, 13, 0)))
    task_repo.create_task(_task_data(recurrence_rule_id=rule.id))

    found = task_repo.list_completed_recurring(since=datetime(2024, 1, 31, 12, 0))

    assert [task.id for task in found] == [recent.id]
    assert found[0].recurrence_rule.frequency == Frequency.DAILY


def test_apply_recurrence_copies_tags_in_database(rule_repo, task_repo, recurrence_service) -> None:
    rule = rule_repo.create_rule({"frequency": Frequency.MONTHLY, "by_month_day": [-1]})
    source = task_repo.create_task(
        _task_data(recurrence_rule_id=rule.id, status="done"),
        tag_names=["home", "bills"],
    )

    successor = recurrence_service.apply_recurrence_to_task(source.id, USER)

    assert successor.due_date == datetime(2024, 2, 29, 9, 0)
    assert successor.recurrence_rule_id == rule.id
    assert {tag.id for tag in successor.tags} == {tag.id for tag in source.tags}
    assert task_repo.get_task(source.id, USER).status == TaskStatus.DONE
    assert rule_repo.count_tasks_using(rule.id) == 2


def test_mark_done_end_to_end(rule_repo, task_service) -> None:
    rule = rule_repo.create_rule({"frequency": Frequency.YEARLY})
    task = task_service.create_task(
        USER, {"title": "Renew passport", "due_date": datetime(2023, 2, 28, 10, 0), "recurrence_rule_id": rule.id}
    )

    done, successor = task_service.mark_done(task.id, USER)

    assert done.status == TaskStatus.DONE
    assert done.completed_at is not None
    assert successor.due_date == datetime(2024, 2, 28, 10, 0)


def test_category_lookup_is_scoped_to_user(session_factory, task_repo) -> None:
    with session_factory() as session:
        category = CategoryModel(user_id=USER, name="Home")
        session.add(category)
        session.commit()
        category_id = category.id

    assert task_repo.category_exists(category_id, USER) is True
    assert task_repo.category_exists(category_id, "intruder") is False
    assert task_repo.category_exists(category_id + 1, USER) is False


def test_next_occurrence_skipped_when_schedule_declines(task_repo) -> None:
    source = task_repo.create_task(_task_data(), tag_names=["home"])
    seen = []

    def decline(task):
        seen.append(task.id)
        return None

    assert task_repo.create_next_occurrence(source.id, USER, decline) is None
    assert task_repo.create_next_occurrence(source.id, "intruder", decline) is None
    assert seen == [source.id]
    assert task_repo.get_task(source.id + 1, USER) is None


def test_next_occurrence_written_with_source_tags(task_repo) -> None:
    source = task_repo.create_task(_task_data(), tag_names=["home", "bills"])

    successor = task_repo.create_next_occurrence(source.id, USER, lambda task: datetime(2024, 2, 29, 9, 0))

    assert successor.id != source.id
    assert successor.status == TaskStatus.NOT_STARTED
    assert successor.due_date == datetime(2024, 2, 29, 9, 0)
    assert [tag.name for tag in successor.tags] == ["home", "bills"]
