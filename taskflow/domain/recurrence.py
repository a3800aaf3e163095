"""Occurrence arithmetic for recurrence rules.

Everything here is pure: functions read a rule and a reference timestamp and
return new timestamps. The time of day of the reference is carried over to
every computed occurrence.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator

from .entities import RecurrenceRuleEntity
from .enums import Frequency


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def _shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def add_months(base: datetime, months: int) -> datetime:
    year, month = _shift_month(base.year, base.month, months)
    day = min(base.day, days_in_month(year, month))
    return base.replace(year=year, month=month, day=day)


def resolve_month_day(year: int, month: int, value: int) -> int:
    """Map a month-day value onto a real day of ``year``/``month``.

    Positive values are clamped to the month length. Negative values count
    back from the last day (-1 is the last day) and never go below day 1.
    """
    last = days_in_month(year, month)
    if value < 0:
        return max(last + value + 1, 1)
    return min(max(value, 1), last)


def _next_weekly(current: datetime, rule: RecurrenceRuleEntity) -> datetime:
    stepped = current + timedelta(weeks=rule.interval)
    if not rule.by_weekday:
        return stepped

    wanted = {weekday.python_weekday for weekday in rule.by_weekday}

    # Remaining days of the current week come first.
    for offset in range(1, 7 - current.weekday()):
        candidate = current + timedelta(days=offset)
        if candidate.weekday() in wanted:
            return candidate

    week_start = stepped - timedelta(days=stepped.weekday())
    for offset in range(7):
        candidate = week_start + timedelta(days=offset)
        if candidate.weekday() in wanted:
            return candidate
    return stepped


def _next_monthly(current: datetime, rule: RecurrenceRuleEntity) -> datetime:
    if not rule.by_month_day:
        return add_months(current, rule.interval)

    # Only the first configured month day is used.
    month_day = rule.by_month_day[0]
    candidate = current.replace(day=resolve_month_day(current.year, current.month, month_day))
    if candidate > current:
        return candidate

    year, month = _shift_month(current.year, current.month, rule.interval)
    return current.replace(year=year, month=month, day=resolve_month_day(year, month, month_day))


def compute_next_occurrence(current: datetime, rule: RecurrenceRuleEntity) -> datetime:
    """Return the first occurrence of ``rule`` strictly after ``current``.

    Rules are expected to be validated already; an interval below 1 raises
    ``ValueError``.
    """
    interval = rule.interval
    if interval < 1:
        raise ValueError(f"Recurrence interval must be at least 1, got {interval!r}")

    if rule.frequency == Frequency.DAILY:
        return current + timedelta(days=interval)
    if rule.frequency == Frequency.WEEKLY:
        return _next_weekly(current, rule)
    if rule.frequency == Frequency.MONTHLY:
        return _next_monthly(current, rule)
    if rule.frequency == Frequency.YEARLY:
        return add_months(current, 12 * interval)
    raise ValueError(f"Unsupported frequency: {rule.frequency!r}")


def matches_rule_pattern(moment: datetime, rule: RecurrenceRuleEntity) -> bool:
    """True when ``moment`` lands on one of the rule's explicit weekdays or month days."""
    if rule.frequency == Frequency.WEEKLY and rule.by_weekday:
        return moment.weekday() in {weekday.python_weekday for weekday in rule.by_weekday}
    if rule.frequency == Frequency.MONTHLY and rule.by_month_day:
        return moment.day == resolve_month_day(moment.year, moment.month, rule.by_month_day[0])
    return False


def is_past_end(moment: datetime, rule: RecurrenceRuleEntity) -> bool:
    return rule.end_date is not None and moment.date() > rule.end_date.date()


def iter_occurrences(
    rule: RecurrenceRuleEntity,
    from_date: datetime,
    count: int,
    *,
    include_start: bool = True,
) -> Iterator[datetime]:
    """Lazily walk up to ``count`` occurrences of ``rule`` starting at ``from_date``.

    The walk stops early at the first occurrence whose calendar day is after
    ``rule.end_date``. With ``include_start`` a ``from_date`` that already sits
    on the rule's weekday or month-day pattern is the first occurrence;
    otherwise every yielded date is strictly after ``from_date``.
    """
    produced = 0
    current = from_date

    if include_start and count > 0 and matches_rule_pattern(from_date, rule):
        if is_past_end(from_date, rule):
            return
        yield from_date
        produced += 1

    while produced < count:
        current = compute_next_occurrence(current, rule)
        if is_past_end(current, rule):
            return
        yield current
        produced += 1
