from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date as Date
from datetime import datetime
from datetime import timedelta
from typing import Any

from habit_tracker.schemas.tasks import TaskKind

logger = logging.getLogger(__name__)

_FREEZE_MARKER = "frozen"
_ISO_DATE_LEN = 10
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class TaskRecord:
    name: str
    completed: bool
    day: Date
    kind: TaskKind = TaskKind.HABIT
    user_id: str | None = None


@dataclass
class DayAggregate:
    total: int = 0
    completed_count: int = 0
    frozen: bool = False

    @property
    def is_fully_completed(self) -> bool:
        return self.frozen or (self.total > 0 and self.completed_count == self.total)


def classify_task_name(name: str | None) -> TaskKind:
    if isinstance(name, str) and _FREEZE_MARKER in name.lower():
        return TaskKind.FREEZE
    return TaskKind.HABIT


def _coerce_date(value: Any) -> Date | None:
    # datetime is a subclass of date; check it first.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, Date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        prefix = raw[:_ISO_DATE_LEN]
        if not _ISO_DATE_RE.match(prefix):
            return None
        try:
            return Date.fromisoformat(prefix)
        except ValueError:
            return None
    return None


def _coerce_kind(row: dict[str, Any]) -> TaskKind:
    raw = row.get("kind")
    if isinstance(raw, str):
        try:
            return TaskKind(raw.strip().lower())
        except ValueError:
            pass
    return classify_task_name(row.get("name"))


def coerce_task_record(row: dict[str, Any]) -> TaskRecord | None:
    day = _coerce_date(row.get("date"))
    if day is None:
        logger.warning(
            "Skipping task %s with malformed date %r",
            row.get("id"),
            row.get("date"),
        )
        return None

    name = row.get("name")
    user_id = row.get("user_id")
    return TaskRecord(
        name=name if isinstance(name, str) else "",
        completed=row.get("completed") is True,
        day=day,
        kind=_coerce_kind(row),
        user_id=str(user_id) if user_id is not None else None,
    )


def extract_task_records(rows: list[dict[str, Any]] | None) -> list[TaskRecord]:
    if not rows:
        return []
    out: list[TaskRecord] = []
    for row in rows:
        record = coerce_task_record(row)
        if record is not None:
            out.append(record)
    return out


def group_by_day(records: Iterable[TaskRecord]) -> dict[Date, DayAggregate]:
    days: dict[Date, DayAggregate] = {}
    for record in records:
        agg = days.setdefault(record.day, DayAggregate())
        if record.kind is TaskKind.FREEZE:
            agg.frozen = True
            continue
        agg.total += 1
        if record.completed:
            agg.completed_count += 1
    return days


def compute_streak(*, records: Iterable[TaskRecord], today: Date) -> int:
    """Count consecutive fully completed days ending at ``today``.

    Today adds one when it is already complete but never ends the streak,
    since the day may still be in progress. Earlier days are walked backward
    until the first day that is neither frozen nor fully completed; a day
    with no tasks at all ends the walk.
    """
    days = group_by_day(records)
    empty = DayAggregate()

    streak = 1 if days.get(today, empty).is_fully_completed else 0

    cursor = today - timedelta(days=1)
    while days.get(cursor, empty).is_fully_completed:
        streak += 1
        cursor -= timedelta(days=1)

    return streak
