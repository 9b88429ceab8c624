from __future__ import annotations

from datetime import date as Date
from datetime import datetime
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import Depends

from habit_tracker.core.config import settings


def today_in(tz_name: str, *, now: datetime | None = None) -> Date:
    tz = ZoneInfo(tz_name)
    current = now.astimezone(tz) if now is not None else datetime.now(tz)
    return current.date()


def get_today() -> Date:
    return today_in(settings.app_timezone)


TodayDep = Annotated[Date, Depends(get_today)]
