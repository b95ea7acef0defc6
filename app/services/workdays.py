"""
Working-day policy.

A day is a working day unless it falls on a configured weekend weekday or,
when holiday exclusion is enabled, on an active non-optional public holiday.
Both the weekend set and the holiday source are pluggable.
"""
from datetime import date, timedelta
from typing import Iterable, Iterator, Optional, Protocol, Set

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.public_holiday import PublicHoliday


class HolidayCalendar(Protocol):
    def holidays_between(self, start: date, end: date) -> Set[date]:
        ...


class WeekendPolicy:
    def __init__(self, weekend_days: Optional[Iterable[int]] = None):
        days = settings.leave.weekend_days if weekend_days is None else weekend_days
        self.weekend_days = frozenset(days)

    def is_weekend(self, day: date) -> bool:
        return day.weekday() in self.weekend_days


class NoHolidayCalendar:
    def holidays_between(self, start: date, end: date) -> Set[date]:
        return set()


class StaticHolidayCalendar:
    def __init__(self, holidays: Iterable[date]):
        self._holidays = set(holidays)

    def holidays_between(self, start: date, end: date) -> Set[date]:
        return {d for d in self._holidays if start <= d <= end}


class DbHolidayCalendar:
    def __init__(self, db: Session):
        self.db = db

    def holidays_between(self, start: date, end: date) -> Set[date]:
        rows = self.db.query(PublicHoliday.date).filter(
            PublicHoliday.is_active.is_(True),
            PublicHoliday.is_optional.is_(False),
            PublicHoliday.date >= start,
            PublicHoliday.date <= end
        ).all()
        return {r[0] for r in rows}


def default_holiday_calendar(db: Session) -> HolidayCalendar:
    """Holiday source used for leave day counting, honouring LEAVE_EXCLUDE_PUBLIC_HOLIDAYS."""
    if settings.leave.exclude_public_holidays:
        return DbHolidayCalendar(db)
    return NoHolidayCalendar()


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def working_days(
    start: date,
    end: date,
    weekend_policy: WeekendPolicy,
    holiday_calendar: HolidayCalendar
) -> list:
    holidays = holiday_calendar.holidays_between(start, end)
    return [
        d for d in iter_days(start, end)
        if not weekend_policy.is_weekend(d) and d not in holidays
    ]


def count_working_days(
    start: date,
    end: date,
    weekend_policy: WeekendPolicy,
    holiday_calendar: HolidayCalendar
) -> int:
    return len(working_days(start, end, weekend_policy, holiday_calendar))
