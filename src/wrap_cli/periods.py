"""Calendar periods used for aggregation: day, week (Monday start), month and year.

Each period is a small frozen value normalized from any reference date. They share
the ``Period`` protocol instead of a base class; the aggregation code only relies
on the protocol.
"""
from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

from dateutil.relativedelta import relativedelta

PERIOD_KINDS: tuple[str, ...] = ("day", "week", "month", "year")


class Period(Protocol):
    kind: str
    start: date

    @property
    def end(self) -> date: ...

    @classmethod
    def normalize(cls, ref: date) -> date: ...

    def previous_date(self) -> date: ...

    def next_date(self) -> date: ...

    def bucket_keys(self) -> list[date]: ...

    def chart_labels(self) -> list[str]: ...

    @property
    def label(self) -> str: ...

    @property
    def chart_title(self) -> str: ...


def _days_between(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


@dataclass(frozen=True)
class DayPeriod:
    start: date
    kind: str = "day"

    @classmethod
    def containing(cls, ref: date) -> DayPeriod:
        return cls(start=cls.normalize(ref))

    @classmethod
    def normalize(cls, ref: date) -> date:
        return ref

    @property
    def end(self) -> date:
        return self.start

    def previous_date(self) -> date:
        return self.start - timedelta(days=1)

    def next_date(self) -> date:
        return self.start + timedelta(days=1)

    def bucket_keys(self) -> list[date]:
        return [self.start]

    def chart_labels(self) -> list[str]:
        return [self.start.strftime("%a")]

    @property
    def label(self) -> str:
        return f"{self.start.strftime('%A, %B')} {self.start.day}, {self.start.year}"

    @property
    def chart_title(self) -> str:
        return "Hours Today"


@dataclass(frozen=True)
class WeekPeriod:
    start: date
    kind: str = "week"

    @classmethod
    def containing(cls, ref: date) -> WeekPeriod:
        return cls(start=cls.normalize(ref))

    @classmethod
    def normalize(cls, ref: date) -> date:
        return ref - timedelta(days=ref.weekday())

    @property
    def end(self) -> date:
        return self.start + timedelta(days=6)

    def previous_date(self) -> date:
        return self.start - timedelta(weeks=1)

    def next_date(self) -> date:
        return self.start + timedelta(weeks=1)

    def bucket_keys(self) -> list[date]:
        return _days_between(self.start, self.end)

    def chart_labels(self) -> list[str]:
        return [day.strftime("%a") for day in self.bucket_keys()]

    @property
    def label(self) -> str:
        return (
            f"{self.start.strftime('%b')} {self.start.day} - "
            f"{self.end.strftime('%b')} {self.end.day}, {self.end.year}"
        )

    @property
    def chart_title(self) -> str:
        return "Daily Hours"


@dataclass(frozen=True)
class MonthPeriod:
    start: date
    kind: str = "month"

    @classmethod
    def containing(cls, ref: date) -> MonthPeriod:
        return cls(start=cls.normalize(ref))

    @classmethod
    def normalize(cls, ref: date) -> date:
        return ref.replace(day=1)

    @property
    def end(self) -> date:
        return self.start.replace(day=monthrange(self.start.year, self.start.month)[1])

    def previous_date(self) -> date:
        return self.start - relativedelta(months=1)

    def next_date(self) -> date:
        return self.start + relativedelta(months=1)

    def bucket_keys(self) -> list[date]:
        return _days_between(self.start, self.end)

    def chart_labels(self) -> list[str]:
        return [str(day.day) for day in self.bucket_keys()]

    @property
    def label(self) -> str:
        return self.start.strftime("%B %Y")

    @property
    def chart_title(self) -> str:
        return "Daily Hours"


@dataclass(frozen=True)
class YearPeriod:
    start: date
    kind: str = "year"

    @classmethod
    def containing(cls, ref: date) -> YearPeriod:
        return cls(start=cls.normalize(ref))

    @classmethod
    def normalize(cls, ref: date) -> date:
        return date(ref.year, 1, 1)

    @property
    def end(self) -> date:
        return date(self.start.year, 12, 31)

    def previous_date(self) -> date:
        return self.start - relativedelta(years=1)

    def next_date(self) -> date:
        return self.start + relativedelta(years=1)

    def bucket_keys(self) -> list[date]:
        return [self.start + relativedelta(months=offset) for offset in range(12)]

    def chart_labels(self) -> list[str]:
        return [month.strftime("%b") for month in self.bucket_keys()]

    @property
    def label(self) -> str:
        return str(self.start.year)

    @property
    def chart_title(self) -> str:
        return "Monthly Hours"


_PERIOD_TYPES: dict[str, type] = {
    "day": DayPeriod,
    "week": WeekPeriod,
    "month": MonthPeriod,
    "year": YearPeriod,
}


def period_for(kind: str, ref: date) -> Period:
    normalized = kind.strip().lower()
    period_type = _PERIOD_TYPES.get(normalized)
    if period_type is None:
        raise ValueError(f"Invalid period: {kind}. Expected one of: {', '.join(PERIOD_KINDS)}.")
    return period_type.containing(ref)


def can_navigate_next(period: Period, today: date) -> bool:
    """Moving forward is allowed up to, and including, the period that contains today."""
    return period.normalize(period.next_date()) <= period.normalize(today)


def is_current(period: Period, today: date) -> bool:
    return period.start == period.normalize(today)
