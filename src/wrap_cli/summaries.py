from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlmodel import Session, select

from wrap_cli.models import COLOR_TOKENS, Habit, TimeBlock, User
from wrap_cli.periods import Period, can_navigate_next, is_current, period_for
from wrap_cli.streaks import StreakStats, streak_stats

INK_COLOR = "var(--ink-color)"


def habit_color(token: int) -> str:
    return f"var(--habit-color-{token})"


BAR_COLORS: tuple[str, ...] = tuple(habit_color(token) for token in COLOR_TOKENS)


@dataclass(frozen=True)
class LoggedBlock:
    """One time block joined with the habit fields aggregation needs."""

    block_id: int
    habit_id: int
    habit_name: str
    color_token: int
    habit_active: bool
    logged_on: date
    start_hour: float
    end_hour: float

    @property
    def hours(self) -> float:
        return self.end_hour - self.start_hour


@dataclass(frozen=True)
class HabitHours:
    habit_id: int
    name: str
    color_token: int
    hours: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "name": self.name,
            "color_token": self.color_token,
            "hours": self.hours,
        }


@dataclass(frozen=True)
class PeriodSummary:
    period: Period
    total_hours: float
    active_days_count: int
    daily_average: float
    hours_by_day: dict[date, float]
    hours_by_month: dict[str, float]
    hours_by_habit: tuple[HabitHours, ...]
    current_streak: int
    longest_streak: int
    can_navigate_next: bool
    is_current: bool = False

    @property
    def period_start(self) -> date:
        return self.period.start

    @property
    def period_end(self) -> date:
        return self.period.end

    @property
    def previous_period_date(self) -> date:
        return self.period.previous_date()

    @property
    def next_period_date(self) -> date:
        return self.period.next_date()

    @property
    def is_empty(self) -> bool:
        return self.total_hours == 0

    def chart_values(self) -> list[float]:
        """One value per fixed bucket; buckets without logged time are 0."""
        if self.period.kind == "year":
            return [
                round(self.hours_by_month.get(month.strftime("%Y-%m"), 0.0), 1)
                for month in self.period.bucket_keys()
            ]
        return [round(self.hours_by_day.get(day, 0.0), 1) for day in self.period.bucket_keys()]

    def chart_data(self) -> dict[str, Any]:
        labels = self.period.chart_labels()
        return {
            "labels": labels,
            "datasets": [
                {
                    "label": "Hours",
                    "data": self.chart_values(),
                    "backgroundColor": [BAR_COLORS[i % len(BAR_COLORS)] for i in range(len(labels))],
                    "borderColor": INK_COLOR,
                    "borderWidth": 2,
                }
            ],
        }

    def doughnut_chart_data(self) -> dict[str, Any]:
        return {
            "labels": [entry.name for entry in self.hours_by_habit],
            "datasets": [
                {
                    "data": [entry.hours for entry in self.hours_by_habit],
                    "backgroundColor": [habit_color(entry.color_token) for entry in self.hours_by_habit],
                    "borderColor": INK_COLOR,
                    "borderWidth": 2,
                }
            ],
        }


def summarize_period(
    blocks: list[LoggedBlock],
    period: Period,
    *,
    today: date,
    streaks: StreakStats | None = None,
) -> PeriodSummary:
    """Compute every derived field in one pass over the blocks inside the period."""
    in_range = [block for block in blocks if period.start <= block.logged_on <= period.end]

    total = 0.0
    by_day: dict[date, float] = {}
    by_month: dict[str, float] = {}
    by_habit: dict[int, list[Any]] = {}
    for block in in_range:
        hours = block.hours
        total += hours
        by_day[block.logged_on] = by_day.get(block.logged_on, 0.0) + hours
        month_key = block.logged_on.strftime("%Y-%m")
        by_month[month_key] = by_month.get(month_key, 0.0) + hours
        if block.habit_active:
            entry = by_habit.setdefault(block.habit_id, [block.habit_name, block.color_token, 0.0])
            entry[2] += hours

    habit_hours = [
        HabitHours(habit_id=habit_id, name=name, color_token=token, hours=round(hours, 1))
        for habit_id, (name, token, hours) in by_habit.items()
    ]
    habit_hours = sorted((entry for entry in habit_hours if entry.hours > 0), key=lambda e: -e.hours)

    total_hours = round(total, 1)
    active_days = len(by_day)
    daily_average = round(total_hours / active_days, 1) if active_days else 0.0
    streaks = streaks or StreakStats()

    return PeriodSummary(
        period=period,
        total_hours=total_hours,
        active_days_count=active_days,
        daily_average=daily_average,
        hours_by_day=by_day,
        hours_by_month=by_month,
        hours_by_habit=tuple(habit_hours),
        current_streak=streaks.current,
        longest_streak=streaks.longest,
        can_navigate_next=can_navigate_next(period, today),
        is_current=is_current(period, today),
    )


def load_logged_blocks(session: Session, user_id: int, start: date, end: date) -> list[LoggedBlock]:
    rows = session.exec(
        select(TimeBlock, Habit)
        .join(Habit, TimeBlock.habit_id == Habit.id)
        .where(Habit.user_id == user_id)
        .where(TimeBlock.logged_on >= start)
        .where(TimeBlock.logged_on <= end)
        .order_by(TimeBlock.logged_on, TimeBlock.start_hour, TimeBlock.id)
    ).all()
    return [
        LoggedBlock(
            block_id=block.id,
            habit_id=habit.id,
            habit_name=habit.name,
            color_token=habit.color_token,
            habit_active=bool(habit.active),
            logged_on=block.logged_on,
            start_hour=float(block.start_hour),
            end_hour=float(block.end_hour),
        )
        for block, habit in rows
    ]


def build_period_summary(
    session: Session,
    user: User,
    *,
    kind: str,
    today: date,
    ref: date | None = None,
) -> PeriodSummary:
    period = period_for(kind, ref or today)
    blocks = load_logged_blocks(session, user.id, period.start, period.end)
    return summarize_period(
        blocks,
        period,
        today=today,
        streaks=streak_stats(session, user.id, today),
    )


def summary_payload(summary: PeriodSummary) -> dict[str, Any]:
    """JSON-ready representation for the presentation boundary."""
    period = summary.period
    payload: dict[str, Any] = {
        "period": period.kind,
        "period_label": period.label,
        "period_start": summary.period_start.isoformat(),
        "period_end": summary.period_end.isoformat(),
        "total_hours": summary.total_hours,
        "daily_average": summary.daily_average,
        "active_days_count": summary.active_days_count,
        "hours_by_habit": [entry.as_dict() for entry in summary.hours_by_habit],
        "chart_title": period.chart_title,
        "chart_data": summary.chart_data(),
        "doughnut_chart_data": summary.doughnut_chart_data(),
        "current_streak": summary.current_streak,
        "longest_streak": summary.longest_streak,
        "previous_period_date": summary.previous_period_date.isoformat(),
        "next_period_date": summary.next_period_date.isoformat(),
        "can_navigate_next": summary.can_navigate_next,
        "is_current": summary.is_current,
        "empty": summary.is_empty,
    }
    if period.kind == "year":
        payload["hours_by_month"] = {key: round(value, 1) for key, value in sorted(summary.hours_by_month.items())}
    else:
        payload["hours_by_day"] = {
            day.isoformat(): round(value, 1) for day, value in sorted(summary.hours_by_day.items())
        }
    return payload
