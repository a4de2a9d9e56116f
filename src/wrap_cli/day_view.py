from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlmodel import Session, col, select

from wrap_cli.config import load_work_schedule
from wrap_cli.habits import list_habits
from wrap_cli.models import Habit, TimeBlock, User
from wrap_cli.periods import DayPeriod, can_navigate_next
from wrap_cli.streaks import StreakStats, streak_stats
from wrap_cli.time_blocks import duration_hours, time_range_display
from wrap_cli.work_schedule import WorkSchedule

TIMELINE_START_HOUR = 6
TIMELINE_END_HOUR = 24


@dataclass(frozen=True)
class TimeSection:
    start_hour: int
    end_hour: int  # exclusive
    name: str
    background: str

    @property
    def hours(self) -> range:
        return range(self.start_hour, self.end_hour)


TIME_SECTIONS: tuple[TimeSection, ...] = (
    TimeSection(6, 12, "Your Morning", "bg-morning"),
    TimeSection(12, 18, "Your Afternoon", "bg-afternoon"),
    TimeSection(18, 24, "Your Evening", "bg-evening"),
)
DEFAULT_BACKGROUND = "bg-white"


@dataclass(frozen=True)
class WorkOverlay:
    """Part of a section covered by work hours, in hours from the section start."""

    offset: float
    length: float


@dataclass(frozen=True)
class ActivityEntry:
    habit: Habit
    hours: float


@dataclass(frozen=True)
class DaySummary:
    day: date
    habits: tuple[Habit, ...]
    time_blocks: tuple[TimeBlock, ...]
    total_hours: float
    activity_breakdown: tuple[ActivityEntry, ...]
    work_schedule: WorkSchedule
    streaks: StreakStats
    can_navigate_next: bool
    tag_filter: str | None = None

    @property
    def period(self) -> DayPeriod:
        return DayPeriod.containing(self.day)

    @property
    def is_empty(self) -> bool:
        return not self.time_blocks

    @property
    def total_day_hours(self) -> int:
        return TIMELINE_END_HOUR - TIMELINE_START_HOUR

    @property
    def work_hours_visible(self) -> bool:
        return self.work_schedule.is_work_day(self.day)

    def time_blocks_for_hour(self, hour: int) -> list[TimeBlock]:
        return [block for block in self.time_blocks if int(block.start_hour) == hour]

    def is_work_hour(self, hour: float) -> bool:
        return self.work_hours_visible and self.work_schedule.is_work_hour(hour)

    def work_overlay(self, section: TimeSection) -> WorkOverlay | None:
        if not self.work_hours_visible:
            return None
        overlap_start = max(float(section.start_hour), self.work_schedule.start_hour)
        overlap_end = min(float(section.end_hour), self.work_schedule.end_hour)
        if overlap_end <= overlap_start:
            return None
        return WorkOverlay(offset=overlap_start - section.start_hour, length=overlap_end - overlap_start)


def section_for_hour(hour: float) -> TimeSection | None:
    """Section whose band contains the hour; None outside 6am-midnight."""
    for section in TIME_SECTIONS:
        if section.start_hour <= hour < section.end_hour:
            return section
    return None


def section_background_for_hour(hour: float) -> str:
    section = section_for_hour(hour)
    return section.background if section is not None else DEFAULT_BACKGROUND


def summarize_day(
    day: date,
    habits: list[Habit],
    blocks: list[TimeBlock],
    *,
    work_schedule: WorkSchedule,
    today: date,
    streaks: StreakStats | None = None,
    tag_filter: str | None = None,
) -> DaySummary:
    habit_ids = {habit.id for habit in habits}
    day_blocks = sorted(
        (block for block in blocks if block.logged_on == day and block.habit_id in habit_ids),
        key=lambda block: (block.start_hour, block.id or 0),
    )

    habits_by_id = {habit.id: habit for habit in habits}
    hours_by_habit: dict[int, float] = {}
    for block in day_blocks:
        hours_by_habit[block.habit_id] = hours_by_habit.get(block.habit_id, 0.0) + duration_hours(block)
    breakdown = sorted(
        (ActivityEntry(habit=habits_by_id[habit_id], hours=hours) for habit_id, hours in hours_by_habit.items()),
        key=lambda entry: -entry.hours,
    )

    return DaySummary(
        day=day,
        habits=tuple(habits),
        time_blocks=tuple(day_blocks),
        total_hours=round(sum(duration_hours(block) for block in day_blocks), 1),
        activity_breakdown=tuple(breakdown),
        work_schedule=work_schedule,
        streaks=streaks or StreakStats(),
        can_navigate_next=can_navigate_next(DayPeriod.containing(day), today),
        tag_filter=tag_filter,
    )


def build_day_summary(
    session: Session,
    user: User,
    *,
    day: date,
    today: date,
    tag: str | None = None,
) -> DaySummary:
    habits = list_habits(session, user, tag=tag)
    blocks: list[TimeBlock] = []
    if habits:
        blocks = list(
            session.exec(
                select(TimeBlock)
                .where(col(TimeBlock.habit_id).in_([habit.id for habit in habits]))
                .where(TimeBlock.logged_on == day)
                .order_by(TimeBlock.start_hour, TimeBlock.id)
            ).all()
        )
    return summarize_day(
        day,
        habits,
        blocks,
        work_schedule=load_work_schedule(user),
        today=today,
        streaks=streak_stats(session, user.id, today),
        tag_filter=tag,
    )


def day_payload(summary: DaySummary) -> dict[str, Any]:
    sections = []
    for section in TIME_SECTIONS:
        overlay = summary.work_overlay(section)
        sections.append(
            {
                "name": section.name,
                "start_hour": section.start_hour,
                "end_hour": section.end_hour,
                "background": section.background,
                "work_overlay": (
                    {"offset": overlay.offset, "length": overlay.length} if overlay is not None else None
                ),
                "time_block_ids": [
                    block.id for block in summary.time_blocks if section_for_hour(block.start_hour) == section
                ],
            }
        )

    period = summary.period
    return {
        "date": summary.day.isoformat(),
        "tag": summary.tag_filter,
        "total_hours": summary.total_hours,
        "empty": summary.is_empty,
        "activity_breakdown": [
            {
                "habit_id": entry.habit.id,
                "name": entry.habit.name,
                "color_token": entry.habit.color_token,
                "hours": entry.hours,
            }
            for entry in summary.activity_breakdown
        ],
        "time_blocks": [
            {
                "id": block.id,
                "habit_id": block.habit_id,
                "start_hour": block.start_hour,
                "end_hour": block.end_hour,
                "duration_hours": duration_hours(block),
                "time_range": time_range_display(block),
                "notes": block.notes,
            }
            for block in summary.time_blocks
        ],
        "sections": sections,
        "current_streak": summary.streaks.current,
        "longest_streak": summary.streaks.longest,
        "previous_period_date": period.previous_date().isoformat(),
        "next_period_date": period.next_date().isoformat(),
        "can_navigate_next": summary.can_navigate_next,
    }
