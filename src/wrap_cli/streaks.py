from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta

from sqlmodel import Session, select

from wrap_cli.models import Habit, TimeBlock

LOOKBACK_DAYS = 365
MAX_CURRENT_STREAK = LOOKBACK_DAYS + 1


@dataclass(frozen=True)
class StreakStats:
    current: int = 0
    longest: int = 0


def current_streak(dates: Iterable[date], today: date) -> int:
    """Consecutive logged days ending today, or yesterday when today has no log yet."""
    logged = set(dates)
    if not logged:
        return 0

    start = today if today in logged else today - timedelta(days=1)
    if start not in logged:
        return 0

    streak = 0
    cursor = start
    while cursor in logged:
        streak += 1
        if streak >= MAX_CURRENT_STREAK:
            break
        cursor -= timedelta(days=1)
    return streak


def longest_streak(dates: Iterable[date]) -> int:
    ordered = sorted(set(dates))
    if not ordered:
        return 0

    longest = 1
    run = 1
    for previous, current in zip(ordered, ordered[1:]):
        if current == previous + timedelta(days=1):
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return longest


def load_logged_dates(session: Session, user_id: int, today: date) -> set[date]:
    """Distinct dates in the trailing year with at least one block for the user's habits."""
    rows = session.exec(
        select(TimeBlock.logged_on)
        .join(Habit, TimeBlock.habit_id == Habit.id)
        .where(Habit.user_id == user_id)
        .where(TimeBlock.logged_on >= today - timedelta(days=LOOKBACK_DAYS))
        .where(TimeBlock.logged_on <= today)
        .distinct()
    ).all()
    return set(rows)


def streak_stats(session: Session, user_id: int, today: date) -> StreakStats:
    dates = load_logged_dates(session, user_id, today)
    return StreakStats(current=current_streak(dates, today), longest=longest_streak(dates))
