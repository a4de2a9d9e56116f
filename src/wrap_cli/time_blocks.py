from __future__ import annotations

from datetime import date, datetime, timezone
import logging

from sqlmodel import Session, col, select

from wrap_cli.errors import NotFoundError, ValidationError
from wrap_cli.habits import find_or_create_habit, get_habit
from wrap_cli.models import Habit, TimeBlock, User
from wrap_cli.timeutil import format_hour

logger = logging.getLogger(__name__)

MIN_START_HOUR = 0.0
MAX_START_HOUR = 23.5
MIN_END_HOUR = 0.5
MAX_END_HOUR = 24.0

_UNSET = object()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_time_block(
    logged_on: date | None,
    start_hour: float | None,
    end_hour: float | None,
) -> dict[str, list[str]]:
    """Return every violation keyed by field; an empty dict means valid."""
    errors: dict[str, list[str]] = {}

    if logged_on is None:
        errors.setdefault("logged_on", []).append("can't be blank")

    if start_hour is None:
        errors.setdefault("start_hour", []).append("can't be blank")
    elif not MIN_START_HOUR <= start_hour <= MAX_START_HOUR:
        errors.setdefault("start_hour", []).append(
            f"must be between {MIN_START_HOUR:g} and {MAX_START_HOUR:g}"
        )

    if end_hour is None:
        errors.setdefault("end_hour", []).append("can't be blank")
    elif not MIN_END_HOUR <= end_hour <= MAX_END_HOUR:
        errors.setdefault("end_hour", []).append(
            f"must be between {MIN_END_HOUR:g} and {MAX_END_HOUR:g}"
        )

    if start_hour is not None and end_hour is not None and end_hour <= start_hour:
        errors.setdefault("end_hour", []).append("must be after start hour")

    return errors


def duration_hours(block: TimeBlock) -> float:
    if block.start_hour is None or block.end_hour is None:
        return 0.0
    return block.end_hour - block.start_hour


def duration_minutes(block: TimeBlock) -> int:
    return int(duration_hours(block) * 60)


def time_range_display(block: TimeBlock) -> str:
    return f"{format_hour(block.start_hour)} - {format_hour(block.end_hour)}"


def create_time_block(
    session: Session,
    user: User,
    *,
    habit_id: int,
    logged_on: date | None,
    start_hour: float | None,
    end_hour: float | None,
    notes: str | None = None,
) -> TimeBlock:
    habit = get_habit(session, user, habit_id)
    errors = validate_time_block(logged_on, start_hour, end_hour)
    if errors:
        raise ValidationError(errors)

    block = TimeBlock(
        habit_id=habit.id,
        logged_on=logged_on,
        start_hour=float(start_hour),
        end_hour=float(end_hour),
        notes=notes.strip() if notes and notes.strip() else None,
    )
    session.add(block)
    session.commit()
    session.refresh(block)
    logger.info(
        "time_block_created user_id=%s habit_id=%s block_id=%s logged_on=%s",
        user.id,
        habit.id,
        block.id,
        block.logged_on.isoformat(),
    )
    return block


def log_time(
    session: Session,
    user: User,
    *,
    habit_name: str,
    logged_on: date,
    start_hour: float,
    end_hour: float,
    notes: str | None = None,
) -> TimeBlock:
    """Log a block against a habit by name, creating the habit when it does not exist yet."""
    errors = validate_time_block(logged_on, start_hour, end_hour)
    if not habit_name.strip():
        errors.setdefault("habit", []).append("can't be blank")
    if errors:
        raise ValidationError(errors)

    habit = find_or_create_habit(session, user, habit_name)
    return create_time_block(
        session,
        user,
        habit_id=habit.id,
        logged_on=logged_on,
        start_hour=start_hour,
        end_hour=end_hour,
        notes=notes,
    )


def get_time_block(session: Session, user: User, block_id: int) -> TimeBlock:
    row = session.exec(
        select(TimeBlock)
        .join(Habit, TimeBlock.habit_id == Habit.id)
        .where(TimeBlock.id == block_id)
        .where(Habit.user_id == user.id)
    ).first()
    if row is None:
        raise NotFoundError(f"Time block {block_id} not found.")
    return row


def update_time_block(
    session: Session,
    user: User,
    block_id: int,
    *,
    habit_id: int | None = None,
    logged_on: date | None = None,
    start_hour: float | None = None,
    end_hour: float | None = None,
    notes: str | None | object = _UNSET,
) -> TimeBlock:
    """Change time range, habit or notes. Omitted fields keep their current value."""
    block = get_time_block(session, user, block_id)
    if habit_id is not None:
        block.habit_id = get_habit(session, user, habit_id).id

    new_logged_on = block.logged_on if logged_on is None else logged_on
    new_start = block.start_hour if start_hour is None else start_hour
    new_end = block.end_hour if end_hour is None else end_hour
    errors = validate_time_block(new_logged_on, new_start, new_end)
    if errors:
        session.rollback()
        raise ValidationError(errors)

    block.logged_on = new_logged_on
    block.start_hour = float(new_start)
    block.end_hour = float(new_end)
    if notes is not _UNSET:
        block.notes = notes.strip() if isinstance(notes, str) and notes.strip() else None
    block.updated_at = _now_iso()
    session.commit()
    session.refresh(block)
    return block


def delete_time_block(session: Session, user: User, block_id: int) -> None:
    block = get_time_block(session, user, block_id)
    session.delete(block)
    session.commit()


def list_blocks_for_date(session: Session, user: User, day: date) -> list[TimeBlock]:
    return list_blocks_in_range(session, user, day, day)


def list_blocks_in_range(session: Session, user: User, start: date, end: date) -> list[TimeBlock]:
    return list(
        session.exec(
            select(TimeBlock)
            .join(Habit, TimeBlock.habit_id == Habit.id)
            .where(Habit.user_id == user.id)
            .where(TimeBlock.logged_on >= start)
            .where(TimeBlock.logged_on <= end)
            .order_by(TimeBlock.logged_on, TimeBlock.start_hour, TimeBlock.id)
        ).all()
    )


def clear_day(session: Session, user: User, day: date) -> int:
    """Delete every block the user logged on the given date. Returns the number removed."""
    habit_ids = select(Habit.id).where(Habit.user_id == user.id)
    blocks = session.exec(
        select(TimeBlock)
        .where(col(TimeBlock.habit_id).in_(habit_ids))
        .where(TimeBlock.logged_on == day)
    ).all()
    for block in blocks:
        session.delete(block)
    session.commit()
    logger.info("day_cleared user_id=%s logged_on=%s removed=%s", user.id, day.isoformat(), len(blocks))
    return len(blocks)
