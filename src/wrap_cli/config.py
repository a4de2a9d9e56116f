from __future__ import annotations

from dataclasses import dataclass
import json
import os
from typing import Any

from sqlmodel import Session, select

from wrap_cli.errors import NotFoundError, ValidationError
from wrap_cli.models import User
from wrap_cli.timeutil import effective_timezone_name, resolve_timezone
from wrap_cli.work_schedule import ALLOWED_KEYS as WORK_SCHEDULE_KEYS, WorkSchedule

DEFAULT_USER_EMAIL = "me@localhost"
MAX_NOTIFICATION_HOURS = 6

ALLOWED_SETTING_KEYS: set[str] = {"timezone", "notification_hours", *WORK_SCHEDULE_KEYS}


@dataclass(frozen=True)
class UserSettings:
    timezone_name: str
    notification_hours: tuple[int, ...]
    work_schedule: WorkSchedule


def parse_notification_hours(value: Any) -> tuple[int, ...]:
    """Accept a list or a comma-separated string; return sorted distinct hours.

    Raises ValidationError listing every problem found.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        raw_items: list[Any] = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        raw_items = list(value)
    else:
        raw_items = [value]

    messages: list[str] = []
    hours: set[int] = set()
    for item in raw_items:
        try:
            hour = int(item)
        except (TypeError, ValueError):
            messages.append(f"must be valid hours (0-23), got '{item}'")
            continue
        if isinstance(item, float) and item != hour:
            messages.append(f"must be whole hours, got '{item}'")
            continue
        if not 0 <= hour <= 23:
            messages.append(f"must be valid hours (0-23), got '{item}'")
            continue
        hours.add(hour)

    if len(hours) > MAX_NOTIFICATION_HOURS:
        messages.append(f"can have at most {MAX_NOTIFICATION_HOURS} notification times")
    if messages:
        raise ValidationError({"notification_hours": messages})
    return tuple(sorted(hours))


def validate_timezone(value: str | None) -> str | None:
    """Return the stripped name, or None for blank input (treated as UTC)."""
    if value is None or not value.strip():
        return None
    try:
        resolve_timezone(value)
    except ValueError as exc:
        raise ValidationError({"timezone": [str(exc)]}) from exc
    return value.strip()


def _decode_json(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


def load_notification_hours(user: User) -> tuple[int, ...]:
    try:
        return parse_notification_hours(_decode_json(user.notification_hours, []))
    except ValidationError:
        return ()


def load_work_schedule(user: User) -> WorkSchedule:
    data = _decode_json(user.work_schedule, {})
    if not isinstance(data, dict):
        return WorkSchedule()
    try:
        return WorkSchedule.from_dict(data)
    except ValueError:
        return WorkSchedule()


def load_user_settings(user: User) -> UserSettings:
    return UserSettings(
        timezone_name=effective_timezone_name(user.time_zone),
        notification_hours=load_notification_hours(user),
        work_schedule=load_work_schedule(user),
    )


def store_work_schedule(user: User, schedule: WorkSchedule) -> None:
    errors = schedule.errors()
    if errors:
        raise ValidationError({"base": errors})
    user.work_schedule = json.dumps(schedule.to_dict())


def store_notification_hours(user: User, value: Any) -> None:
    user.notification_hours = json.dumps(list(parse_notification_hours(value)))


# --- Users ---


def get_user_by_email(session: Session, email: str) -> User:
    user = session.exec(select(User).where(User.email == email.strip().lower())).first()
    if user is None:
        raise NotFoundError(f'User "{email.strip().lower()}" not found.')
    return user


def get_or_create_user(session: Session, email: str, *, time_zone: str | None = None) -> User:
    normalized = email.strip().lower()
    if not normalized or "@" not in normalized:
        raise ValidationError({"email": ["is invalid"]})

    existing = session.exec(select(User).where(User.email == normalized)).first()
    if existing is not None:
        return existing

    user = User(email=normalized, time_zone=validate_timezone(time_zone))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def resolve_acting_user_email(email: str | None = None) -> str:
    if email and email.strip():
        return email.strip().lower()
    return (os.getenv("WRAP_USER_EMAIL") or DEFAULT_USER_EMAIL).strip().lower()


# --- Settings ---


def list_user_settings(user: User) -> dict[str, str]:
    settings = load_user_settings(user)
    schedule = settings.work_schedule
    return {
        "notification_hours": ",".join(str(h) for h in settings.notification_hours),
        "timezone": settings.timezone_name,
        "work_days": ",".join(str(d) for d in schedule.work_days),
        "work_end_hour": str(schedule.end_hour),
        "work_hours_enabled": "true" if schedule.enabled else "false",
        "work_start_hour": str(schedule.start_hour),
    }


def update_user_setting(session: Session, user: User, key: str, value: str) -> User:
    if key not in ALLOWED_SETTING_KEYS:
        allowed = ", ".join(sorted(ALLOWED_SETTING_KEYS))
        raise ValueError(f"Unknown setting key: {key}. Allowed keys: {allowed}.")

    if key == "timezone":
        user.time_zone = validate_timezone(value)
    elif key == "notification_hours":
        store_notification_hours(user, value)
    else:
        try:
            schedule = load_work_schedule(user).with_value(key, value)
        except (TypeError, ValueError) as exc:
            raise ValidationError({key: [f"is invalid: {value!r}"]}) from exc
        store_work_schedule(user, schedule)

    session.add(user)
    session.commit()
    session.refresh(user)
    return user
