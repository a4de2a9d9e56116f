"""Hourly reminder scheduling.

Each run buckets timezones by their current local hour, picks the users whose
configured reminder hour matches, and skips anyone who already logged time in
the current reminder block (from the previous configured hour up to now).
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
import logging
from zoneinfo import available_timezones

from sqlmodel import Session, col, select

from wrap_cli.config import load_notification_hours
from wrap_cli.errors import DeliveryError, PermanentDeliveryError
from wrap_cli.models import Habit, PushSubscription, TimeBlock, User
from wrap_cli.push import PushPayload, PushTransport, list_subscriptions
from wrap_cli.timeutil import DEFAULT_TIMEZONE, effective_timezone_name, local_now

logger = logging.getLogger(__name__)

REMINDER_PAYLOAD = PushPayload(title="Habit Reminder", body="Time to log your habits!", path="/")


@dataclass(frozen=True)
class ReminderBlock:
    """Half-open hour interval [start_hour, end_hour)."""

    start_hour: int
    end_hour: int

    def overlaps(self, start_hour: float, end_hour: float) -> bool:
        return end_hour > self.start_hour and start_hour < self.end_hour


@dataclass(frozen=True)
class DueReminder:
    user: User
    hour: int
    local_date: date
    block: ReminderBlock


@dataclass
class ReminderRunResult:
    users_considered: int = 0
    users_notified: int = 0
    users_suppressed: int = 0
    delivered: int = 0
    failed: int = 0
    deregistered: int = 0
    failed_subscription_ids: list[int] = field(default_factory=list)


def configured_hours(users: Iterable[User]) -> set[int]:
    hours: set[int] = set()
    for user in users:
        hours.update(load_notification_hours(user))
    return hours


def local_hours_by_timezone(now: datetime, zone_names: Iterable[str] | None = None) -> dict[str, int]:
    names = set(available_timezones() if zone_names is None else zone_names)
    names.add(DEFAULT_TIMEZONE)
    hours: dict[str, int] = {}
    for name in names:
        try:
            hours[name] = local_now(now, name).hour
        except ValueError:
            logger.warning("reminder_timezone_unresolved timezone=%s", name)
    return hours


def timezones_at_hour(hour: int, now: datetime, zone_names: Iterable[str] | None = None) -> set[str]:
    """IANA names whose local wall-clock hour equals ``hour`` at ``now``."""
    return {name for name, local_hour in local_hours_by_timezone(now, zone_names).items() if local_hour == hour}


def previous_notification_hour(hours: Iterable[int], hour: int) -> int:
    """Largest configured hour strictly before ``hour``; 0 for the first reminder of the day."""
    earlier = [h for h in hours if h < hour]
    return max(earlier) if earlier else 0


def reminder_block(hours: Iterable[int], hour: int) -> ReminderBlock:
    return ReminderBlock(start_hour=previous_notification_hour(hours, hour), end_hour=hour)


def has_logged_in_block(session: Session, user_id: int, day: date, block: ReminderBlock) -> bool:
    row = session.exec(
        select(TimeBlock.id)
        .join(Habit, TimeBlock.habit_id == Habit.id)
        .where(Habit.user_id == user_id)
        .where(TimeBlock.logged_on == day)
        .where(TimeBlock.end_hour > block.start_hour)
        .where(TimeBlock.start_hour < block.end_hour)
    ).first()
    return row is not None


def should_notify(session: Session, user: User, now: datetime) -> bool:
    """True when the user's local hour is a reminder hour and nothing was logged in the block."""
    hours = load_notification_hours(user)
    if not hours:
        return False
    try:
        local = local_now(now, user.time_zone)
    except ValueError:
        return False
    if local.hour not in hours:
        return False
    block = reminder_block(hours, local.hour)
    return not has_logged_in_block(session, user.id, local.date(), block)


def _candidate_users(session: Session) -> list[User]:
    subscribed = select(PushSubscription.user_id)
    users = session.exec(
        select(User)
        .where(col(User.id).in_(subscribed))
        .where(User.notification_hours != "[]")
        .order_by(User.id)
    ).all()
    return [user for user in users if load_notification_hours(user)]


def due_users(session: Session, now: datetime) -> tuple[list[DueReminder], int]:
    """Users to remind at ``now`` and the number suppressed because they already logged."""
    candidates = _candidate_users(session)
    hours = configured_hours(candidates)
    if not hours:
        return [], 0

    zone_names = set(available_timezones())
    zone_names.update(effective_timezone_name(user.time_zone) for user in candidates)
    local_hours = local_hours_by_timezone(now, zone_names)

    due: list[DueReminder] = []
    suppressed = 0
    for hour in sorted(hours):
        zones = {name for name, local_hour in local_hours.items() if local_hour == hour}
        for user in candidates:
            user_hours = load_notification_hours(user)
            if hour not in user_hours or effective_timezone_name(user.time_zone) not in zones:
                continue
            local_date = local_now(now, user.time_zone).date()
            block = reminder_block(user_hours, hour)
            if has_logged_in_block(session, user.id, local_date, block):
                suppressed += 1
                logger.info(
                    "reminder_suppressed user_id=%s hour=%s block_start=%s",
                    user.id,
                    hour,
                    block.start_hour,
                )
                continue
            due.append(DueReminder(user=user, hour=hour, local_date=local_date, block=block))
    return due, suppressed


def send_reminders(
    session: Session,
    *,
    now: datetime,
    transport: PushTransport,
    payload: PushPayload = REMINDER_PAYLOAD,
) -> ReminderRunResult:
    due, suppressed = due_users(session, now)
    result = ReminderRunResult(users_considered=len(due) + suppressed, users_suppressed=suppressed)

    for reminder in due:
        subscriptions = list_subscriptions(session, reminder.user.id)
        delivered_any = False
        for subscription in subscriptions:
            if _deliver(session, transport, subscription, payload, result):
                delivered_any = True
        if delivered_any:
            result.users_notified += 1

    session.commit()
    logger.info(
        "reminder_run_complete considered=%s notified=%s suppressed=%s delivered=%s failed=%s deregistered=%s",
        result.users_considered,
        result.users_notified,
        result.users_suppressed,
        result.delivered,
        result.failed,
        result.deregistered,
    )
    return result


def _deliver(
    session: Session,
    transport: PushTransport,
    subscription: PushSubscription,
    payload: PushPayload,
    result: ReminderRunResult,
) -> bool:
    try:
        transport.send(subscription, payload)
    except PermanentDeliveryError as exc:
        logger.warning(
            "reminder_subscription_deregistered user_id=%s subscription_id=%s reason=%s",
            subscription.user_id,
            subscription.id,
            exc,
        )
        result.failed += 1
        result.deregistered += 1
        result.failed_subscription_ids.append(subscription.id)
        session.delete(subscription)
        return False
    except DeliveryError as exc:
        logger.warning(
            "reminder_delivery_failed user_id=%s subscription_id=%s reason=%s",
            subscription.user_id,
            subscription.id,
            exc,
        )
    except Exception as exc:
        logger.error(
            "reminder_delivery_failed user_id=%s subscription_id=%s error_type=%s",
            subscription.user_id,
            subscription.id,
            exc.__class__.__name__,
        )
    else:
        result.delivered += 1
        return True

    result.failed += 1
    result.failed_subscription_ids.append(subscription.id)
    return False
