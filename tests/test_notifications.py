from __future__ import annotations

from datetime import date, datetime, timezone

from sqlmodel import Session, SQLModel, create_engine, select

from wrap_cli.config import store_notification_hours
from wrap_cli.errors import PermanentDeliveryError, TransientDeliveryError
from wrap_cli.models import Habit, PushSubscription, TimeBlock, User
from wrap_cli.notifications import (
    ReminderBlock,
    due_users,
    previous_notification_hour,
    reminder_block,
    send_reminders,
    should_notify,
    timezones_at_hour,
)
from wrap_cli.push import PushPayload

# 14:00 UTC is 9am in New York (EST) and 17:00 UTC is noon.
NINE_AM_NEW_YORK = datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)
NOON_NEW_YORK = datetime(2025, 1, 15, 17, 0, tzinfo=timezone.utc)
LOCAL_DAY = date(2025, 1, 15)


class RecordingTransport:
    def __init__(self, failures: dict[str, Exception] | None = None):
        self.failures = failures or {}
        self.sent: list[tuple[str, PushPayload]] = []

    def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        failure = self.failures.get(subscription.endpoint)
        if failure is not None:
            raise failure
        self.sent.append((subscription.endpoint, payload))


def _create_engine(tmp_path):
    db_path = tmp_path / "notifications.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    return engine


def _create_subscriber(
    session: Session,
    email: str,
    *,
    time_zone: str | None = "America/New_York",
    hours: list[int] | None = None,
    endpoints: tuple[str, ...] | None = None,
) -> User:
    user = User(email=email, time_zone=time_zone)
    store_notification_hours(user, [9, 12] if hours is None else hours)
    session.add(user)
    session.commit()
    session.refresh(user)
    for endpoint in endpoints or (f"https://push.example/{email}",):
        session.add(PushSubscription(user_id=user.id, endpoint=endpoint, p256dh_key="p256", auth_key="auth"))
    session.commit()
    return user


def _log(session: Session, user: User, start: float, end: float, day: date = LOCAL_DAY) -> None:
    habit = session.exec(select(Habit).where(Habit.user_id == user.id)).first()
    if habit is None:
        habit = Habit(user_id=user.id, name="Read")
        session.add(habit)
        session.commit()
    session.add(TimeBlock(habit_id=habit.id, logged_on=day, start_hour=start, end_hour=end))
    session.commit()


def test_reminder_block_starts_at_previous_configured_hour() -> None:
    assert previous_notification_hour([9, 12, 18], 9) == 0
    assert previous_notification_hour([9, 12, 18], 18) == 12
    assert reminder_block([9, 12], 12) == ReminderBlock(start_hour=9, end_hour=12)


def test_reminder_block_overlap_is_half_open() -> None:
    block = ReminderBlock(start_hour=9, end_hour=12)

    assert block.overlaps(8, 9) is False
    assert block.overlaps(8, 9.5) is True
    assert block.overlaps(11.5, 13) is True
    assert block.overlaps(12, 13) is False


def test_timezones_at_hour_buckets_by_local_hour() -> None:
    zones = timezones_at_hour(9, NINE_AM_NEW_YORK, ["America/New_York", "Europe/London", "Asia/Tokyo"])

    assert zones == {"America/New_York"}
    assert "UTC" in timezones_at_hour(14, NINE_AM_NEW_YORK, [])


def test_user_without_logs_is_reminded_at_nine(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_subscriber(session, "me@example.com")

        assert should_notify(session, user, NINE_AM_NEW_YORK) is True
        due, suppressed = due_users(session, NINE_AM_NEW_YORK)

    assert [(reminder.user.email, reminder.hour, reminder.local_date) for reminder in due] == [
        ("me@example.com", 9, LOCAL_DAY)
    ]
    assert due[0].block == ReminderBlock(start_hour=0, end_hour=9)
    assert suppressed == 0


def test_block_logged_before_nine_suppresses_the_nine_am_reminder(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_subscriber(session, "me@example.com")
        _log(session, user, 8, 9)

        assert should_notify(session, user, NINE_AM_NEW_YORK) is False
        due, suppressed = due_users(session, NINE_AM_NEW_YORK)

    assert due == []
    assert suppressed == 1


def test_noon_reminder_only_looks_at_the_nine_to_noon_block(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_subscriber(session, "me@example.com")
        _log(session, user, 8, 9)

        assert should_notify(session, user, NOON_NEW_YORK) is True

        _log(session, user, 10, 11)
        assert should_notify(session, user, NOON_NEW_YORK) is False


def test_logs_on_another_local_day_do_not_count(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_subscriber(session, "me@example.com")
        _log(session, user, 8, 9, day=date(2025, 1, 14))

        assert should_notify(session, user, NINE_AM_NEW_YORK) is True


def test_users_in_other_timezones_or_hours_are_not_due(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        _create_subscriber(session, "london@example.com", time_zone="Europe/London")
        _create_subscriber(session, "evening@example.com", hours=[18])
        _create_subscriber(session, "utc@example.com", time_zone=None, hours=[14])
        no_subscription = User(email="nosub@example.com", time_zone="America/New_York")
        store_notification_hours(no_subscription, [9])
        session.add(no_subscription)
        session.commit()

        due, _ = due_users(session, NINE_AM_NEW_YORK)

    assert [reminder.user.email for reminder in due] == ["utc@example.com"]


def test_send_reminders_delivers_to_every_subscription(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    transport = RecordingTransport()

    with Session(engine) as session:
        _create_subscriber(
            session,
            "me@example.com",
            endpoints=("https://push.example/laptop", "https://push.example/phone"),
        )
        result = send_reminders(session, now=NINE_AM_NEW_YORK, transport=transport)

    assert [endpoint for endpoint, _ in transport.sent] == [
        "https://push.example/laptop",
        "https://push.example/phone",
    ]
    assert transport.sent[0][1].title == "Habit Reminder"
    assert (result.users_considered, result.users_notified, result.delivered, result.failed) == (1, 1, 2, 0)


def test_one_failing_subscription_does_not_block_the_rest(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    transport = RecordingTransport(
        failures={
            "https://push.example/flaky": TransientDeliveryError("timeout"),
            "https://push.example/broken": RuntimeError("unexpected"),
        }
    )

    with Session(engine) as session:
        _create_subscriber(session, "flaky@example.com", endpoints=("https://push.example/flaky",))
        _create_subscriber(session, "broken@example.com", endpoints=("https://push.example/broken",))
        _create_subscriber(session, "ok@example.com", endpoints=("https://push.example/ok",))

        result = send_reminders(session, now=NINE_AM_NEW_YORK, transport=transport)
        remaining = session.exec(select(PushSubscription)).all()

    assert [endpoint for endpoint, _ in transport.sent] == ["https://push.example/ok"]
    assert (result.users_notified, result.delivered, result.failed, result.deregistered) == (1, 1, 2, 0)
    assert len(remaining) == 3


def test_expired_subscription_is_deregistered(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    transport = RecordingTransport(
        failures={"https://push.example/old": PermanentDeliveryError("subscription rejected status=410")}
    )

    with Session(engine) as session:
        _create_subscriber(
            session,
            "me@example.com",
            endpoints=("https://push.example/old", "https://push.example/new"),
        )
        result = send_reminders(session, now=NINE_AM_NEW_YORK, transport=transport)
        remaining = [s.endpoint for s in session.exec(select(PushSubscription)).all()]

    assert remaining == ["https://push.example/new"]
    assert (result.users_notified, result.delivered, result.failed, result.deregistered) == (1, 1, 1, 1)
    assert len(result.failed_subscription_ids) == 1


def test_nobody_due_sends_nothing(tmp_path) -> None:
    engine = _create_engine(tmp_path)
    transport = RecordingTransport()

    with Session(engine) as session:
        _create_subscriber(session, "me@example.com", hours=[])
        result = send_reminders(session, now=NINE_AM_NEW_YORK, transport=transport)

    assert transport.sent == []
    assert result.users_considered == 0
