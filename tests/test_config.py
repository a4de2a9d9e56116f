from __future__ import annotations

import json

import pytest
from sqlmodel import Session, SQLModel, create_engine

from wrap_cli.config import (
    get_or_create_user,
    get_user_by_email,
    list_user_settings,
    load_user_settings,
    load_work_schedule,
    parse_notification_hours,
    resolve_acting_user_email,
    update_user_setting,
)
from wrap_cli.errors import NotFoundError, ValidationError
from wrap_cli.models import User


def _create_engine(tmp_path):
    db_path = tmp_path / "config.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    return engine


def test_parse_notification_hours_sorts_and_deduplicates() -> None:
    assert parse_notification_hours("21, 9,12,9") == (9, 12, 21)
    assert parse_notification_hours([0, 23]) == (0, 23)
    assert parse_notification_hours("") == ()


def test_parse_notification_hours_rejects_out_of_range_and_too_many() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_notification_hours("9,24,abc")
    assert exc_info.value.errors["notification_hours"] == [
        "must be valid hours (0-23), got '24'",
        "must be valid hours (0-23), got 'abc'",
    ]

    with pytest.raises(ValidationError, match="at most 6"):
        parse_notification_hours([6, 8, 10, 12, 14, 16, 18])


def test_default_settings(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = get_or_create_user(session, "Me@Example.com")

        assert user.email == "me@example.com"
        assert list_user_settings(user) == {
            "notification_hours": "",
            "timezone": "UTC",
            "work_days": "1,2,3,4,5",
            "work_end_hour": "17.0",
            "work_hours_enabled": "false",
            "work_start_hour": "9.0",
        }


def test_get_or_create_user_is_idempotent(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        first = get_or_create_user(session, "me@example.com", time_zone="Europe/Paris")
        second = get_or_create_user(session, " ME@example.com ")

        assert first.id == second.id
        assert second.time_zone == "Europe/Paris"
        with pytest.raises(NotFoundError):
            get_user_by_email(session, "nobody@example.com")
        with pytest.raises(ValidationError):
            get_or_create_user(session, "not-an-email")


def test_update_timezone_validates_iana_names(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = get_or_create_user(session, "me@example.com")

        update_user_setting(session, user, "timezone", "America/New_York")
        assert load_user_settings(user).timezone_name == "America/New_York"

        with pytest.raises(ValidationError, match="Invalid timezone"):
            update_user_setting(session, user, "timezone", "Mars/Base")

        update_user_setting(session, user, "timezone", " ")
        assert user.time_zone is None
        assert load_user_settings(user).timezone_name == "UTC"


def test_update_notification_hours_stores_json(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = get_or_create_user(session, "me@example.com")

        update_user_setting(session, user, "notification_hours", "18,9")

        assert json.loads(user.notification_hours) == [9, 18]
        assert load_user_settings(user).notification_hours == (9, 18)


def test_work_schedule_is_validated_only_once_enabled(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = get_or_create_user(session, "me@example.com")

        update_user_setting(session, user, "work_start_hour", "18")
        assert load_work_schedule(user).start_hour == 18.0

        with pytest.raises(ValidationError, match="Work end hour must be after start hour"):
            update_user_setting(session, user, "work_hours_enabled", "true")

        update_user_setting(session, user, "work_start_hour", "8")
        update_user_setting(session, user, "work_hours_enabled", "true")
        update_user_setting(session, user, "work_days", "1,2,3")

        schedule = load_work_schedule(user)
        assert (schedule.enabled, schedule.start_hour, schedule.work_days) == (True, 8.0, (1, 2, 3))


def test_invalid_work_value_is_a_validation_error(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = get_or_create_user(session, "me@example.com")

        with pytest.raises(ValidationError) as exc_info:
            update_user_setting(session, user, "work_start_hour", "nine")
        assert "work_start_hour" in exc_info.value.errors


def test_unknown_setting_key_is_rejected(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = get_or_create_user(session, "me@example.com")

        with pytest.raises(ValueError, match="Unknown setting key"):
            update_user_setting(session, user, "theme", "dark")


def test_corrupt_stored_settings_fall_back_to_defaults() -> None:
    user = User(email="me@example.com", notification_hours="not json", work_schedule='["bad"]')

    settings = load_user_settings(user)

    assert settings.notification_hours == ()
    assert settings.work_schedule.enabled is False


def test_resolve_acting_user_email(monkeypatch) -> None:
    monkeypatch.delenv("WRAP_USER_EMAIL", raising=False)
    assert resolve_acting_user_email() == "me@localhost"

    monkeypatch.setenv("WRAP_USER_EMAIL", "Someone@Example.com")
    assert resolve_acting_user_email() == "someone@example.com"
    assert resolve_acting_user_email("explicit@example.com") == "explicit@example.com"
