from datetime import date, datetime, timezone

import pytest

from wrap_cli.timeutil import (
    effective_timezone_name,
    format_hour,
    format_hours,
    local_now,
    local_today,
    parse_date_ymd,
    parse_hour,
    resolve_timezone,
)


def test_format_hour_renders_clock_labels() -> None:
    assert format_hour(0) == "12am"
    assert format_hour(9) == "9am"
    assert format_hour(9.5) == "9:30am"
    assert format_hour(12) == "12pm"
    assert format_hour(13) == "1pm"
    assert format_hour(23.5) == "11:30pm"
    assert format_hour(24) == "12am"
    assert format_hour(None) is None


def test_format_hours_drops_trailing_zero() -> None:
    assert format_hours(2.0) == "2h"
    assert format_hours(1.5) == "1.5h"


def test_parse_hour_accepts_integer_decimal_and_clock_forms() -> None:
    assert parse_hour("9") == 9.0
    assert parse_hour("9.5") == 9.5
    assert parse_hour("09:30") == 9.5
    assert parse_hour(" 24 ") == 24.0

    with pytest.raises(ValueError):
        parse_hour("nine")


def test_parse_date_ymd_is_strict() -> None:
    assert parse_date_ymd("2025-01-13") == date(2025, 1, 13)
    with pytest.raises(ValueError):
        parse_date_ymd("13/01/2025")


def test_blank_timezone_falls_back_to_utc() -> None:
    assert effective_timezone_name(None) == "UTC"
    assert effective_timezone_name("  ") == "UTC"
    assert str(resolve_timezone("")) == "UTC"

    with pytest.raises(ValueError, match="Invalid timezone"):
        resolve_timezone("Mars/Olympus_Mons")


def test_local_today_uses_the_user_timezone() -> None:
    now = datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc)

    assert local_today(now, "UTC") == date(2025, 1, 15)
    assert local_today(now, "America/New_York") == date(2025, 1, 14)
    assert local_now(now, "Asia/Tokyo").hour == 12


def test_local_now_rejects_naive_datetimes() -> None:
    with pytest.raises(ValueError):
        local_now(datetime(2025, 1, 15, 3, 0), "UTC")
