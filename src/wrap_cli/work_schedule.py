from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

ALLOWED_KEYS: tuple[str, ...] = ("work_hours_enabled", "work_start_hour", "work_end_hour", "work_days")
DEFAULT_START_HOUR = 9.0
DEFAULT_END_HOUR = 17.0
DEFAULT_WORK_DAYS: tuple[int, ...] = (1, 2, 3, 4, 5)

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off", ""}


def weekday_index(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: '{value}'.")


def _cast_hour(value: Any, default: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return float(value)


def _cast_days(value: Any) -> tuple[Any, ...]:
    if value is None:
        return DEFAULT_WORK_DAYS
    if isinstance(value, str):
        items = [part for part in value.replace(" ", ",").split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [item for item in value if not (isinstance(item, str) and not item.strip())]
    else:
        items = [value]

    days: list[Any] = []
    for item in items:
        try:
            days.append(int(item))
        except (TypeError, ValueError):
            # Kept as-is so errors() can report it.
            days.append(item)
    valid = sorted({day for day in days if isinstance(day, int)})
    invalid = [day for day in days if not isinstance(day, int)]
    return tuple(valid + invalid)


@dataclass(frozen=True)
class WorkSchedule:
    enabled: bool = False
    start_hour: float = DEFAULT_START_HOUR
    end_hour: float = DEFAULT_END_HOUR
    work_days: tuple[Any, ...] = field(default=DEFAULT_WORK_DAYS)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> WorkSchedule:
        """Build from persisted configuration. Keys outside ALLOWED_KEYS are ignored."""
        raw = {key: value for key, value in (data or {}).items() if key in ALLOWED_KEYS}
        try:
            return cls(
                enabled=cast_bool(raw.get("work_hours_enabled")),
                start_hour=_cast_hour(raw.get("work_start_hour"), DEFAULT_START_HOUR),
                end_hour=_cast_hour(raw.get("work_end_hour"), DEFAULT_END_HOUR),
                work_days=_cast_days(raw.get("work_days")),
            )
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid work schedule: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_hours_enabled": self.enabled,
            "work_start_hour": self.start_hour,
            "work_end_hour": self.end_hour,
            "work_days": list(self.work_days),
        }

    def with_value(self, key: str, value: Any) -> WorkSchedule:
        """Return a copy with one canonical key replaced from raw input."""
        if key == "work_hours_enabled":
            return replace(self, enabled=cast_bool(value))
        if key == "work_start_hour":
            return replace(self, start_hour=_cast_hour(value, DEFAULT_START_HOUR))
        if key == "work_end_hour":
            return replace(self, end_hour=_cast_hour(value, DEFAULT_END_HOUR))
        if key == "work_days":
            return replace(self, work_days=_cast_days(value))
        raise ValueError(f"Unknown work schedule key: {key}.")

    def errors(self) -> list[str]:
        if not self.enabled:
            return []

        errs: list[str] = []
        if not 0 <= self.start_hour <= 24:
            errs.append("Work start hour must be between 0 and 24")
        if not 0 <= self.end_hour <= 24:
            errs.append("Work end hour must be between 0 and 24")
        if self.start_hour >= self.end_hour:
            errs.append("Work end hour must be after start hour")
        if not all(isinstance(d, int) and not isinstance(d, bool) and 0 <= d <= 6 for d in self.work_days):
            errs.append("Work days must be valid day numbers (0-6)")
        return errs

    @property
    def is_valid(self) -> bool:
        return not self.errors()

    def is_work_day(self, day: date) -> bool:
        return self.enabled and weekday_index(day) in self.work_days

    def is_work_hour(self, hour: float) -> bool:
        return self.enabled and self.start_hour <= hour < self.end_hour
