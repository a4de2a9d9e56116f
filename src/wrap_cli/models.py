from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

COLOR_TOKENS: tuple[int, ...] = tuple(range(1, 9))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    time_zone: str | None = None
    notification_hours: str = Field(default="[]")  # JSON list of ints
    work_schedule: str = Field(default="{}")  # JSON object, canonical keys only
    created_at: str = Field(default_factory=_now_iso)


class Habit(SQLModel, table=True):
    __tablename__ = "habits"
    __table_args__ = (
        CheckConstraint("color_token BETWEEN 1 AND 8", name="ck_habits_color_token_palette"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    name: str
    description: str | None = None
    color_token: int = Field(default=1)
    active: bool = Field(default=True)
    created_at: str = Field(default_factory=_now_iso)


class TimeBlock(SQLModel, table=True):
    __tablename__ = "time_blocks"
    __table_args__ = (
        CheckConstraint("end_hour > start_hour", name="ck_time_blocks_end_after_start"),
        Index("ix_time_blocks_habit_id_logged_on", "habit_id", "logged_on"),
    )

    id: int | None = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habits.id", index=True)
    logged_on: date
    start_hour: float
    end_hour: float
    notes: str | None = None
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)


class Tag(SQLModel, table=True):
    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_tags_user_id_name"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    name: str
    taggings_count: int = Field(default=0)


class Tagging(SQLModel, table=True):
    __tablename__ = "taggings"
    __table_args__ = (
        UniqueConstraint("tag_id", "habit_id", name="uq_taggings_tag_id_habit_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    tag_id: int = Field(foreign_key="tags.id", index=True)
    habit_id: int = Field(foreign_key="habits.id", index=True)


class PushSubscription(SQLModel, table=True):
    __tablename__ = "push_subscriptions"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    endpoint: str = Field(unique=True)
    p256dh_key: str
    auth_key: str
    created_at: str = Field(default_factory=_now_iso)
