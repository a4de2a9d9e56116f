from __future__ import annotations

from datetime import date

import pytest
from sqlmodel import Session, SQLModel, create_engine, select

from wrap_cli.errors import NotFoundError, ValidationError
from wrap_cli.habits import (
    create_habit,
    delete_habit,
    delete_tag,
    find_or_create_habit,
    list_habits,
    list_tags,
    next_unused_token,
    tag_habit,
    tags_for_habit,
    untag_habit,
    update_habit,
    validate_tag_name,
)
from wrap_cli.models import Tag, Tagging, TimeBlock, User
from wrap_cli.time_blocks import create_time_block


def _create_engine(tmp_path):
    db_path = tmp_path / "habits.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    return engine


def _create_user(session: Session, email: str = "me@example.com") -> User:
    user = User(email=email)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def test_next_unused_token_picks_lowest_free_and_wraps() -> None:
    assert next_unused_token([]) == 1
    assert next_unused_token([1, 2, 4]) == 3
    assert next_unused_token(list(range(1, 9))) == 1


def test_create_habit_assigns_distinct_color_tokens(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        first = create_habit(session, user, name="  Read ")
        second = create_habit(session, user, name="Run")
        explicit = create_habit(session, user, name="Write", color_token=7)

        assert first.name == "Read"
        assert (first.color_token, second.color_token, explicit.color_token) == (1, 2, 7)


def test_create_habit_validates_name_and_color(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        with pytest.raises(ValidationError) as exc_info:
            create_habit(session, user, name=" ", color_token=9)

    assert set(exc_info.value.errors) == {"name", "color_token"}


def test_find_or_create_habit_reuses_existing(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        created = find_or_create_habit(session, user, "Read")
        again = find_or_create_habit(session, user, " Read ")

        assert created.id == again.id


def test_list_habits_hides_inactive_unless_requested(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        read = create_habit(session, user, name="Read")
        create_habit(session, user, name="Run")
        update_habit(session, user, read.id, active=False)

        assert [h.name for h in list_habits(session, user)] == ["Run"]
        assert [h.name for h in list_habits(session, user, include_inactive=True)] == ["Run", "Read"]


def test_habits_are_scoped_to_their_owner(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        me = _create_user(session)
        other = _create_user(session, "other@example.com")
        habit = create_habit(session, other, name="Secret")

        with pytest.raises(NotFoundError):
            update_habit(session, me, habit.id, name="Mine now")
        assert list_habits(session, me) == []


def test_validate_tag_name_normalizes_and_reports_problems() -> None:
    assert validate_tag_name("  Deep Work ") == "deep work"

    with pytest.raises(ValidationError) as exc_info:
        validate_tag_name("x" * 31 + "!")
    assert exc_info.value.errors["name"] == [
        "is too long (maximum is 30 characters)",
        "only allows letters, numbers, spaces, hyphens, underscores",
    ]

    with pytest.raises(ValidationError):
        validate_tag_name("   ")


def test_tag_habit_is_idempotent_and_counts_taggings(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        read = create_habit(session, user, name="Read")
        run = create_habit(session, user, name="Run")

        tag_habit(session, user, read.id, "Health")
        tag_habit(session, user, read.id, "health")
        tag_habit(session, user, run.id, "health")
        tag_habit(session, user, run.id, "outdoors")

        assert [(t.name, t.taggings_count) for t in list_tags(session, user, order="popularity")] == [
            ("health", 2),
            ("outdoors", 1),
        ]
        assert [t.name for t in tags_for_habit(session, run.id)] == ["health", "outdoors"]
        assert [h.name for h in list_habits(session, user, tag="OUTDOORS")] == ["Run"]

        untag_habit(session, user, run.id, "health")
        health = session.exec(select(Tag).where(Tag.name == "health")).one()
        assert health.taggings_count == 1


def test_delete_habit_removes_blocks_and_taggings(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        read = create_habit(session, user, name="Read")
        run = create_habit(session, user, name="Run")
        tag_habit(session, user, read.id, "focus")
        tag_habit(session, user, run.id, "focus")
        create_time_block(session, user, habit_id=read.id, logged_on=date(2025, 1, 13), start_hour=9, end_hour=10)
        create_time_block(session, user, habit_id=run.id, logged_on=date(2025, 1, 13), start_hour=7, end_hour=8)
        read_id = read.id

        delete_habit(session, user, read_id)

        assert session.exec(select(TimeBlock).where(TimeBlock.habit_id == read_id)).all() == []
        assert session.exec(select(Tagging).where(Tagging.habit_id == read_id)).all() == []
        assert len(session.exec(select(TimeBlock)).all()) == 1
        focus = session.exec(select(Tag).where(Tag.name == "focus")).one()
        assert focus.taggings_count == 1


def test_delete_tag_detaches_it_from_every_habit(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        user = _create_user(session)
        read = create_habit(session, user, name="Read")
        tag = tag_habit(session, user, read.id, "focus")

        delete_tag(session, user, tag.id)

        assert list_tags(session, user) == []
        assert tags_for_habit(session, read.id) == []
        with pytest.raises(NotFoundError):
            untag_habit(session, user, read.id, "focus")
