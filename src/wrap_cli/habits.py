from __future__ import annotations

import logging
import re

from sqlmodel import Session, col, delete, select

from wrap_cli.errors import NotFoundError, ValidationError
from wrap_cli.models import COLOR_TOKENS, Habit, Tag, Tagging, TimeBlock, User

logger = logging.getLogger(__name__)

MAX_TAG_NAME_LENGTH = 30
_TAG_NAME_PATTERN = re.compile(r"^[a-z0-9\s\-_]+$")
TAG_ORDERS: tuple[str, ...] = ("name", "popularity")


# --- Habits ---


def next_unused_token(used_tokens: list[int]) -> int:
    """Lowest palette token not in use; wraps to the full palette once all are taken."""
    available = [token for token in COLOR_TOKENS if token not in set(used_tokens)]
    if not available:
        available = list(COLOR_TOKENS)
    return min(available)


def _validate_habit(name: str, color_token: int) -> None:
    errors: dict[str, list[str]] = {}
    if not name.strip():
        errors.setdefault("name", []).append("can't be blank")
    if color_token not in COLOR_TOKENS:
        errors.setdefault("color_token", []).append(
            f"must be one of {COLOR_TOKENS[0]}..{COLOR_TOKENS[-1]}"
        )
    if errors:
        raise ValidationError(errors)


def create_habit(
    session: Session,
    user: User,
    *,
    name: str,
    description: str | None = None,
    color_token: int | None = None,
    active: bool = True,
) -> Habit:
    if color_token is None:
        used = session.exec(select(Habit.color_token).where(Habit.user_id == user.id)).all()
        color_token = next_unused_token(list(used))
    _validate_habit(name, color_token)

    habit = Habit(
        user_id=user.id,
        name=name.strip(),
        description=description.strip() if description else None,
        color_token=color_token,
        active=active,
    )
    session.add(habit)
    session.commit()
    session.refresh(habit)
    logger.info("habit_created user_id=%s habit_id=%s color_token=%s", user.id, habit.id, habit.color_token)
    return habit


def find_habit_by_name(session: Session, user: User, name: str) -> Habit | None:
    return session.exec(
        select(Habit).where(Habit.user_id == user.id).where(Habit.name == name.strip())
    ).first()


def find_or_create_habit(session: Session, user: User, name: str) -> Habit:
    existing = find_habit_by_name(session, user, name)
    if existing is not None:
        return existing
    return create_habit(session, user, name=name)


def get_habit(session: Session, user: User, habit_id: int) -> Habit:
    habit = session.get(Habit, habit_id)
    if habit is None or habit.user_id != user.id:
        raise NotFoundError(f"Habit {habit_id} not found.")
    return habit


def update_habit(
    session: Session,
    user: User,
    habit_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
    color_token: int | None = None,
    active: bool | None = None,
) -> Habit:
    habit = get_habit(session, user, habit_id)
    new_name = habit.name if name is None else name
    new_token = habit.color_token if color_token is None else color_token
    _validate_habit(new_name, new_token)

    habit.name = new_name.strip()
    habit.color_token = new_token
    if description is not None:
        habit.description = description.strip() or None
    if active is not None:
        habit.active = active
    session.commit()
    session.refresh(habit)
    return habit


def delete_habit(session: Session, user: User, habit_id: int) -> None:
    """Delete a habit with its time blocks and taggings."""
    habit = get_habit(session, user, habit_id)

    taggings = session.exec(select(Tagging).where(Tagging.habit_id == habit.id)).all()
    for tagging in taggings:
        _remove_tagging(session, tagging)
    session.exec(delete(TimeBlock).where(TimeBlock.habit_id == habit.id))
    session.delete(habit)
    session.commit()
    logger.info("habit_deleted user_id=%s habit_id=%s", user.id, habit_id)


def list_habits(
    session: Session,
    user: User,
    *,
    tag: str | None = None,
    include_inactive: bool = False,
) -> list[Habit]:
    query = select(Habit).where(Habit.user_id == user.id)
    if not include_inactive:
        query = query.where(Habit.active == True)  # noqa: E712
    if tag:
        normalized = normalize_tag_name(tag)
        query = (
            query.join(Tagging, Tagging.habit_id == Habit.id)
            .join(Tag, Tagging.tag_id == Tag.id)
            .where(Tag.user_id == user.id)
            .where(Tag.name == normalized)
        )
    habits = session.exec(query.order_by(Habit.created_at, Habit.id)).all()
    if include_inactive:
        return sorted(habits, key=lambda h: not h.active)
    return list(habits)


# --- Tags ---


def normalize_tag_name(name: str) -> str:
    return str(name).strip().lower()


def validate_tag_name(name: str) -> str:
    """Normalize and validate a tag name. Returns the normalized name."""
    normalized = normalize_tag_name(name)
    messages: list[str] = []
    if not normalized:
        messages.append("can't be blank")
    if len(normalized) > MAX_TAG_NAME_LENGTH:
        messages.append(f"is too long (maximum is {MAX_TAG_NAME_LENGTH} characters)")
    if normalized and not _TAG_NAME_PATTERN.fullmatch(normalized):
        messages.append("only allows letters, numbers, spaces, hyphens, underscores")
    if messages:
        raise ValidationError({"name": messages})
    return normalized


def find_or_create_tag(session: Session, user: User, name: str) -> Tag:
    normalized = validate_tag_name(name)
    existing = session.exec(
        select(Tag).where(Tag.user_id == user.id).where(Tag.name == normalized)
    ).first()
    if existing is not None:
        return existing

    tag = Tag(user_id=user.id, name=normalized)
    session.add(tag)
    session.commit()
    session.refresh(tag)
    return tag


def get_tag(session: Session, user: User, tag_id: int) -> Tag:
    tag = session.get(Tag, tag_id)
    if tag is None or tag.user_id != user.id:
        raise NotFoundError(f"Tag {tag_id} not found.")
    return tag


def find_tag_by_name(session: Session, user: User, name: str) -> Tag:
    normalized = normalize_tag_name(name)
    tag = session.exec(select(Tag).where(Tag.user_id == user.id).where(Tag.name == normalized)).first()
    if tag is None:
        raise NotFoundError(f'Tag "{normalized}" not found.')
    return tag


def tag_habit(session: Session, user: User, habit_id: int, tag_name: str) -> Tag:
    """Attach a tag (created on demand) to a habit. Idempotent."""
    habit = get_habit(session, user, habit_id)
    tag = find_or_create_tag(session, user, tag_name)

    existing = session.exec(
        select(Tagging).where(Tagging.tag_id == tag.id).where(Tagging.habit_id == habit.id)
    ).first()
    if existing is None:
        session.add(Tagging(tag_id=tag.id, habit_id=habit.id))
        tag.taggings_count += 1
        session.commit()
        session.refresh(tag)
    return tag


def untag_habit(session: Session, user: User, habit_id: int, tag_name: str) -> None:
    habit = get_habit(session, user, habit_id)
    tag = find_tag_by_name(session, user, tag_name)
    tagging = session.exec(
        select(Tagging).where(Tagging.tag_id == tag.id).where(Tagging.habit_id == habit.id)
    ).first()
    if tagging is None:
        return
    _remove_tagging(session, tagging)
    session.commit()


def delete_tag(session: Session, user: User, tag_id: int) -> None:
    tag = get_tag(session, user, tag_id)
    session.exec(delete(Tagging).where(Tagging.tag_id == tag.id))
    session.delete(tag)
    session.commit()


def list_tags(session: Session, user: User, *, order: str = "name") -> list[Tag]:
    if order not in TAG_ORDERS:
        raise ValueError(f"Invalid tag order: {order}. Expected one of: {', '.join(TAG_ORDERS)}.")
    query = select(Tag).where(Tag.user_id == user.id)
    if order == "popularity":
        query = query.order_by(col(Tag.taggings_count).desc(), Tag.name)
    else:
        query = query.order_by(Tag.name)
    return list(session.exec(query).all())


def tags_for_habit(session: Session, habit_id: int) -> list[Tag]:
    return list(
        session.exec(
            select(Tag)
            .join(Tagging, Tagging.tag_id == Tag.id)
            .where(Tagging.habit_id == habit_id)
            .order_by(Tag.name)
        ).all()
    )


def _remove_tagging(session: Session, tagging: Tagging) -> None:
    tag = session.get(Tag, tagging.tag_id)
    if tag is not None:
        tag.taggings_count = max(tag.taggings_count - 1, 0)
    session.delete(tagging)
