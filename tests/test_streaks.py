from datetime import date, timedelta

from sqlmodel import Session, SQLModel, create_engine

from wrap_cli.models import Habit, TimeBlock, User
from wrap_cli.streaks import MAX_CURRENT_STREAK, StreakStats, current_streak, longest_streak, streak_stats

TODAY = date(2025, 3, 10)


def _days_ago(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=offset) for offset in offsets]


def _create_engine(tmp_path):
    db_path = tmp_path / "streaks.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    return engine


def test_current_streak_counts_back_from_today() -> None:
    assert current_streak(_days_ago(0, 1, 2), TODAY) == 3


def test_current_streak_starts_yesterday_when_today_is_empty() -> None:
    assert current_streak(_days_ago(1, 2), TODAY) == 2


def test_current_streak_is_zero_after_a_gap() -> None:
    assert current_streak(_days_ago(2, 3, 4), TODAY) == 0
    assert current_streak([], TODAY) == 0


def test_current_streak_is_capped() -> None:
    dates = _days_ago(*range(400))

    assert current_streak(dates, TODAY) == MAX_CURRENT_STREAK


def test_longest_streak_finds_the_longest_run() -> None:
    dates = _days_ago(0, 1, 10, 11, 12, 13, 20)

    assert longest_streak(dates) == 4
    assert longest_streak(_days_ago(5)) == 1
    assert longest_streak([]) == 0


def test_streak_stats_only_counts_the_users_own_blocks(tmp_path) -> None:
    engine = _create_engine(tmp_path)

    with Session(engine) as session:
        me = User(email="me@example.com")
        other = User(email="other@example.com")
        session.add(me)
        session.add(other)
        session.commit()
        mine = Habit(user_id=me.id, name="Read")
        theirs = Habit(user_id=other.id, name="Run")
        session.add(mine)
        session.add(theirs)
        session.commit()

        for day in _days_ago(0, 1, 5, 6, 7):
            session.add(TimeBlock(habit_id=mine.id, logged_on=day, start_hour=9, end_hour=10))
        for day in _days_ago(2, 3, 4):
            session.add(TimeBlock(habit_id=theirs.id, logged_on=day, start_hour=9, end_hour=10))
        # Two blocks on one day count once.
        session.add(TimeBlock(habit_id=mine.id, logged_on=TODAY, start_hour=20, end_hour=21))
        session.commit()

        assert streak_stats(session, me.id, TODAY) == StreakStats(current=2, longest=3)
