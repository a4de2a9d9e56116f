from __future__ import annotations

import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect
from sqlmodel import Session, SQLModel, create_engine

from wrap_cli import models  # noqa: F401  (registers tables on SQLModel.metadata)
from wrap_cli.config import DEFAULT_USER_EMAIL, get_or_create_user
from wrap_cli.errors import DatabaseNotInitializedError

# /src/wrap_cli/db.py -> project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = PROJECT_ROOT / ".data" / "wrap.sqlite"


def get_db_path() -> Path:
    db_path_env = os.getenv("WRAP_DB_PATH")
    if not db_path_env:
        return DEFAULT_DB_PATH

    candidate = Path(db_path_env).expanduser()
    if candidate.is_absolute():
        return candidate
    return (Path.cwd() / candidate).resolve()


def ensure_db_directory() -> Path:
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def get_database_url(*, ensure_directory: bool = False) -> str:
    db_path = ensure_db_directory() if ensure_directory else get_db_path()
    return f"sqlite:///{db_path}"


def get_engine(*, ensure_directory: bool = False):
    return create_engine(
        get_database_url(ensure_directory=ensure_directory),
        connect_args={"check_same_thread": False},
    )


def missing_tables(engine) -> list[str]:
    """Tracker tables not present in the database, in creation order."""
    existing = set(inspect(engine).get_table_names())
    return [table.name for table in SQLModel.metadata.sorted_tables if table.name not in existing]


def get_initialized_engine():
    """Engine for a database that ``wrap init`` has migrated. Never creates the file."""
    db_path = get_db_path()
    if not db_path.exists():
        raise DatabaseNotInitializedError(f"No tracker database at {db_path}. Run 'wrap init' first.")

    engine = get_engine()
    missing = missing_tables(engine)
    if missing:
        engine.dispose()
        raise DatabaseNotInitializedError(
            f"Database {db_path} is missing tables: {', '.join(missing)}. Run 'wrap init' first."
        )
    return engine


def apply_migrations() -> None:
    ensure_db_directory()

    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", get_database_url(ensure_directory=True))
    command.upgrade(alembic_cfg, "head")


def seed_defaults(email: str = DEFAULT_USER_EMAIL) -> None:
    engine = get_engine(ensure_directory=True)

    with Session(engine) as session:
        get_or_create_user(session, email)


def initialize_database(email: str = DEFAULT_USER_EMAIL) -> Path:
    apply_migrations()
    seed_defaults(email)
    return get_db_path()
