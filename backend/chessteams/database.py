import os
from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = BASE_DIR / "chess_teams.db"


def normalize_database_url(raw_url: str | None) -> str:
    if not raw_url:
        return f"sqlite:///{DEFAULT_DB_PATH}"

    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)

    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)

    return raw_url


def build_engine(url: str, **kwargs: object) -> Engine:
    if url.startswith("sqlite"):
        connect_args = dict(kwargs.pop("connect_args", {}) or {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        kwargs["connect_args"] = connect_args

    built = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        # Pairings reference teams and players by id; SQLite only checks that when asked.
        @event.listens_for(built, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return built


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL"))

engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    # Import for side effects: registers every table on Base.metadata.
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
