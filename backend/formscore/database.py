from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = BASE_DIR / "formscore.db"


def normalize_database_url(raw_url: str | None) -> str:
    if not raw_url:
        return f"sqlite:///{DEFAULT_DB_PATH}"

    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg://", 1)

    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)

    return raw_url


def build_engine(database_url: str, **kwargs: object) -> Engine:
    engine_kwargs: dict[str, object] = dict(kwargs)
    if database_url.startswith("sqlite"):
        connect_args = dict(engine_kwargs.pop("connect_args", {}) or {})  # type: ignore[arg-type]
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine_kwargs["connect_args"] = connect_args

    built = create_engine(database_url, **engine_kwargs)

    if database_url.startswith("sqlite"):
        # SQLite leaves foreign keys off unless asked per connection.
        @event.listens_for(built, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return built


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


DATABASE_URL = normalize_database_url(settings.database_url)

engine = build_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
