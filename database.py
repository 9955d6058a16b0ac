from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config import get_settings


def _sqlite_on_connect(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Engine for the relational store; SQLite gets FK enforcement and WAL."""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)
    eng = create_engine(database_url, connect_args={"check_same_thread": False})
    event.listen(eng, "connect", _sqlite_on_connect)
    return eng


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    """Create missing tables. Schema changes go through alembic."""
    import models  # noqa: F401

    Base.metadata.create_all(engine)
