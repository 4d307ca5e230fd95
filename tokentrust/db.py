"""Движок SQLModel и фабрика асинхронных сессий."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from config.settings import DatabaseSettings, get_settings
from tokentrust import models  # noqa: F401  импортируем модели для регистрации метаданных

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def ensure_sqlite_dir(dsn: str) -> None:
    """Создаёт каталог файла SQLite; для других СУБД ничего не делает."""

    url = make_url(dsn)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def create_engine(settings: DatabaseSettings | None = None) -> AsyncEngine:
    cfg = settings or get_settings().database
    ensure_sqlite_dir(cfg.dsn)
    return create_async_engine(cfg.dsn, echo=cfg.echo, poolclass=NullPool)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = create_session_maker(get_engine())
    return _session_maker


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Создаёт таблицы (миграций пока нет)."""

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


__all__ = [
    "create_engine",
    "create_session_maker",
    "ensure_sqlite_dir",
    "get_engine",
    "get_session_maker",
    "init_db",
]
