"""Базовые примеси для SQLModel моделей TokenTrust."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite отдаёт naive datetime, считаем такие значения UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimeStampedModel(SQLModel, table=False):
    """Добавляет created_at / updated_at."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    def touch(self) -> None:
        self.updated_at = utcnow()


class CacheEntryModel(TimeStampedModel, table=False):
    """Строка основного кеша: JSON-значение и момент получения.

    key_field: имя колонки натурального ключа (wallet или mint).
    """

    key_field: ClassVar[str]

    payload: dict = Field(default_factory=dict, sa_type=JSON)
    fetched_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)

    @property
    def natural_key(self) -> str:
        return getattr(self, self.key_field)

    def index_payload(self) -> None:
        """Переносит поля payload в индексируемые колонки таблицы."""


__all__ = ["CacheEntryModel", "TimeStampedModel", "as_utc", "utcnow"]
