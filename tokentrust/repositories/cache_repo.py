"""Таблицы основного кеша: чтение и upsert по натуральному ключу."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tokentrust.models import CachedScore, LiquidityEntry, RiskReportEntry, TokenAnalysisEntry
from tokentrust.models.base import CacheEntryModel, as_utc, utcnow
from tokentrust.schemas import EntityType, TokenAnalysis
from tokentrust.services.scoring.freshness_cache import CacheRecord

CACHE_TABLES: Mapping[EntityType, type[CacheEntryModel]] = {
    EntityType.WALLET_SCORE: CachedScore,
    EntityType.TOKEN_ANALYSIS: TokenAnalysisEntry,
    EntityType.LIQUIDITY: LiquidityEntry,
    EntityType.RISK_REPORT: RiskReportEntry,
}


def _key_column(model: type[CacheEntryModel]) -> Any:
    return getattr(model, model.key_field)


async def read_cache_entry(
    session: AsyncSession, entity_type: EntityType, key: str
) -> CacheEntryModel | None:
    model = CACHE_TABLES[entity_type]
    stmt = select(model).where(_key_column(model) == key)
    return (await session.exec(stmt)).one_or_none()


async def upsert_cache_entry(
    session: AsyncSession,
    entity_type: EntityType,
    key: str,
    payload: dict[str, Any],
    fetched_at: datetime,
) -> CacheEntryModel:
    model = CACHE_TABLES[entity_type]
    entry = await read_cache_entry(session, entity_type, key)
    if entry is None:
        entry = model(**{model.key_field: key}, payload=payload, fetched_at=fetched_at)
    else:
        entry.payload = payload
        entry.fetched_at = fetched_at
        entry.touch()
    entry.index_payload()
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    return entry


async def list_stale_keys(
    session: AsyncSession,
    entity_type: EntityType,
    ttl: timedelta,
    *,
    limit: int = 10,
    now: datetime | None = None,
) -> list[str]:
    """Ключи записей старше TTL, самые старые первыми."""

    model = CACHE_TABLES[entity_type]
    threshold = (now or utcnow()) - ttl
    stmt = (
        select(model)
        .where(model.fetched_at < threshold)
        .order_by(model.fetched_at)
        .limit(limit)
    )
    rows = (await session.exec(stmt)).all()
    return [row.natural_key for row in rows]


async def list_deployed_tokens(
    session: AsyncSession, wallet: str, *, limit: int = 50
) -> list[TokenAnalysisEntry]:
    """Анализы токенов, где wallet указан деплоером, новые первыми."""

    stmt = (
        select(TokenAnalysisEntry)
        .where(TokenAnalysisEntry.deployer_wallet == wallet)
        .order_by(TokenAnalysisEntry.fetched_at.desc())
        .limit(limit)
    )
    return list((await session.exec(stmt)).all())


class SqlCacheStore:
    """CacheStore поверх SQLModel: одна сессия на операцию."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def read(self, entity_type: EntityType, key: str) -> CacheRecord | None:
        async with self._session_maker() as session:
            entry = await read_cache_entry(session, entity_type, key)
        if entry is None:
            return None
        return CacheRecord(key=key, payload=dict(entry.payload or {}), fetched_at=as_utc(entry.fetched_at))

    async def upsert(
        self,
        entity_type: EntityType,
        key: str,
        payload: dict[str, Any],
        fetched_at: datetime,
    ) -> None:
        async with self._session_maker() as session:
            try:
                await upsert_cache_entry(session, entity_type, key, payload, fetched_at)
            except IntegrityError:
                # Параллельный холодный промах успел вставить ту же строку.
                await session.rollback()
                logger.debug(
                    "Повторная запись {entity}:{key} после конфликта вставки",
                    entity=entity_type.value,
                    key=key,
                )
                await upsert_cache_entry(session, entity_type, key, payload, fetched_at)

    async def stale_keys(
        self,
        entity_type: EntityType,
        ttl: timedelta,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[str]:
        async with self._session_maker() as session:
            return await list_stale_keys(session, entity_type, ttl, limit=limit, now=now)

    async def deployed_tokens(self, wallet: str, limit: int = 50) -> list[TokenAnalysis]:
        async with self._session_maker() as session:
            entries = await list_deployed_tokens(session, wallet, limit=limit)
        return [TokenAnalysis.model_validate(entry.payload) for entry in entries]


__all__ = [
    "CACHE_TABLES",
    "SqlCacheStore",
    "list_deployed_tokens",
    "list_stale_keys",
    "read_cache_entry",
    "upsert_cache_entry",
]
