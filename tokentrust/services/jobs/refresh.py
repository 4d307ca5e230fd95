"""Фоновое обновление анализов и ленты новых токенов.

Один проход:
  1. переанализ популярных и устаревших mint (последовательно, ошибки
     отдельного mint не прерывают проход);
  2. приём свежих листингов Jupiter и профилей DexScreener в new_token_events;
  3. обогащение нескольких непроанализированных событий рейтингом.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config.settings import RefreshSettings, get_settings
from tokentrust.models import TokenEventSource
from tokentrust.models.base import utcnow
from tokentrust.repositories import (
    SqlCacheStore,
    insert_new_token_if_absent,
    list_unanalyzed,
    mark_analyzed,
)
from tokentrust.schemas import EntityType
from tokentrust.services.providers.dexscreener import DexScreenerClient
from tokentrust.services.providers.http import ConfigurationError
from tokentrust.services.providers.jupiter import JupiterClient
from tokentrust.services.scoring.freshness_cache import FreshnessCache
from tokentrust.services.scoring.orchestrator import AnalysisOrchestrator


@dataclass(slots=True)
class RefreshResult:
    mint: str
    name: str | None = None
    trust_rating: int | None = None
    error: str | None = None


@dataclass(slots=True)
class RefreshSummary:
    popular: int = 0
    stale: int = 0
    ingested: int = 0
    enriched: int = 0
    results: list[RefreshResult] = field(default_factory=list)

    @property
    def refreshed(self) -> int:
        return sum(1 for item in self.results if item.trust_rating is not None)

    @property
    def failed(self) -> int:
        return len(self.results) - self.refreshed


class TokenRefreshJob:
    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        *,
        store: SqlCacheStore,
        cache: FreshnessCache,
        session_maker: async_sessionmaker[AsyncSession],
        dexscreener: DexScreenerClient,
        jupiter: JupiterClient | None = None,
        settings: RefreshSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._orchestrator = orchestrator
        self._store = store
        self._cache = cache
        self._session_maker = session_maker
        self._dexscreener = dexscreener
        self._jupiter = jupiter
        self._settings = settings or get_settings().refresh
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop(), name="token-refresh-loop")
        logger.info("TokenRefreshJob запущен, интервал {interval} с", interval=self._settings.interval_sec)

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_once(self) -> RefreshSummary:
        summary = RefreshSummary()
        await self._refresh_known(summary)
        try:
            summary.ingested = await self._ingest_new_tokens()
        except SQLAlchemyError as exc:
            logger.warning("Приём новых токенов не удался: {error}", error=exc)
        try:
            summary.enriched = await self._enrich_new_tokens()
        except SQLAlchemyError as exc:
            logger.warning("Обогащение новых токенов не удалось: {error}", error=exc)
        logger.info(
            "Обновление: {refreshed} ок, {failed} с ошибкой, принято {ingested}, обогащено {enriched}",
            refreshed=summary.refreshed,
            failed=summary.failed,
            ingested=summary.ingested,
            enriched=summary.enriched,
        )
        return summary

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self.run_once()
            except ConfigurationError as exc:
                logger.error("TokenRefreshJob остановлен: {error}", error=exc)
                return
            except Exception as exc:  # noqa: BLE001
                logger.exception("Проход обновления упал: {error}", error=exc)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._settings.interval_sec)
            except asyncio.TimeoutError:
                continue

    async def _refresh_known(self, summary: RefreshSummary) -> None:
        popular = list(self._settings.popular_mints)
        stale = await self._store.stale_keys(
            EntityType.TOKEN_ANALYSIS,
            self._cache.ttl_for(EntityType.TOKEN_ANALYSIS),
            limit=self._settings.stale_limit,
            now=self._clock(),
        )
        summary.popular = len(popular)
        summary.stale = len(stale)
        for mint in dict.fromkeys([*popular, *stale]):
            try:
                analysis = await self._orchestrator.analyze_token(mint)
            except ConfigurationError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("Переанализ {mint} упал: {error}", mint=mint, error=exc)
                summary.results.append(RefreshResult(mint=mint, error=str(exc)))
                continue
            summary.results.append(
                RefreshResult(
                    mint=mint,
                    name=analysis.name if analysis else None,
                    trust_rating=analysis.trust_rating if analysis else None,
                )
            )

    async def _ingest_new_tokens(self) -> int:
        limit = self._settings.ingest_limit
        recent, profiles = await asyncio.gather(
            self._jupiter.fetch_recent_tokens(limit) if self._jupiter else _nothing(),
            self._dexscreener.fetch_latest_profiles(limit),
        )
        candidates: dict[str, dict[str, str | None]] = {}
        for token in recent:
            candidates[token.mint] = {
                "source": TokenEventSource.JUPITER,
                "name": token.name,
                "symbol": token.symbol,
                "image_url": token.logo_uri,
            }
        for profile in profiles:
            candidates.setdefault(
                profile.mint,
                {
                    "source": TokenEventSource.DEXSCREENER,
                    "name": None,
                    "symbol": None,
                    "image_url": profile.icon,
                },
            )
        ingested = 0
        async with self._session_maker() as session:
            for mint, fields in candidates.items():
                if not mint:
                    continue
                event = await insert_new_token_if_absent(session, mint, **fields)
                if event is not None:
                    ingested += 1
        return ingested

    async def _enrich_new_tokens(self) -> int:
        async with self._session_maker() as session:
            pending = [event.mint for event in await list_unanalyzed(session, self._settings.enrich_limit)]
        enriched = 0
        for mint in pending:
            try:
                analysis = await self._orchestrator.analyze_token(mint)
            except ConfigurationError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("Обогащение {mint} упало: {error}", mint=mint, error=exc)
                continue
            if analysis is None:
                continue
            async with self._session_maker() as session:
                await mark_analyzed(
                    session,
                    mint,
                    trust_rating=analysis.trust_rating,
                    deployer_tier=analysis.deployer_tier.value if analysis.deployer_tier else None,
                    name=analysis.name,
                    symbol=analysis.symbol,
                    image_url=analysis.image_url,
                )
            enriched += 1
        return enriched


async def _nothing() -> list:
    return []


__all__ = ["RefreshResult", "RefreshSummary", "TokenRefreshJob"]
