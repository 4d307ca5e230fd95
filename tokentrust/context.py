"""Сборка зависимостей TokenTrust.

Клиенты провайдеров, хранилище кеша и оркестратор создаются здесь один раз
и передаются друг другу явно; глобальных клиентов нет.
"""

from __future__ import annotations

from typing import Any, Callable

import aiohttp
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import AppSettings, get_settings
from tokentrust.db import create_engine, create_session_maker
from tokentrust.models.base import utcnow
from tokentrust.repositories import SqlCacheStore, SqlScoreHistory
from tokentrust.services.jobs.refresh import TokenRefreshJob
from tokentrust.services.providers.dexscreener import DexScreenerClient
from tokentrust.services.providers.fairscale import FairScaleClient
from tokentrust.services.providers.helius import HeliusClient
from tokentrust.services.providers.jupiter import JupiterClient
from tokentrust.services.providers.rugcheck import RugCheckClient
from tokentrust.services.scoring.freshness_cache import FreshnessCache, ttls_from_settings
from tokentrust.services.scoring.orchestrator import AnalysisOrchestrator
from tokentrust.utils.cache import configure_cache, get_cache


class EngineContext:
    """Владеет HTTP-сессией и движком БД на время жизни приложения."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        engine: AsyncEngine | None = None,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self.settings = settings or get_settings()
        self._clock = clock
        self._owns_engine = engine is None
        self.engine = engine or create_engine(self.settings.database)
        self.session_maker = create_session_maker(self.engine)
        self._http: aiohttp.ClientSession | None = None
        self.orchestrator: AnalysisOrchestrator | None = None
        self.refresh_job: TokenRefreshJob | None = None

    async def start(self) -> AnalysisOrchestrator:
        configure_cache(self.settings.cache)
        hot_cache = get_cache()
        self._http = aiohttp.ClientSession()
        cfg = self.settings

        fairscale = FairScaleClient(cfg.fairscale, session=self._http)
        helius = HeliusClient(cfg.helius, session=self._http)
        dexscreener = DexScreenerClient(cfg.dexscreener, session=self._http, hot_cache=hot_cache, clock=self._clock)
        rugcheck = RugCheckClient(cfg.rugcheck, session=self._http, clock=self._clock)
        jupiter = JupiterClient(cfg.jupiter, session=self._http, hot_cache=hot_cache)

        store = SqlCacheStore(self.session_maker)
        cache = FreshnessCache(store, ttls_from_settings(cfg.cache), clock=self._clock)
        self.orchestrator = AnalysisOrchestrator(
            fairscale=fairscale,
            helius=helius,
            dexscreener=dexscreener,
            rugcheck=rugcheck,
            jupiter=jupiter,
            cache=cache,
            history=SqlScoreHistory(self.session_maker),
            deployments=store,
            settings=cfg.analysis,
            clock=self._clock,
        )
        self.refresh_job = TokenRefreshJob(
            self.orchestrator,
            store=store,
            cache=cache,
            session_maker=self.session_maker,
            dexscreener=dexscreener,
            jupiter=jupiter,
            settings=cfg.refresh,
            clock=self._clock,
        )
        logger.info("TokenTrust инициализирован в окружении {env}", env=cfg.environment)
        return self.orchestrator

    async def close(self) -> None:
        if self.refresh_job is not None:
            await self.refresh_job.stop()
        if self._http is not None and not self._http.closed:
            await self._http.close()
        if self._owns_engine:
            await self.engine.dispose()

    async def __aenter__(self) -> "EngineContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


__all__ = ["EngineContext"]
