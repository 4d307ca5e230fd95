"""AnalysisOrchestrator: анализ токена и репутация кошелька.

Поток анализа: кеш -> метаданные -> держатели -> репутация деплоера ->
параллельные быстрые скоры топ-держателей -> риск-флаги -> композитный
рейтинг -> запись в кеш. Сбои провайдеров деградируют до нейтральных
значений; наружу уходит только ConfigurationError.

Одновременные холодные запросы одного mint по умолчанию не объединяются:
оба уйдут к провайдерам и оба запишут кеш (последняя запись выигрывает).
Включить single-flight можно через AnalysisSettings.coalesce_inflight.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Hashable, Protocol, Sequence, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config.settings import AnalysisSettings, get_settings
from tokentrust.models.base import utcnow
from tokentrust.schemas import (
    DeployerProfile,
    EntityType,
    HolderSample,
    HolderScore,
    LiquiditySnapshot,
    RiskReport,
    ScoreSnapshot,
    TokenAnalysis,
    WalletReputation,
)
from tokentrust.services.providers.dexscreener import DexScreenerClient
from tokentrust.services.providers.fairscale import FairScaleClient
from tokentrust.services.providers.helius import HeliusClient, classify_lp_holders
from tokentrust.services.providers.http import ConfigurationError, ProviderFailure
from tokentrust.services.providers.jupiter import JupiterClient
from tokentrust.services.providers.rugcheck import RugCheckClient
from .composite import clamp, compute_trust_rating, round_half_up
from .freshness_cache import FreshnessCache
from .risk_detector import detect_risk_flags
from .tiers import classify_tier

T = TypeVar("T")


class ScoreHistory(Protocol):
    async def record(self, snapshot: ScoreSnapshot) -> bool: ...

    async def history(self, mint: str, limit: int = 30) -> list[ScoreSnapshot]: ...


class DeploymentIndex(Protocol):
    async def deployed_tokens(self, wallet: str, limit: int = 50) -> list[TokenAnalysis]: ...


class AnalysisOrchestrator:
    def __init__(
        self,
        *,
        fairscale: FairScaleClient,
        helius: HeliusClient,
        dexscreener: DexScreenerClient,
        rugcheck: RugCheckClient,
        cache: FreshnessCache,
        jupiter: JupiterClient | None = None,
        history: ScoreHistory | None = None,
        deployments: DeploymentIndex | None = None,
        settings: AnalysisSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._fairscale = fairscale
        self._helius = helius
        self._dexscreener = dexscreener
        self._rugcheck = rugcheck
        self._jupiter = jupiter
        self._cache = cache
        self._history = history
        self._deployments = deployments
        self._settings = settings or get_settings().analysis
        self._clock = clock
        self._inflight: dict[Hashable, asyncio.Future[Any]] = {}

    async def analyze_token(self, mint: str) -> TokenAnalysis | None:
        """Рейтинг доверия токена; None, если токен не найден."""

        lookup = await self._cache.get(EntityType.TOKEN_ANALYSIS, mint)
        if lookup.found:
            logger.debug("Анализ {mint} из кеша ({age} мс)", mint=mint, age=lookup.age_ms)
            return lookup.value
        return await self._single_flight(
            (EntityType.TOKEN_ANALYSIS, mint), lambda: self._analyze_fresh(mint)
        )

    async def get_wallet_reputation(self, wallet: str) -> WalletReputation | None:
        lookup = await self._cache.get(EntityType.WALLET_SCORE, wallet)
        if lookup.found:
            return lookup.value
        return await self._single_flight(
            (EntityType.WALLET_SCORE, wallet), lambda: self._fetch_reputation(wallet)
        )

    async def get_top_holders(self, mint: str, limit: int | None = None) -> list[HolderSample]:
        size = self._settings.holder_sample_size if limit is None else limit
        if size <= 0:
            return []
        try:
            return await self._helius.fetch_top_holders(mint, size)
        except ProviderFailure as exc:
            logger.warning("Держатели {mint} недоступны: {error}", mint=mint, error=exc)
            return []

    async def get_scored_holders(self, mint: str, limit: int | None = None) -> list[HolderScore]:
        """Топ-держатели (limit, по умолчанию holder_sample_size) с быстрым скором и тиром."""

        holders = await self.get_top_holders(mint, limit)
        scores = await self._score_holders(holders)
        return [
            HolderScore(
                owner=holder.owner,
                amount=holder.amount,
                percentage=holder.percentage,
                score=score,
                tier=classify_tier(score),
            )
            for holder, score in zip(holders, scores)
        ]

    async def get_deployer_profile(self, wallet: str, limit: int = 50) -> DeployerProfile:
        """Репутация деплоера и его проанализированные токены, новые первыми."""

        results = await asyncio.gather(
            self.get_wallet_reputation(wallet),
            self._deployed_tokens(wallet, limit),
            return_exceptions=True,
        )
        return DeployerProfile(
            wallet=wallet,
            reputation=self._unwrap(results[0], None),
            deployed_tokens=tuple(self._unwrap(results[1], [])),
        )

    async def get_token_liquidity(self, mint: str) -> LiquiditySnapshot | None:
        return await self._cache.read_through(
            EntityType.LIQUIDITY,
            mint,
            lambda: self._recover(self._dexscreener.fetch_liquidity(mint), "ликвидность", mint),
        )

    async def get_risk_report(self, mint: str) -> RiskReport | None:
        return await self._cache.read_through(
            EntityType.RISK_REPORT,
            mint,
            lambda: self._recover(self._rugcheck.fetch_report(mint), "отчёт о рисках", mint),
        )

    async def get_score_history(self, mint: str, limit: int = 30) -> list[ScoreSnapshot]:
        if self._history is None:
            return []
        return await self._history.history(mint, limit)

    async def _analyze_fresh(self, mint: str) -> TokenAnalysis | None:
        try:
            metadata = await self._helius.fetch_token_metadata(mint)
        except ProviderFailure as exc:
            logger.warning("Метаданные {mint} недоступны: {error}", mint=mint, error=exc)
            return None
        if metadata is None:
            logger.info("Токен {mint} не найден", mint=mint)
            return None

        holders = await self.get_top_holders(mint)
        breakdown = classify_lp_holders(holders)
        deployer_wallet = metadata.update_authority

        results = await asyncio.gather(
            self._deployer_reputation(deployer_wallet),
            self._is_verified(mint),
            return_exceptions=True,
        )
        deployer = self._unwrap(results[0], None)
        jupiter_verified = bool(self._unwrap(results[1], False))
        deployer_score = deployer.integer_score if deployer is not None else None

        holder_scores = await self._score_holders(holders[: self._settings.scored_holder_limit])
        risk_flags = detect_risk_flags(deployer_score, holders, metadata)
        score = compute_trust_rating(deployer_score, holder_scores, holders, risk_flags)

        analysis = TokenAnalysis(
            mint=mint,
            name=metadata.name or None,
            symbol=metadata.symbol or None,
            image_url=metadata.image,
            deployer_wallet=deployer_wallet,
            deployer_score=deployer_score,
            trust_rating=score.trust_rating,
            holder_quality_score=round_half_up(score.holder_quality),
            holder_count=len(holders),
            top_holder_concentration=clamp(holders[0].percentage) if holders else 0.0,
            risk_flags=tuple(risk_flags),
            score_breakdown=score,
            lp_supply_percent=breakdown.lp_supply_percent,
            lp_vaults=breakdown.lp_vaults,
            mint_authority_active=bool(metadata.mint_authority),
            freeze_authority_active=bool(metadata.freeze_authority),
            jupiter_verified=jupiter_verified,
            analyzed_at=self._clock(),
        )
        await self._cache.put(EntityType.TOKEN_ANALYSIS, mint, analysis, fetched_at=analysis.analyzed_at)
        logger.info(
            "Анализ {mint}: рейтинг {rating}, флагов {flags}",
            mint=mint,
            rating=analysis.trust_rating,
            flags=len(analysis.risk_flags),
        )
        await self._record_history(analysis)
        return analysis

    async def _fetch_reputation(self, wallet: str) -> WalletReputation | None:
        try:
            profile = await self._fairscale.fetch_detailed_profile(wallet)
        except ProviderFailure as exc:
            logger.warning("Профиль FairScale {wallet} недоступен: {error}", wallet=wallet, error=exc)
            return None
        if profile is None:
            return None
        results = await asyncio.gather(
            self._fairscale.fetch_quick_score(wallet),
            self._fairscale.fetch_wallet_score(wallet),
            return_exceptions=True,
        )
        quick = self._unwrap(results[0], None)
        integer_score = quick if quick is not None else round_half_up(profile.decimal_score * 10)
        reputation = WalletReputation(
            wallet=wallet,
            decimal_score=profile.decimal_score,
            integer_score=integer_score,
            wallet_score=self._unwrap(results[1], None),
            badges=profile.badges,
            fetched_at=self._clock(),
        )
        await self._cache.put(
            EntityType.WALLET_SCORE, wallet, reputation, fetched_at=reputation.fetched_at
        )
        return reputation

    async def _deployer_reputation(self, wallet: str | None) -> WalletReputation | None:
        if not wallet:
            return None
        return await self.get_wallet_reputation(wallet)

    async def _deployed_tokens(self, wallet: str, limit: int) -> list[TokenAnalysis]:
        if self._deployments is None:
            return []
        try:
            return await self._deployments.deployed_tokens(wallet, limit)
        except SQLAlchemyError as exc:
            logger.warning("Токены деплоера {wallet} не прочитаны: {error}", wallet=wallet, error=exc)
            return []

    async def _is_verified(self, mint: str) -> bool:
        if self._jupiter is None:
            return False
        return await self._jupiter.is_verified(mint)

    async def _score_holders(self, holders: Sequence[HolderSample]) -> list[int | None]:
        """Параллельные быстрые скоры; сбой одного держателя даёт ему None."""

        results = await asyncio.gather(
            *(self._fairscale.fetch_quick_score(holder.owner) for holder in holders),
            return_exceptions=True,
        )
        return [self._unwrap(result, None) for result in results]

    async def _record_history(self, analysis: TokenAnalysis) -> None:
        if self._history is None:
            return
        snapshot = ScoreSnapshot(
            mint=analysis.mint,
            trust_rating=analysis.trust_rating,
            holder_count=analysis.holder_count,
            risk_flag_count=len(analysis.risk_flags),
            recorded_at=analysis.analyzed_at,
        )
        try:
            await self._history.record(snapshot)
        except SQLAlchemyError as exc:
            logger.warning("Снимок истории {mint} не записан: {error}", mint=analysis.mint, error=exc)

    async def _recover(self, call: Awaitable[T | None], what: str, mint: str) -> T | None:
        try:
            return await call
        except ProviderFailure as exc:
            logger.warning("{what} {mint} недоступен: {error}", what=what, mint=mint, error=exc)
            return None

    async def _single_flight(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        if not self._settings.coalesce_inflight:
            return await factory()
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(factory())
            self._inflight[key] = future
            future.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(future)

    @staticmethod
    def _unwrap(value: Any, fallback: Any) -> Any:
        if isinstance(value, ConfigurationError):
            raise value
        if isinstance(value, Exception):
            logger.debug("Подзадача анализа завершилась ошибкой: {error}", error=value)
            return fallback
        if isinstance(value, BaseException):
            raise value
        return value


__all__ = ["AnalysisOrchestrator", "DeploymentIndex", "ScoreHistory"]
