"""DexScreener: ликвидность и объёмы токена по всем пулам.

Публичный API без ключа. Пулы токена агрегируются в один LiquiditySnapshot;
лента свежих профилей токенов кешируется во внутрипроцессном горячем кеше
на несколько минут.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Sequence

import aiohttp
from aiocache.base import BaseCache
from loguru import logger
from pydantic import ValidationError

from config.settings import DexScreenerSettings, get_settings
from tokentrust.models.base import utcnow
from tokentrust.schemas import LiquiditySnapshot, TokenProfile
from tokentrust.utils.cache import cached_call
from .http import JsonHttpClient, ProviderFailure, join_url

LATEST_PROFILES_KEY = "dexscreener:latest-profiles"


class DexScreenerClient(JsonHttpClient):
    """MarketDataProvider поверх DexScreener."""

    provider_name = "dexscreener"

    def __init__(
        self,
        settings: DexScreenerSettings | None = None,
        session: aiohttp.ClientSession | None = None,
        hot_cache: BaseCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or get_settings().dexscreener
        super().__init__(timeout=self._settings.request_timeout, session=session)
        self._hot_cache = hot_cache
        self._clock = clock

    async def fetch_liquidity(self, mint: str) -> LiquiditySnapshot | None:
        """Агрегат по торговым парам; None, если пар нет."""

        url = join_url(self._settings.base_url, f"/tokens/v1/{self._settings.chain_id}/{mint}")
        pairs = await self._request_json("GET", url, allow_not_found=True)
        if pairs is None:
            return None
        if isinstance(pairs, dict):
            pairs = pairs.get("pairs") or []
        if not isinstance(pairs, list):
            raise ProviderFailure(self.provider_name, "ответ пар не является списком")
        try:
            return aggregate_pairs(mint, pairs, fetched_at=self._clock())
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            raise ProviderFailure(self.provider_name, f"некорректные пары: {exc}") from exc

    async def fetch_latest_profiles(self, limit: int = 20) -> list[TokenProfile]:
        """Свежие профили токенов нужной сети (горячий кеш на profiles_ttl_seconds)."""

        try:
            raw = await cached_call(
                LATEST_PROFILES_KEY,
                self._settings.profiles_ttl_seconds,
                self._load_latest_profiles,
                cache=self._hot_cache,
            )
        except ProviderFailure as exc:
            logger.warning("DexScreener latest profiles недоступны: {error}", error=exc)
            return []
        profiles = [
            TokenProfile(
                mint=item["tokenAddress"],
                chain_id=item.get("chainId") or self._settings.chain_id,
                icon=item.get("icon"),
                url=item.get("url"),
                description=item.get("description"),
            )
            for item in raw
        ]
        return profiles[:limit]

    async def _load_latest_profiles(self) -> list[dict[str, Any]]:
        url = join_url(self._settings.base_url, "/token-profiles/latest/v1")
        data = await self._request_json("GET", url)
        if not isinstance(data, list):
            raise ProviderFailure(self.provider_name, "лента профилей не является списком")
        return [
            item
            for item in data
            if isinstance(item, dict)
            and item.get("tokenAddress")
            and item.get("chainId") == self._settings.chain_id
        ]


def aggregate_pairs(
    mint: str,
    pairs: Sequence[dict[str, Any]],
    *,
    fetched_at: datetime,
) -> LiquiditySnapshot | None:
    """Суммирует ликвидность и объём; цену, FDV и капу берёт из главного пула."""

    pairs = [pair for pair in pairs if isinstance(pair, dict)]
    if not pairs:
        return None
    ranked = sorted(pairs, key=_pair_liquidity, reverse=True)
    top = ranked[0]
    total_liquidity = sum(_pair_liquidity(pair) for pair in pairs)
    volume_24h = sum(_number((pair.get("volume") or {}).get("h24")) for pair in pairs)
    return LiquiditySnapshot(
        mint=mint,
        total_liquidity_usd=total_liquidity,
        volume_24h=volume_24h,
        volume_liquidity_ratio=volume_24h / total_liquidity if total_liquidity > 0 else 0.0,
        pool_count=len(pairs),
        primary_dex=top.get("dexId"),
        fdv=_number(top.get("fdv")),
        market_cap=_number(top.get("marketCap")),
        price_usd=_number(top.get("priceUsd")),
        fetched_at=fetched_at,
    )


def _pair_liquidity(pair: dict[str, Any]) -> float:
    return _number((pair.get("liquidity") or {}).get("usd"))


def _number(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


__all__ = ["DexScreenerClient", "LATEST_PROFILES_KEY", "aggregate_pairs"]
