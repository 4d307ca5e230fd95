"""Клиент FairScale: репутация кошельков.

Эндпоинты:
  /score      : детальный профиль, дробный скор (0-100) и бейджи
  /fairScore  : лёгкий целочисленный скор (0-1000+) для пакетной оценки
  /walletScore: скор только по активности кошелька

404 означает «у кошелька нет истории» и не считается ошибкой. Ретраев нет:
повтор с backoff при необходимости остаётся на вызывающей стороне.
"""

from __future__ import annotations

from typing import Any

import aiohttp
from loguru import logger

from config.settings import FairScaleSettings, get_settings
from tokentrust.schemas import Badge, FairScaleProfile, Tier
from .http import JsonHttpClient, ProviderFailure, join_url, require_secret


class FairScaleClient(JsonHttpClient):
    """ScoreProvider поверх FairScale API."""

    provider_name = "fairscale"

    def __init__(
        self,
        settings: FairScaleSettings | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings or get_settings().fairscale
        super().__init__(timeout=self._settings.request_timeout, session=session)

    async def fetch_detailed_profile(self, wallet: str) -> FairScaleProfile | None:
        """Детальный профиль; None для неизвестного кошелька.

        Любой иной сбой поднимается как ProviderFailure.
        """

        data = await self._get("/score", wallet)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ProviderFailure(self.provider_name, "/score вернул не объект")
        try:
            decimal_score = float(data["score"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderFailure(self.provider_name, "/score без числового score") from exc
        return FairScaleProfile(
            wallet=str(data.get("wallet") or wallet),
            decimal_score=max(0.0, min(100.0, decimal_score)),
            badges=tuple(_parse_badges(data.get("badges"))),
        )

    async def fetch_quick_score(self, wallet: str) -> int | None:
        """Целочисленный скор; not found и сбой схлопываются в None."""

        return await self._fetch_integer("/fairScore", wallet)

    async def fetch_wallet_score(self, wallet: str) -> int | None:
        """Скор только по активности кошелька; сбой схлопывается в None."""

        return await self._fetch_integer("/walletScore", wallet)

    async def _fetch_integer(self, endpoint: str, wallet: str) -> int | None:
        try:
            data = await self._get(endpoint, wallet)
        except ProviderFailure as exc:
            logger.warning(
                "FairScale {endpoint} для {wallet} недоступен: {error}",
                endpoint=endpoint,
                wallet=wallet,
                error=exc,
            )
            return None
        if not isinstance(data, dict):
            return None
        score = data.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None
        return max(0, int(round(score)))

    async def _get(self, endpoint: str, wallet: str) -> Any:
        headers = {
            "fairkey": require_secret(self._settings.api_key, "FAIRSCALE__API_KEY"),
            "Content-Type": "application/json",
        }
        return await self._request_json(
            "GET",
            join_url(self._settings.base_url, endpoint),
            params={"wallet": wallet},
            headers=headers,
            allow_not_found=True,
        )


def _parse_badges(raw: Any) -> list[Badge]:
    if not isinstance(raw, list):
        return []
    badges: list[Badge] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        try:
            tier = Tier(item.get("tier") or Tier.BRONZE)
        except ValueError:
            tier = Tier.BRONZE
        badges.append(
            Badge(
                id=str(item["id"]),
                label=str(item.get("label") or item["id"]),
                description=str(item.get("description") or ""),
                tier=tier,
                awarded_at=item.get("awardedAt"),
            )
        )
    return badges


__all__ = ["FairScaleClient"]
