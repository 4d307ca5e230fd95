"""Jupiter Tokens API: verified-список и свежие листинги.

Оба списка маленькие и читаются часто, поэтому живут в горячем кеше:
verified-список на час, свежие токены на несколько минут. Сбой списка не ломает
анализ: токен просто считается непроверенным.
"""

from __future__ import annotations

from typing import Any

import aiohttp
from aiocache.base import BaseCache
from loguru import logger

from config.settings import JupiterSettings, get_settings
from tokentrust.schemas import RecentToken
from tokentrust.utils.cache import cached_call
from .http import JsonHttpClient, ProviderFailure, join_url

VERIFIED_KEY = "jupiter:verified"
RECENT_KEY = "jupiter:recent"


class JupiterClient(JsonHttpClient):
    provider_name = "jupiter"

    def __init__(
        self,
        settings: JupiterSettings | None = None,
        session: aiohttp.ClientSession | None = None,
        hot_cache: BaseCache | None = None,
    ) -> None:
        self._settings = settings or get_settings().jupiter
        super().__init__(timeout=self._settings.request_timeout, session=session)
        self._hot_cache = hot_cache

    async def is_verified(self, mint: str) -> bool:
        try:
            verified = await cached_call(
                VERIFIED_KEY,
                self._settings.verified_ttl_seconds,
                self._load_verified,
                cache=self._hot_cache,
            )
        except ProviderFailure as exc:
            logger.warning("Jupiter verified-список недоступен: {error}", error=exc)
            return False
        return mint in verified

    async def fetch_recent_tokens(self, limit: int = 20) -> list[RecentToken]:
        try:
            raw = await cached_call(
                RECENT_KEY,
                self._settings.recent_ttl_seconds,
                self._load_recent,
                cache=self._hot_cache,
            )
        except ProviderFailure as exc:
            logger.warning("Jupiter recent tokens недоступны: {error}", error=exc)
            return []
        return [
            RecentToken(
                mint=_token_address(item) or "",
                name=item.get("name"),
                symbol=item.get("symbol"),
                decimals=item.get("decimals"),
                logo_uri=item.get("logoURI") or item.get("icon"),
            )
            for item in raw[:limit]
        ]

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._settings.api_key is not None:
            headers["x-api-key"] = self._settings.api_key.get_secret_value()
        return headers

    async def _load_verified(self) -> list[str]:
        url = join_url(self._settings.base_url, "/tokens/v2/tag")
        data = await self._request_json(
            "GET", url, params={"query": "verified"}, headers=self._headers()
        )
        if not isinstance(data, list):
            raise ProviderFailure(self.provider_name, "verified-список не является списком")
        return [
            address
            for address in (_token_address(item) for item in data)
            if address
        ]

    async def _load_recent(self) -> list[dict[str, Any]]:
        url = join_url(self._settings.base_url, "/tokens/v2/recent")
        data = await self._request_json("GET", url, headers=self._headers())
        if not isinstance(data, list):
            raise ProviderFailure(self.provider_name, "список свежих токенов не является списком")
        return [item for item in data if isinstance(item, dict) and _token_address(item)]


def _token_address(item: Any) -> str | None:
    if not isinstance(item, dict):
        return None
    return item.get("address") or item.get("mint") or item.get("id")


__all__ = ["JupiterClient", "RECENT_KEY", "VERIFIED_KEY"]
