"""Helius DAS: метаданные токена и держатели.

Клиент ходит в JSON-RPC Helius (getAsset, getTokenAccounts). Ключ API
передаётся query-параметром и никогда не попадает в логи.

Доля держателя считается от суммы *полученной выборки*, а не от реального
обращающегося предложения: при выборке топ-20 концентрация завышается,
если у токена длинный хвост мелких держателей. Это осознанное приближение.
"""

from __future__ import annotations

from typing import Any, Iterable

import aiohttp
from loguru import logger

from config.settings import HeliusSettings, get_settings
from tokentrust.schemas import HolderBreakdown, HolderSample, LPVault, TokenMetadata
from .http import JsonHttpClient, ProviderFailure, require_secret

# Известные программы DEX, владеющие LP-хранилищами.
DEX_PROGRAMS: dict[str, str] = {
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8": "Raydium AMM",
    "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK": "Raydium CLMM",
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc": "Orca Whirlpool",
    "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo": "Meteora DLMM",
    "Eo7WjKq67rjJQSZxS6z3YkapzY3eBj6xGaBpnh77SXfQ": "Meteora Pools",
}


class HeliusClient(JsonHttpClient):
    """ChainDataProvider поверх Helius DAS API."""

    provider_name = "helius"

    def __init__(
        self,
        settings: HeliusSettings | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._settings = settings or get_settings().helius
        super().__init__(timeout=self._settings.request_timeout, session=session)

    async def rpc_call(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Выполняет JSON-RPC вызов к Helius."""

        api_key = require_secret(self._settings.api_key, "HELIUS__API_KEY")
        payload = {"jsonrpc": "2.0", "id": "tokentrust", "method": method, "params": params or {}}
        data = await self._request_json(
            "POST",
            str(self._settings.rpc_url),
            params={"api-key": api_key},
            payload=payload,
        )
        if not isinstance(data, dict):
            raise ProviderFailure(self.provider_name, f"RPC {method} вернул не объект")
        if "error" in data:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderFailure(self.provider_name, f"RPC ошибка {method}: {message}")
        return data.get("result")

    async def fetch_token_metadata(self, mint: str) -> TokenMetadata | None:
        """Метаданные токена; None, если ассет не найден."""

        try:
            asset = await self.rpc_call("getAsset", {"id": mint})
        except ProviderFailure as exc:
            if "not found" in str(exc).lower():
                return None
            raise
        if not isinstance(asset, dict) or not asset:
            return None
        try:
            return parse_asset(mint, asset)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderFailure(self.provider_name, f"некорректный ассет {mint}: {exc}") from exc

    async def fetch_top_holders(self, mint: str, limit: int = 20) -> list[HolderSample]:
        """Топ держателей по убыванию баланса (доли: от суммы выборки)."""

        result = await self.rpc_call("getTokenAccounts", {"mint": mint, "limit": limit, "page": 1})
        accounts = result.get("token_accounts") if isinstance(result, dict) else None
        if not isinstance(accounts, list):
            return []
        return build_holder_sample(accounts)


def parse_asset(mint: str, asset: dict[str, Any]) -> TokenMetadata:
    content = asset.get("content") or {}
    metadata = content.get("metadata") or {}
    links = content.get("links") or {}
    token_info = asset.get("token_info") or {}
    return TokenMetadata(
        mint=str(asset.get("id") or mint),
        name=str(metadata.get("name") or ""),
        symbol=str(metadata.get("symbol") or ""),
        description=str(metadata.get("description") or ""),
        image=links.get("image") or None,
        decimals=token_info.get("decimals"),
        supply=token_info.get("supply"),
        update_authority=resolve_update_authority(asset),
        mint_authority=token_info.get("mint_authority") or None,
        freeze_authority=token_info.get("freeze_authority") or None,
        raw=asset,
    )


def resolve_update_authority(asset: dict[str, Any]) -> str | None:
    """Адрес деплоера: scope "full" → первый authority → расширение Token-2022."""

    authorities = [
        item for item in asset.get("authorities") or [] if isinstance(item, dict) and item.get("address")
    ]
    if authorities:
        for item in authorities:
            if "full" in (item.get("scopes") or []):
                return item["address"]
        return authorities[0]["address"]
    extension = (asset.get("mint_extensions") or {}).get("metadata") or {}
    return extension.get("update_authority") or extension.get("updateAuthority") or None


def build_holder_sample(accounts: Iterable[dict[str, Any]]) -> list[HolderSample]:
    balances: list[tuple[str, float]] = []
    for account in accounts:
        if not isinstance(account, dict):
            continue
        owner = account.get("owner")
        try:
            amount = float(account.get("amount") or 0)
        except (TypeError, ValueError):
            logger.debug("Helius: нечисловой amount у {owner}", owner=owner)
            continue
        if owner and amount > 0:
            balances.append((owner, amount))
    total = sum(amount for _, amount in balances)
    if total <= 0:
        return []
    holders = [
        HolderSample(owner=owner, amount=amount, percentage=amount / total * 100)
        for owner, amount in balances
    ]
    holders.sort(key=lambda holder: holder.amount, reverse=True)
    return holders


def classify_lp_holders(holders: Iterable[HolderSample]) -> HolderBreakdown:
    """Отделяет LP-хранилища известных DEX от обычных кошельков."""

    regular: list[HolderSample] = []
    vaults: list[LPVault] = []
    for holder in holders:
        dex = DEX_PROGRAMS.get(holder.owner)
        if dex is None:
            regular.append(holder)
            continue
        vaults.append(
            LPVault(dex=dex, owner=holder.owner, amount=holder.amount, percentage=holder.percentage)
        )
    return HolderBreakdown(
        holders=tuple(regular),
        lp_vaults=tuple(vaults),
        lp_supply_percent=sum(vault.percentage for vault in vaults),
    )


__all__ = [
    "DEX_PROGRAMS",
    "HeliusClient",
    "build_holder_sample",
    "classify_lp_holders",
    "parse_asset",
    "resolve_update_authority",
]
