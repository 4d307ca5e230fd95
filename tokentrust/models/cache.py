"""Таблицы основного кеша: по одной на тип сущности."""

from __future__ import annotations

from typing import ClassVar, Optional

from sqlmodel import Field

from .base import CacheEntryModel


class CachedScore(CacheEntryModel, table=True):
    __tablename__ = "cached_scores"
    key_field: ClassVar[str] = "wallet"

    id: Optional[int] = Field(default=None, primary_key=True)
    wallet: str = Field(max_length=64, unique=True, index=True)


class TokenAnalysisEntry(CacheEntryModel, table=True):
    __tablename__ = "token_analyses"
    key_field: ClassVar[str] = "mint"

    id: Optional[int] = Field(default=None, primary_key=True)
    mint: str = Field(max_length=64, unique=True, index=True)
    deployer_wallet: Optional[str] = Field(default=None, max_length=64, index=True)

    def index_payload(self) -> None:
        self.deployer_wallet = self.payload.get("deployer_wallet") or None


class LiquidityEntry(CacheEntryModel, table=True):
    __tablename__ = "dexscreener_cache"
    key_field: ClassVar[str] = "mint"

    id: Optional[int] = Field(default=None, primary_key=True)
    mint: str = Field(max_length=64, unique=True, index=True)


class RiskReportEntry(CacheEntryModel, table=True):
    __tablename__ = "rugcheck_cache"
    key_field: ClassVar[str] = "mint"

    id: Optional[int] = Field(default=None, primary_key=True)
    mint: str = Field(max_length=64, unique=True, index=True)


__all__ = ["CachedScore", "LiquidityEntry", "RiskReportEntry", "TokenAnalysisEntry"]
