"""Глобальные настройки TokenTrust.

Настройки разделены по провайдерам (FairScale, Helius, DexScreener, RugCheck,
Jupiter) и по слоям движка (кеш, база, анализ, фоновое обновление).
Вся конфигурация загружается из переменных окружения через Pydantic Settings,
ключи API передаются как SecretStr и проверяются при первом обращении.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    Field,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ACCESSIBLE_ENV_FILE = BASE_DIR / "config" / "runtime.env"
DEFAULT_ENV_FILE = BASE_DIR / ".env"
ENV_FILE = ACCESSIBLE_ENV_FILE if ACCESSIBLE_ENV_FILE.exists() else DEFAULT_ENV_FILE

HOUR_SECONDS = 60 * 60


class FairScaleSettings(BaseModel):
    """API репутации кошельков FairScale."""

    api_key: SecretStr | None = Field(None, description="Заголовок fairkey")
    base_url: AnyHttpUrl = Field("https://api.fairscale.xyz")
    request_timeout: PositiveFloat = 10.0

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class HeliusSettings(BaseModel):
    """Helius DAS JSON-RPC (метаданные токена и держатели)."""

    api_key: SecretStr | None = Field(None, description="Передаётся как ?api-key=")
    rpc_url: AnyHttpUrl = Field("https://mainnet.helius-rpc.com/")
    request_timeout: PositiveFloat = 10.0

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class DexScreenerSettings(BaseModel):
    """Публичный API DexScreener (без ключа)."""

    base_url: AnyHttpUrl = Field("https://api.dexscreener.com")
    chain_id: str = "solana"
    request_timeout: PositiveFloat = 10.0
    profiles_ttl_seconds: PositiveInt = 5 * 60


class RugCheckSettings(BaseModel):
    """Статический анализ рисков RugCheck.xyz (без ключа)."""

    base_url: AnyHttpUrl = Field("https://api.rugcheck.xyz")
    request_timeout: PositiveFloat = 10.0


class JupiterSettings(BaseModel):
    """Jupiter Tokens API: verified-список и свежие листинги."""

    api_key: SecretStr | None = Field(None, description="x-api-key, опционален")
    base_url: AnyHttpUrl = Field("https://api.jup.ag")
    request_timeout: PositiveFloat = 10.0
    verified_ttl_seconds: PositiveInt = HOUR_SECONDS
    recent_ttl_seconds: PositiveInt = 5 * 60


class CacheSettings(BaseModel):
    """TTL основного кеша по типам сущностей и горячий кеш aiocache."""

    wallet_score_ttl_seconds: PositiveInt = HOUR_SECONDS
    token_analysis_ttl_seconds: PositiveInt = HOUR_SECONDS
    liquidity_ttl_seconds: PositiveInt = HOUR_SECONDS
    risk_report_ttl_seconds: PositiveInt = HOUR_SECONDS
    backend: Literal["memory", "redis"] = "memory"
    ttl_seconds: PositiveInt = 5 * 60
    redis_dsn: str | None = None


class DatabaseSettings(BaseModel):
    """SQLModel + aiosqlite (по умолчанию) и готовность к Postgres."""

    dsn: str = Field(
        "sqlite+aiosqlite:///./database/tokentrust.db",
        description="Строка подключения SQLAlchemy/SQLModel",
    )
    echo: bool = False


class AnalysisSettings(BaseModel):
    """Размеры выборок и поведение оркестратора анализа."""

    holder_sample_size: PositiveInt = 20
    scored_holder_limit: PositiveInt = 10
    coalesce_inflight: bool = Field(
        False,
        description="Объединять одновременные холодные запросы одного mint в один фетч",
    )


class RefreshSettings(BaseModel):
    """Фоновое обновление популярных и устаревших токенов."""

    interval_sec: PositiveInt = 20 * 60
    stale_limit: PositiveInt = 10
    ingest_limit: PositiveInt = 20
    enrich_limit: PositiveInt = 5
    popular_mints: list[str] = Field(
        default_factory=lambda: [
            "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",  # USDC
            "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",  # USDT
            "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So",  # mSOL
            "HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3",  # PYTH
            "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE",  # ORCA
            "hntyVP6YFm1Hg25TN9WGLqM12b8TQmcknKrdu1oxWux",  # HNT
            "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",  # JUP
            "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn",  # JitoSOL
            "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R",  # RAY
            "rndrizKT3MK1iimdxRdWabcF7Zg7AR5T4nud4EkHBof",  # RENDER
            "TNSRxcUxoT9xBG3de7PiJyTDYu7kskLqcpddxnEJAS6",  # TNSR
            "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",  # BONK
            "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",  # WIF
        ]
    )


class AppSettings(BaseSettings):
    """Главный контейнер настроек TokenTrust."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: Literal["dev", "prod"] = "dev"
    log_json: bool = False
    log_level: str = "DEBUG"
    fairscale: FairScaleSettings = FairScaleSettings()
    helius: HeliusSettings = HeliusSettings()
    dexscreener: DexScreenerSettings = DexScreenerSettings()
    rugcheck: RugCheckSettings = RugCheckSettings()
    jupiter: JupiterSettings = JupiterSettings()
    cache: CacheSettings = CacheSettings()
    database: DatabaseSettings = DatabaseSettings()
    analysis: AnalysisSettings = AnalysisSettings()
    refresh: RefreshSettings = RefreshSettings()

    @property
    def is_production(self) -> bool:
        """True, если движок запущен в продовой среде."""

        return self.environment == "prod"


# Ленивый синглтон (избегаем глобальных переменных в модулях).
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Возвращает единый экземпляр настроек.

    Используется как значение по умолчанию в конструкторах клиентов и сервисов;
    тесты передают собственные секции настроек напрямую.
    """

    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


__all__ = [
    "AnalysisSettings",
    "AppSettings",
    "CacheSettings",
    "DatabaseSettings",
    "DexScreenerSettings",
    "FairScaleSettings",
    "HeliusSettings",
    "JupiterSettings",
    "RefreshSettings",
    "RugCheckSettings",
    "get_settings",
]
