"""Горячий внутрипроцессный кеш (aiocache) для маленьких частых списков.

Не путать с FreshnessCache: здесь живут только низкокардинальные листинги
(свежие профили DexScreener, verified-список и новые токены Jupiter) с
собственным коротким TTL. Данные сущностей сюда не попадают.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

from aiocache import SimpleMemoryCache, caches
from aiocache.base import BaseCache

from config.settings import CacheSettings, get_settings

HOT_CACHE_ALIAS = "default"

_configured = False


def build_cache_config(settings: CacheSettings) -> dict[str, Any]:
    """Конфиг aiocache для выбранного backend (memory/redis)."""

    if settings.backend == "redis":
        from aiocache import RedisCache

        backend: dict[str, Any] = {"cache": RedisCache, **_redis_endpoint(settings.redis_dsn)}
    else:
        backend = {"cache": SimpleMemoryCache}
    return {HOT_CACHE_ALIAS: {**backend, "ttl": settings.ttl_seconds}}


def configure_cache(settings: CacheSettings | None = None) -> None:
    global _configured
    if _configured:
        return
    caches.set_config(build_cache_config(settings or get_settings().cache))
    _configured = True


def get_cache(alias: str = HOT_CACHE_ALIAS) -> BaseCache:
    configure_cache()
    return caches.get(alias)


async def cached_call(
    key: str,
    ttl: int,
    factory: Callable[[], Awaitable[Any]],
    cache: BaseCache | None = None,
) -> Any:
    """Значение из кеша либо результат factory, положенный на ttl секунд.

    Исключение из factory пробрасывается и ничего не кеширует.
    """

    if cache is None:
        cache = get_cache()
    value = await cache.get(key)
    if value is not None:
        return value
    value = await factory()
    await cache.set(key, value, ttl=ttl)
    return value


def _redis_endpoint(dsn: str | None) -> dict[str, Any]:
    if not dsn:
        raise RuntimeError("CACHE__BACKEND=redis, но CACHE__REDIS_DSN не указан")
    parsed = urlparse(dsn)
    if parsed.scheme != "redis":
        raise ValueError(f"Неподдерживаемая схема Redis DSN: {parsed.scheme}")
    path = parsed.path.lstrip("/")
    return {
        "endpoint": parsed.hostname or "localhost",
        "port": parsed.port or 6379,
        "password": parsed.password,
        "db": int(path) if path.isdigit() else 0,
    }


__all__ = ["HOT_CACHE_ALIAS", "build_cache_config", "cached_call", "configure_cache", "get_cache"]
