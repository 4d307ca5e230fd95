"""FreshnessCache: read-through кеш с TTL на каждый тип сущности.

Кеш не держит данные сущностей в памяти процесса: каждое чтение и запись
идут в CacheStore (внешнее хранилище key-value с upsert). Запись считается
валидной, пока now - fetched_at < TTL своего типа; протухшая запись для
вызывающего неотличима от промаха.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Generic, Mapping, Protocol, TypeVar

from loguru import logger
from pydantic import BaseModel

from config.settings import CacheSettings, get_settings
from tokentrust.models.base import as_utc, utcnow
from tokentrust.schemas import (
    EntityType,
    LiquiditySnapshot,
    RiskReport,
    TokenAnalysis,
    WalletReputation,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

ENTITY_MODELS: Mapping[EntityType, type[BaseModel]] = {
    EntityType.WALLET_SCORE: WalletReputation,
    EntityType.TOKEN_ANALYSIS: TokenAnalysis,
    EntityType.LIQUIDITY: LiquiditySnapshot,
    EntityType.RISK_REPORT: RiskReport,
}


@dataclass(slots=True, frozen=True)
class CacheRecord:
    key: str
    payload: dict[str, Any]
    fetched_at: datetime


class CacheStore(Protocol):
    """Внешнее хранилище: upsert/read по натуральному ключу и типу сущности."""

    async def read(self, entity_type: EntityType, key: str) -> CacheRecord | None: ...

    async def upsert(
        self,
        entity_type: EntityType,
        key: str,
        payload: dict[str, Any],
        fetched_at: datetime,
    ) -> None: ...


@dataclass(slots=True, frozen=True)
class CacheLookup(Generic[ModelT]):
    """Результат get: value есть только у валидного (не протухшего) попадания."""

    value: ModelT | None
    found: bool
    age_ms: int | None


def ttls_from_settings(settings: CacheSettings) -> dict[EntityType, timedelta]:
    return {
        EntityType.WALLET_SCORE: timedelta(seconds=settings.wallet_score_ttl_seconds),
        EntityType.TOKEN_ANALYSIS: timedelta(seconds=settings.token_analysis_ttl_seconds),
        EntityType.LIQUIDITY: timedelta(seconds=settings.liquidity_ttl_seconds),
        EntityType.RISK_REPORT: timedelta(seconds=settings.risk_report_ttl_seconds),
    }


class FreshnessCache:
    def __init__(
        self,
        store: CacheStore,
        ttls: Mapping[EntityType, timedelta] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._ttls = dict(ttls or ttls_from_settings(get_settings().cache))
        missing = set(EntityType) - set(self._ttls)
        if missing:
            raise ValueError(f"Не заданы TTL для {sorted(item.value for item in missing)}")
        self._clock = clock

    def ttl_for(self, entity_type: EntityType) -> timedelta:
        return self._ttls[entity_type]

    async def get(self, entity_type: EntityType, key: str) -> CacheLookup[Any]:
        record = await self._store.read(entity_type, key)
        if record is None:
            return CacheLookup(value=None, found=False, age_ms=None)
        age = self._clock() - as_utc(record.fetched_at)
        age_ms = int(age.total_seconds() * 1000)
        if age >= self._ttls[entity_type]:
            logger.debug(
                "Кеш {entity}:{key} протух ({age} мс)",
                entity=entity_type.value,
                key=key,
                age=age_ms,
            )
            return CacheLookup(value=None, found=False, age_ms=age_ms)
        value = ENTITY_MODELS[entity_type].model_validate(record.payload)
        return CacheLookup(value=value, found=True, age_ms=age_ms)

    async def put(
        self,
        entity_type: EntityType,
        key: str,
        value: BaseModel,
        fetched_at: datetime | None = None,
    ) -> datetime:
        """Upsert по натуральному ключу; последняя запись выигрывает."""

        if not isinstance(value, ENTITY_MODELS[entity_type]):
            raise TypeError(
                f"{entity_type.value} ожидает {ENTITY_MODELS[entity_type].__name__}, "
                f"получено {type(value).__name__}"
            )
        stamp = fetched_at or self._clock()
        await self._store.upsert(entity_type, key, value.model_dump(mode="json"), stamp)
        return stamp

    async def read_through(
        self,
        entity_type: EntityType,
        key: str,
        fetch: Callable[[], Awaitable[ModelT | None]],
    ) -> ModelT | None:
        """Валидное попадание возвращается сразу; иначе fetch и запись перед возвратом.

        None от fetch (нет данных или провайдер недоступен) не кешируется.
        """

        lookup = await self.get(entity_type, key)
        if lookup.found:
            return lookup.value
        value = await fetch()
        if value is None:
            return None
        await self.put(entity_type, key, value, fetched_at=_value_timestamp(value))
        return value


def _value_timestamp(value: BaseModel) -> datetime | None:
    for name in ("fetched_at", "analyzed_at"):
        stamp = getattr(value, name, None)
        if isinstance(stamp, datetime):
            return stamp
    return None


__all__ = [
    "CacheLookup",
    "CacheRecord",
    "CacheStore",
    "ENTITY_MODELS",
    "FreshnessCache",
    "ttls_from_settings",
]
