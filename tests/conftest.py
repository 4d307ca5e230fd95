"""Общие фикстуры тестов TokenTrust: часы, хранилища, фейковые провайдеры."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from tokentrust.db import create_session_maker, init_db
from tokentrust.schemas import EntityType, FairScaleProfile, HolderSample, TokenMetadata
from tokentrust.services.providers.http import ProviderFailure
from tokentrust.services.scoring.freshness_cache import CacheRecord, FreshnessCache

START = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)
DEPLOYER = "Dep1oyerWa11et111111111111111111111111111111"


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class DictCacheStore:
    """CacheStore в памяти с подсчётом обращений."""

    def __init__(self) -> None:
        self.records: dict[tuple[EntityType, str], CacheRecord] = {}
        self.reads = 0
        self.writes = 0

    async def read(self, entity_type: EntityType, key: str) -> CacheRecord | None:
        self.reads += 1
        return self.records.get((entity_type, key))

    async def upsert(
        self,
        entity_type: EntityType,
        key: str,
        payload: dict[str, Any],
        fetched_at: datetime,
    ) -> None:
        self.writes += 1
        self.records[(entity_type, key)] = CacheRecord(key=key, payload=payload, fetched_at=fetched_at)


class FakeFairScale:
    """FairScale без сети: профили, быстрые скоры и сбои по кошельку."""

    def __init__(self) -> None:
        self.profiles: dict[str, FairScaleProfile] = {}
        self.quick: dict[str, int] = {}
        self.wallet_scores: dict[str, int] = {}
        self.errors: dict[str, BaseException] = {}
        self.profile_calls = 0
        self.quick_calls = 0

    async def fetch_detailed_profile(self, wallet: str) -> FairScaleProfile | None:
        self.profile_calls += 1
        if wallet in self.errors:
            raise self.errors[wallet]
        return self.profiles.get(wallet)

    async def fetch_quick_score(self, wallet: str) -> int | None:
        self.quick_calls += 1
        if wallet in self.errors:
            raise self.errors[wallet]
        return self.quick.get(wallet)

    async def fetch_wallet_score(self, wallet: str) -> int | None:
        if wallet in self.errors:
            raise self.errors[wallet]
        return self.wallet_scores.get(wallet)


class FakeHelius:
    def __init__(self) -> None:
        self.metadata: dict[str, TokenMetadata] = {}
        self.holders: dict[str, list[HolderSample]] = {}
        self.metadata_error: BaseException | None = None
        self.holders_error: BaseException | None = None
        self.metadata_calls = 0
        self.holder_calls = 0

    async def fetch_token_metadata(self, mint: str) -> TokenMetadata | None:
        self.metadata_calls += 1
        await asyncio.sleep(0)
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.metadata.get(mint)

    async def fetch_top_holders(self, mint: str, limit: int = 20) -> list[HolderSample]:
        self.holder_calls += 1
        if self.holders_error is not None:
            raise self.holders_error
        return self.holders.get(mint, [])[:limit]


def make_metadata(mint: str, **overrides: Any) -> TokenMetadata:
    fields: dict[str, Any] = {
        "mint": mint,
        "name": "Trusty",
        "symbol": "TRST",
        "image": "https://example.org/trst.png",
        "decimals": 6,
        "supply": 1_000_000.0,
        "update_authority": DEPLOYER,
    }
    fields.update(overrides)
    return TokenMetadata(**fields)


def spread_holders(count: int = 20, top_percentage: float = 10.0) -> list[HolderSample]:
    """Выборка, где топ-держатель владеет top_percentage, остальные поровну."""

    holders = [HolderSample(owner="holder-00", amount=top_percentage * 1000, percentage=top_percentage)]
    rest = (100.0 - top_percentage) / (count - 1)
    holders.extend(
        HolderSample(owner=f"holder-{index:02d}", amount=rest * 1000, percentage=rest)
        for index in range(1, count)
    )
    return holders


def provider_failure(provider: str = "fake", status: int | None = 500) -> ProviderFailure:
    return ProviderFailure(provider, "upstream broke", status=status)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> DictCacheStore:
    return DictCacheStore()


@pytest.fixture
def ttls() -> dict[EntityType, timedelta]:
    return {entity: HOUR for entity in EntityType}


@pytest.fixture
def cache(store: DictCacheStore, ttls: dict[EntityType, timedelta], clock: FakeClock) -> FreshnessCache:
    return FreshnessCache(store, ttls, clock=clock)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tokentrust.db'}", poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)
