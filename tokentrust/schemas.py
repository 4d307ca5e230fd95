"""Объекты-значения движка TokenTrust.

Кешируемые сущности (репутация кошелька, анализ токена, ликвидность, отчёт
о рисках) это неизменяемые pydantic-модели: они сериализуются в JSON для
хранилища и валидируются обратно при чтении. Эфемерные значения одного
анализа остаются обычными dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from tokentrust.services.scoring.tiers import Tier, classify_tier


class EntityType(str, Enum):
    """Тип сущности основного кеша (у каждого свой TTL)."""

    WALLET_SCORE = "wallet_score"
    TOKEN_ANALYSIS = "token_analysis"
    LIQUIDITY = "liquidity"
    RISK_REPORT = "risk_report"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    GOOD = "Good"
    WARNING = "Warning"
    DANGER = "Danger"
    UNKNOWN = "Unknown"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Badge(FrozenModel):
    """Бейдж FairScale, выданный кошельку."""

    id: str
    label: str
    description: str = ""
    tier: Tier = Tier.BRONZE
    awarded_at: str | None = None


class WalletReputation(FrozenModel):
    """Нормализованная репутация кошелька.

    Тир не хранится отдельно: он всегда вычисляется из integer_score.
    """

    wallet: str
    decimal_score: float = Field(ge=0, le=100)
    integer_score: int = Field(ge=0)
    wallet_score: int | None = Field(default=None, ge=0)
    badges: tuple[Badge, ...] = ()
    fetched_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tier(self) -> Tier:
        return classify_tier(self.integer_score)


class RiskFlag(FrozenModel):
    id: str
    severity: Severity
    label: str
    description: str


class LPVault(FrozenModel):
    """Позиция в LP-хранилище известного DEX."""

    dex: str
    owner: str
    amount: float
    percentage: float


class ScoreBreakdown(FrozenModel):
    """Пять нормализованных подоценок и итоговый рейтинг."""

    deployer: float = Field(ge=0, le=100)
    holder_quality: float = Field(ge=0, le=100)
    distribution: float = Field(ge=0, le=100)
    age: float = Field(ge=0, le=100)
    patterns: float = Field(ge=0, le=100)
    trust_rating: int = Field(ge=0, le=100)


class TokenAnalysis(FrozenModel):
    """Результат анализа токена; новый анализ вытесняет, а не изменяет старый."""

    mint: str
    name: str | None = None
    symbol: str | None = None
    image_url: str | None = None
    deployer_wallet: str | None = None
    deployer_score: int | None = None
    trust_rating: int = Field(ge=0, le=100)
    holder_quality_score: int = Field(ge=0, le=100)
    holder_count: int = Field(ge=0)
    top_holder_concentration: float = Field(ge=0, le=100)
    risk_flags: tuple[RiskFlag, ...] = ()
    score_breakdown: ScoreBreakdown
    lp_supply_percent: float = 0.0
    lp_vaults: tuple[LPVault, ...] = ()
    mint_authority_active: bool = False
    freeze_authority_active: bool = False
    jupiter_verified: bool = False
    analyzed_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def deployer_tier(self) -> Tier | None:
        if self.deployer_score is None:
            return None
        return classify_tier(self.deployer_score)


class LiquiditySnapshot(FrozenModel):
    """Агрегированная по всем пулам ликвидность токена."""

    mint: str
    total_liquidity_usd: float = 0.0
    volume_24h: float = 0.0
    volume_liquidity_ratio: float = 0.0
    pool_count: int = 0
    primary_dex: str | None = None
    fdv: float = 0.0
    market_cap: float = 0.0
    price_usd: float = 0.0
    fetched_at: datetime


class RiskEntry(FrozenModel):
    name: str
    description: str = ""
    level: str = "warn"
    score: float = 0.0


class RiskReport(FrozenModel):
    """Сводный отчёт статического анализа рисков."""

    mint: str
    risk_level: RiskLevel
    risk_count: int
    score: float
    risks: tuple[RiskEntry, ...] = ()
    fetched_at: datetime


@dataclass(slots=True, frozen=True)
class HolderSample:
    """Держатель из выборки; percentage: доля от суммы выборки."""

    owner: str
    amount: float
    percentage: float


@dataclass(slots=True, frozen=True)
class HolderScore:
    """Держатель с быстрым скором FairScale (None: неизвестен)."""

    owner: str
    amount: float
    percentage: float
    score: int | None
    tier: Tier


@dataclass(slots=True, frozen=True)
class HolderBreakdown:
    holders: tuple[HolderSample, ...]
    lp_vaults: tuple[LPVault, ...]
    lp_supply_percent: float


@dataclass(slots=True, frozen=True)
class TokenMetadata:
    """Метаданные токена из DAS getAsset."""

    mint: str
    name: str
    symbol: str
    description: str = ""
    image: str | None = None
    decimals: int | None = None
    supply: float | None = None
    update_authority: str | None = None
    mint_authority: str | None = None
    freeze_authority: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(slots=True, frozen=True)
class FairScaleProfile:
    """Детальный профиль кошелька из /score."""

    wallet: str
    decimal_score: float
    badges: tuple[Badge, ...] = ()


@dataclass(slots=True, frozen=True)
class TokenProfile:
    """Элемент ленты свежих профилей DexScreener."""

    mint: str
    chain_id: str
    icon: str | None = None
    url: str | None = None
    description: str | None = None


@dataclass(slots=True, frozen=True)
class RecentToken:
    """Свежий листинг Jupiter."""

    mint: str
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    logo_uri: str | None = None


@dataclass(slots=True, frozen=True)
class DeployerProfile:
    """Репутация деплоера и токены, где он указан как deployer_wallet."""

    wallet: str
    reputation: WalletReputation | None
    deployed_tokens: tuple[TokenAnalysis, ...] = ()

    @property
    def token_count(self) -> int:
        return len(self.deployed_tokens)


@dataclass(slots=True, frozen=True)
class ScoreSnapshot:
    """Дневной снимок рейтинга токена."""

    mint: str
    trust_rating: int
    holder_count: int
    risk_flag_count: int
    recorded_at: datetime


__all__ = [
    "Badge",
    "DeployerProfile",
    "EntityType",
    "FairScaleProfile",
    "FrozenModel",
    "HolderBreakdown",
    "HolderSample",
    "HolderScore",
    "LPVault",
    "LiquiditySnapshot",
    "RecentToken",
    "RiskEntry",
    "RiskFlag",
    "RiskLevel",
    "RiskReport",
    "ScoreBreakdown",
    "ScoreSnapshot",
    "Severity",
    "Tier",
    "TokenAnalysis",
    "TokenMetadata",
    "TokenProfile",
    "WalletReputation",
]
