"""Композитный рейтинг доверия токена (0-100).

Пять подоценок нормализуются в [0, 100] и складываются с фиксированными
весами. Сумма считается в Decimal, поэтому итог детерминирован и округление
половины идёт вверх (86.5 -> 87), как в исходной формуле рейтинга.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Sequence

from tokentrust.schemas import HolderSample, RiskFlag, ScoreBreakdown, Severity

SCORE_WEIGHTS: Mapping[str, Decimal] = {
    "deployer": Decimal("0.15"),
    "holder_quality": Decimal("0.30"),
    "distribution": Decimal("0.20"),
    "age": Decimal("0.15"),
    "patterns": Decimal("0.20"),
}

if sum(SCORE_WEIGHTS.values()) != Decimal(1):
    raise RuntimeError(f"Веса рейтинга должны давать в сумме 1, получено {sum(SCORE_WEIGHTS.values())}")

NEUTRAL_SCORE = 50.0
# Заглушка до появления реального сигнала возраста кошелька деплоера.
AGE_SIGNAL_PLACEHOLDER = 50.0

DEPLOYER_SCORE_CEILING = 850
DEPLOYER_SCORE_FLOOR = 30.0
HOLDER_COUNT_BONUS_CAP = 20

FLAG_PENALTIES: Mapping[Severity, int] = {
    Severity.CRITICAL: 30,
    Severity.HIGH: 20,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def deployer_component(deployer_score: int | None) -> float:
    """Любой деплоер со скором получает минимум 30; без скора получает нейтральные 50."""

    if deployer_score is None:
        return NEUTRAL_SCORE
    return max(DEPLOYER_SCORE_FLOOR, min(100.0, deployer_score / DEPLOYER_SCORE_CEILING * 100))


def holder_quality_component(scores: Iterable[int | None]) -> float:
    normalized = [
        NEUTRAL_SCORE if score is None else clamp(score / 1000 * 100)
        for score in scores
    ]
    if not normalized:
        return NEUTRAL_SCORE
    return sum(normalized) / len(normalized)


def distribution_component(holders: Sequence[HolderSample]) -> float:
    if len(holders) <= 1:
        return 0.0
    top = holders[0].percentage
    return min(100.0, max(0.0, 100 - top) + min(HOLDER_COUNT_BONUS_CAP, len(holders)))


def age_component() -> float:
    return AGE_SIGNAL_PLACEHOLDER


def pattern_component(flags: Iterable[RiskFlag]) -> float:
    penalty = sum(FLAG_PENALTIES[flag.severity] for flag in flags)
    return max(0.0, 100.0 - penalty)


def weighted_rating(components: Mapping[str, float]) -> int:
    total = sum(
        (weight * Decimal(str(clamp(components[name]))) for name, weight in SCORE_WEIGHTS.items()),
        Decimal(0),
    )
    return int(clamp(round_half_up(total)))


def compute_trust_rating(
    deployer_score: int | None,
    holder_scores: Iterable[int | None],
    holders: Sequence[HolderSample],
    risk_flags: Iterable[RiskFlag],
) -> ScoreBreakdown:
    components = {
        "deployer": clamp(deployer_component(deployer_score)),
        "holder_quality": clamp(holder_quality_component(holder_scores)),
        "distribution": clamp(distribution_component(holders)),
        "age": clamp(age_component()),
        "patterns": clamp(pattern_component(risk_flags)),
    }
    return ScoreBreakdown(**components, trust_rating=weighted_rating(components))


__all__ = [
    "AGE_SIGNAL_PLACEHOLDER",
    "FLAG_PENALTIES",
    "SCORE_WEIGHTS",
    "age_component",
    "clamp",
    "compute_trust_rating",
    "deployer_component",
    "distribution_component",
    "holder_quality_component",
    "pattern_component",
    "round_half_up",
    "weighted_rating",
]
