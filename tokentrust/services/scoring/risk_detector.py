"""Правила риск-флагов токена.

Каждое правило есть независимый предикат над одним неизменяемым снимком
входных данных. Порядок списка задаёт порядок флагов в ответе; концентрация
оформлена одним правилом, чтобы из трёх её ступеней срабатывала максимум одна.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from tokentrust.schemas import HolderSample, RiskFlag, Severity, TokenMetadata

LOW_DEPLOYER_SCORE = 100
MIN_HOLDER_COUNT = 5

# (порог доли топ-держателя, серьёзность, заголовок): по убыванию порога.
CONCENTRATION_TIERS: tuple[tuple[float, Severity, str], ...] = (
    (80.0, Severity.HIGH, "Concentrated Holdings"),
    (50.0, Severity.MEDIUM, "Concentrated Holdings"),
    (25.0, Severity.LOW, "Significant Concentration"),
)


@dataclass(slots=True, frozen=True)
class RiskSnapshot:
    deployer_score: int | None
    holder_count: int
    top_holder_percentage: float | None
    mint_authority: str | None
    freeze_authority: str | None

    @classmethod
    def build(
        cls,
        deployer_score: int | None,
        holders: Sequence[HolderSample],
        metadata: TokenMetadata,
    ) -> "RiskSnapshot":
        return cls(
            deployer_score=deployer_score,
            holder_count=len(holders),
            top_holder_percentage=holders[0].percentage if holders else None,
            mint_authority=metadata.mint_authority,
            freeze_authority=metadata.freeze_authority,
        )


@dataclass(slots=True, frozen=True)
class RiskFinding:
    severity: Severity
    label: str
    description: str


RiskRule = Callable[[RiskSnapshot], Optional[RiskFinding]]


def low_deployer_score(snapshot: RiskSnapshot) -> RiskFinding | None:
    # Отсутствие скора не флагуется: деплоеры часто программные кошельки без истории.
    score = snapshot.deployer_score
    if score is None or score >= LOW_DEPLOYER_SCORE:
        return None
    return RiskFinding(
        Severity.MEDIUM,
        "Low Deployer Score",
        f"The token deployer has a FairScore of {score}.",
    )


def holder_concentration(snapshot: RiskSnapshot) -> RiskFinding | None:
    share = snapshot.top_holder_percentage
    if share is None:
        return None
    for threshold, severity, label in CONCENTRATION_TIERS:
        if share > threshold:
            return RiskFinding(
                severity,
                label,
                f"The top holder owns {share:.1f}% of the sampled supply.",
            )
    return None


def low_holder_count(snapshot: RiskSnapshot) -> RiskFinding | None:
    if snapshot.holder_count >= MIN_HOLDER_COUNT:
        return None
    return RiskFinding(
        Severity.MEDIUM,
        "Low Holder Count",
        f"Only {snapshot.holder_count} holder(s) found, indicating very low distribution.",
    )


def active_mint_authority(snapshot: RiskSnapshot) -> RiskFinding | None:
    if not snapshot.mint_authority:
        return None
    return RiskFinding(
        Severity.LOW,
        "Active Mint Authority",
        f"Mint authority {snapshot.mint_authority} is still active and can mint additional supply.",
    )


def active_freeze_authority(snapshot: RiskSnapshot) -> RiskFinding | None:
    if not snapshot.freeze_authority:
        return None
    return RiskFinding(
        Severity.LOW,
        "Active Freeze Authority",
        f"Freeze authority {snapshot.freeze_authority} is still active and can freeze holder accounts.",
    )


RISK_RULES: tuple[RiskRule, ...] = (
    low_deployer_score,
    holder_concentration,
    low_holder_count,
    active_mint_authority,
    active_freeze_authority,
)


def evaluate_rules(
    snapshot: RiskSnapshot, rules: Sequence[RiskRule] = RISK_RULES
) -> list[RiskFlag]:
    """Идентификаторы rf-1, rf-2, ... уникальны только в пределах одного прогона."""

    flags: list[RiskFlag] = []
    for rule in rules:
        finding = rule(snapshot)
        if finding is None:
            continue
        flags.append(
            RiskFlag(
                id=f"rf-{len(flags) + 1}",
                severity=finding.severity,
                label=finding.label,
                description=finding.description,
            )
        )
    return flags


def detect_risk_flags(
    deployer_score: int | None,
    holders: Sequence[HolderSample],
    metadata: TokenMetadata,
) -> list[RiskFlag]:
    return evaluate_rules(RiskSnapshot.build(deployer_score, holders, metadata))


__all__ = [
    "CONCENTRATION_TIERS",
    "RISK_RULES",
    "RiskFinding",
    "RiskRule",
    "RiskSnapshot",
    "detect_risk_flags",
    "evaluate_rules",
]
