"""Классификация тиров репутации по целочисленному скору FairScale."""

from __future__ import annotations

from enum import Enum


class Tier(str, Enum):
    UNRATED = "unrated"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


# Пороги по убыванию; первый подходящий определяет тир.
TIER_THRESHOLDS: tuple[tuple[int, Tier], ...] = (
    (850, Tier.PLATINUM),
    (600, Tier.GOLD),
    (300, Tier.SILVER),
    (0, Tier.BRONZE),
)


def classify_tier(score: int | None) -> Tier:
    """Ступенчатая монотонная функция скора (0-1000+) в тир.

    Отсутствующий скор даёт unrated; отрицательных скоров FairScale не отдаёт,
    но и они попадают в unrated.
    """

    if score is None:
        return Tier.UNRATED
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return Tier.UNRATED


__all__ = ["TIER_THRESHOLDS", "Tier", "classify_tier"]
