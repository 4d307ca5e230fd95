import pytest

from tokentrust.services.scoring.tiers import TIER_THRESHOLDS, Tier, classify_tier

TIER_ORDER = [Tier.UNRATED, Tier.BRONZE, Tier.SILVER, Tier.GOLD, Tier.PLATINUM]


@pytest.mark.parametrize(
    "score,tier",
    [
        (None, Tier.UNRATED),
        (-1, Tier.UNRATED),
        (0, Tier.BRONZE),
        (299, Tier.BRONZE),
        (300, Tier.SILVER),
        (599, Tier.SILVER),
        (600, Tier.GOLD),
        (849, Tier.GOLD),
        (850, Tier.PLATINUM),
        (5000, Tier.PLATINUM),
    ],
)
def test_classify_tier_boundaries(score, tier):
    assert classify_tier(score) is tier


def test_classify_tier_is_monotonic():
    previous = TIER_ORDER.index(classify_tier(0))
    for score in range(0, 1201):
        current = TIER_ORDER.index(classify_tier(score))
        assert current >= previous
        previous = current


def test_thresholds_descending():
    thresholds = [threshold for threshold, _ in TIER_THRESHOLDS]
    assert thresholds == sorted(thresholds, reverse=True)
