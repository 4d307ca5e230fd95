"""SQLModel сущности TokenTrust."""

from .cache import CachedScore, LiquidityEntry, RiskReportEntry, TokenAnalysisEntry  # noqa: F401
from .history import NewTokenEvent, TokenEventSource, TokenScoreHistory  # noqa: F401

__all__ = [
    "CachedScore",
    "LiquidityEntry",
    "NewTokenEvent",
    "RiskReportEntry",
    "TokenAnalysisEntry",
    "TokenEventSource",
    "TokenScoreHistory",
]
