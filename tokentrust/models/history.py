"""История рейтингов и лента новых токенов."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimeStampedModel, utcnow


class TokenScoreHistory(SQLModel, table=True):
    """Не больше одного снимка на mint за UTC-сутки."""

    __tablename__ = "token_score_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    mint: str = Field(max_length=64, index=True)
    trust_rating: int = Field(default=0)
    holder_count: int = Field(default=0)
    risk_flag_count: int = Field(default=0)
    recorded_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)


class TokenEventSource(str, Enum):
    JUPITER = "jupiter"
    DEXSCREENER = "dexscreener"


class NewTokenEvent(TimeStampedModel, table=True):
    __tablename__ = "new_token_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    mint: str = Field(max_length=64, unique=True, index=True)
    name: Optional[str] = Field(default=None)
    symbol: Optional[str] = Field(default=None)
    image_url: Optional[str] = Field(default=None)
    source: str = Field(default=TokenEventSource.JUPITER.value, max_length=32)
    analyzed: bool = Field(default=False, index=True)
    trust_rating: int = Field(default=0)
    deployer_tier: Optional[str] = Field(default=None)


__all__ = ["NewTokenEvent", "TokenEventSource", "TokenScoreHistory"]
