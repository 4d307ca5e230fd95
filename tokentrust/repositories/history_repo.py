"""Дневные снимки рейтинга токенов."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tokentrust.models import TokenScoreHistory
from tokentrust.models.base import as_utc, utcnow
from tokentrust.schemas import ScoreSnapshot


def _day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    start = as_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def record_daily_snapshot(
    session: AsyncSession,
    mint: str,
    trust_rating: int,
    holder_count: int,
    risk_flag_count: int,
    recorded_at: datetime | None = None,
) -> TokenScoreHistory | None:
    """Пишет снимок, только если за эти UTC-сутки его ещё нет."""

    moment = as_utc(recorded_at or utcnow())
    start, end = _day_bounds(moment)
    stmt = (
        select(TokenScoreHistory)
        .where(TokenScoreHistory.mint == mint)
        .where(TokenScoreHistory.recorded_at >= start)
        .where(TokenScoreHistory.recorded_at < end)
        .limit(1)
    )
    if (await session.exec(stmt)).first() is not None:
        return None
    row = TokenScoreHistory(
        mint=mint,
        trust_rating=trust_rating,
        holder_count=holder_count,
        risk_flag_count=risk_flag_count,
        recorded_at=moment,
    )
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def list_snapshots(session: AsyncSession, mint: str, limit: int = 30) -> list[TokenScoreHistory]:
    stmt = (
        select(TokenScoreHistory)
        .where(TokenScoreHistory.mint == mint)
        .order_by(TokenScoreHistory.recorded_at.desc())
        .limit(limit)
    )
    return list((await session.exec(stmt)).all())


class SqlScoreHistory:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def record(self, snapshot: ScoreSnapshot) -> bool:
        async with self._session_maker() as session:
            row = await record_daily_snapshot(
                session,
                snapshot.mint,
                snapshot.trust_rating,
                snapshot.holder_count,
                snapshot.risk_flag_count,
                recorded_at=snapshot.recorded_at,
            )
        return row is not None

    async def history(self, mint: str, limit: int = 30) -> list[ScoreSnapshot]:
        async with self._session_maker() as session:
            rows = await list_snapshots(session, mint, limit)
        return [
            ScoreSnapshot(
                mint=row.mint,
                trust_rating=row.trust_rating,
                holder_count=row.holder_count,
                risk_flag_count=row.risk_flag_count,
                recorded_at=as_utc(row.recorded_at),
            )
            for row in rows
        ]


__all__ = ["SqlScoreHistory", "list_snapshots", "record_daily_snapshot"]
