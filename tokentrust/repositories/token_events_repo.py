"""Лента новых токенов из Jupiter и DexScreener."""

from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tokentrust.models import NewTokenEvent, TokenEventSource


async def get_token_event(session: AsyncSession, mint: str) -> NewTokenEvent | None:
    stmt = select(NewTokenEvent).where(NewTokenEvent.mint == mint)
    return (await session.exec(stmt)).one_or_none()


async def insert_new_token_if_absent(
    session: AsyncSession,
    mint: str,
    *,
    source: TokenEventSource | str,
    name: str | None = None,
    symbol: str | None = None,
    image_url: str | None = None,
) -> NewTokenEvent | None:
    """Возвращает новую запись или None, если mint уже в ленте."""

    if await get_token_event(session, mint) is not None:
        return None
    event = NewTokenEvent(
        mint=mint,
        source=TokenEventSource(source).value,
        name=name,
        symbol=symbol,
        image_url=image_url,
    )
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


async def list_unanalyzed(session: AsyncSession, limit: int = 5) -> list[NewTokenEvent]:
    stmt = (
        select(NewTokenEvent)
        .where(NewTokenEvent.analyzed == False)  # noqa: E712
        .order_by(NewTokenEvent.created_at.desc())
        .limit(limit)
    )
    return list((await session.exec(stmt)).all())


async def mark_analyzed(
    session: AsyncSession,
    mint: str,
    *,
    trust_rating: int,
    deployer_tier: str | None,
    name: str | None = None,
    symbol: str | None = None,
    image_url: str | None = None,
) -> NewTokenEvent | None:
    """Помечает событие проанализированным; пустые поля анализа не затирают ленту."""

    event = await get_token_event(session, mint)
    if event is None:
        return None
    event.analyzed = True
    event.trust_rating = trust_rating
    event.deployer_tier = deployer_tier
    event.name = name or event.name
    event.symbol = symbol or event.symbol
    event.image_url = image_url or event.image_url
    event.touch()
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


__all__ = [
    "get_token_event",
    "insert_new_token_if_absent",
    "list_unanalyzed",
    "mark_analyzed",
]
