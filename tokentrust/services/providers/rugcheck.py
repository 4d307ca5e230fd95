"""RugCheck.xyz: сводный статический отчёт о рисках токена (без ключа)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError

from config.settings import RugCheckSettings, get_settings
from tokentrust.models.base import utcnow
from tokentrust.schemas import RiskEntry, RiskLevel, RiskReport
from .http import JsonHttpClient, ProviderFailure, join_url


def classify_risk_level(score: float) -> RiskLevel:
    if score >= 700:
        return RiskLevel.GOOD
    if score >= 400:
        return RiskLevel.WARNING
    if score > 0:
        return RiskLevel.DANGER
    return RiskLevel.UNKNOWN


class RugCheckClient(JsonHttpClient):
    """RiskReportProvider поверх RugCheck API."""

    provider_name = "rugcheck"

    def __init__(
        self,
        settings: RugCheckSettings | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or get_settings().rugcheck
        super().__init__(timeout=self._settings.request_timeout, session=session)
        self._clock = clock

    async def fetch_report(self, mint: str) -> RiskReport | None:
        url = join_url(self._settings.base_url, f"/v1/tokens/{quote(mint, safe='')}/report/summary")
        raw = await self._request_json("GET", url, allow_not_found=True)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise ProviderFailure(self.provider_name, "отчёт не является объектом")
        try:
            return parse_report(mint, raw, fetched_at=self._clock())
        except (AttributeError, TypeError, ValueError, ValidationError) as exc:
            raise ProviderFailure(self.provider_name, f"некорректный отчёт: {exc}") from exc


def parse_report(mint: str, raw: dict[str, Any], *, fetched_at: datetime) -> RiskReport:
    risks = tuple(
        RiskEntry(
            name=item.get("name") or "Unknown Risk",
            description=item.get("description") or "",
            level=item.get("level") or "warn",
            score=float(item.get("score") or 0),
        )
        for item in raw.get("risks") or []
        if isinstance(item, dict)
    )
    score = float(raw.get("score") or 0)
    return RiskReport(
        mint=mint,
        risk_level=classify_risk_level(score),
        risk_count=len(risks),
        score=score,
        risks=risks,
        fetched_at=fetched_at,
    )


__all__ = ["RugCheckClient", "classify_risk_level", "parse_report"]
