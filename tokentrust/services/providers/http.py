"""Общий HTTP-слой провайдеров TokenTrust.

Каждый внешний API оборачивается тонким клиентом поверх aiohttp. Клиент
держит одну ClientSession (создаётся лениво или передаётся извне), каждый
запрос ограничен явным таймаутом, а любой сетевой сбой, таймаут или
неожиданный HTTP-статус превращается в ProviderFailure.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import aiohttp
from loguru import logger
from pydantic import SecretStr


class ProviderFailure(RuntimeError):
    """Сбой внешнего провайдера: сеть, таймаут, не-2xx или битый ответ."""

    def __init__(self, provider: str, message: str, status: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


class ConfigurationError(RuntimeError):
    """Не задан обязательный ключ или параметр окружения."""


def require_secret(secret: SecretStr | None, env_name: str) -> str:
    """Возвращает значение ключа либо падает громко: это ошибка деплоя."""

    if secret is None or not secret.get_secret_value():
        raise ConfigurationError(f"Не задана переменная окружения {env_name}")
    return secret.get_secret_value()


def join_url(base: Any, path: str) -> str:
    return f"{str(base).rstrip('/')}/{path.lstrip('/')}"


class JsonHttpClient:
    """Базовый клиент JSON API с таймаутом и единой классификацией ошибок."""

    provider_name = "http"

    def __init__(
        self,
        *,
        timeout: float,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def start(self) -> None:
        """Инициализирует HTTP session (если не передана извне)."""

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def close(self) -> None:
        """Закрывает собственную сессию; внешнюю оставляет владельцу."""

        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "JsonHttpClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        payload: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Выполняет запрос и возвращает JSON.

        404 при allow_not_found=True возвращает None; остальные ошибки
        поднимаются как ProviderFailure.
        """

        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None
        try:
            async with self._session.request(
                method,
                url,
                params=params,
                headers=headers,
                json=payload,
                timeout=self._timeout,
            ) as resp:
                if resp.status == 404 and allow_not_found:
                    return None
                if not 200 <= resp.status < 300:
                    text = await resp.text()
                    raise ProviderFailure(
                        self.provider_name,
                        f"{method} {url} завершился с HTTP {resp.status}: {text[:200]}",
                        status=resp.status,
                    )
                return await resp.json(content_type=None)
        except ProviderFailure:
            raise
        except asyncio.TimeoutError as exc:
            raise ProviderFailure(self.provider_name, f"{method} {url}: таймаут") from exc
        except (aiohttp.ClientError, ValueError) as exc:
            logger.debug(
                "{provider} запрос {url} упал: {error}",
                provider=self.provider_name,
                url=url,
                error=exc,
            )
            raise ProviderFailure(self.provider_name, f"{method} {url}: {exc}") from exc


__all__ = [
    "ConfigurationError",
    "JsonHttpClient",
    "ProviderFailure",
    "join_url",
    "require_secret",
]
