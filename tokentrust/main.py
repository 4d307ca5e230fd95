"""Entry point: фоновое обновление рейтингов TokenTrust."""

from __future__ import annotations

import asyncio

from loguru import logger

from config.settings import get_settings
from tokentrust.context import EngineContext
from tokentrust.db import init_db
from tokentrust.logging_config import setup_logging


async def main() -> None:
    settings = get_settings()
    setup_logging(json=settings.log_json, level=settings.log_level)
    async with EngineContext(settings) as ctx:
        await init_db(ctx.engine)
        assert ctx.refresh_job is not None
        await ctx.refresh_job.start()
        logger.info("TokenTrust запущен, Ctrl+C для остановки")
        try:
            await asyncio.Event().wait()
        finally:
            logger.info("Остановка TokenTrust")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
