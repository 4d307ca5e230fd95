"""Утилита для первичной инициализации базы данных."""

from __future__ import annotations

import asyncio

from loguru import logger
from sqlalchemy.engine import make_url

from config.settings import get_settings
from tokentrust.db import get_engine, init_db
from tokentrust.logging_config import setup_logging


async def _run() -> None:
    engine = get_engine()
    try:
        await init_db(engine)
    finally:
        await engine.dispose()


def main() -> None:
    settings = get_settings()
    setup_logging(json=settings.log_json, level=settings.log_level)
    asyncio.run(_run())
    logger.info("Таблицы TokenTrust созданы в {dsn}", dsn=make_url(settings.database.dsn).render_as_string(hide_password=True))


if __name__ == "__main__":
    main()
