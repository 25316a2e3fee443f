#!/usr/bin/env python3
# main.py
"""
Точка входа seatshare.
Запускает HTTP API или готовит базу данных в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import sys

import asyncpg

from seatshare.config import settings
from seatshare.common.logger import setup_logging, log_info, log_error
from seatshare.common.constants import TypeMsg
from seatshare.infra.database import init_db, close_db


async def create_database() -> None:
    """Создаёт базу данных проекта, если её ещё нет."""
    db_name = settings.database.DB_NAME
    sys_conn = await asyncpg.connect(
        user=settings.database.DB_USER,
        password=settings.database.DB_PASSWORD,
        host=settings.database.DB_HOST,
        port=settings.database.DB_PORT,
        database="postgres",
    )
    try:
        exists = await sys_conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
        if exists:
            await log_info(f"База данных {db_name} уже существует", type_msg=TypeMsg.INFO)
            return
        await sys_conn.execute(f'CREATE DATABASE "{db_name}"')
        await log_info(f"База данных {db_name} создана", type_msg=TypeMsg.INFO)
    finally:
        await sys_conn.close()


async def migrate() -> None:
    """Создаёт базу данных и применяет схему из migrations/init.sql."""
    await create_database()
    await init_db()
    await close_db()


async def run_api() -> None:
    """Запускает HTTP API под uvicorn."""
    import uvicorn

    from seatshare.api.app import create_app

    await log_info(
        f"Запуск API на {settings.api.API_HOST}:{settings.api.API_PORT}...",
        type_msg=TypeMsg.INFO,
    )
    config = uvicorn.Config(
        create_app(),
        host=settings.api.API_HOST,
        port=settings.api.API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


def print_usage() -> None:
    print("""
seatshare: места в совместных поездках

Использование:
    python main.py [mode]

Режимы:
    api        HTTP и WebSocket API (по умолчанию)
    migrate    создать базу данных и применить схему
    """)


async def main(mode: str) -> None:
    setup_logging()
    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION} ({settings.system.ENVIRONMENT}), режим: {mode}",
        type_msg=TypeMsg.INFO,
    )
    try:
        if mode == "migrate":
            await migrate()
        else:
            await run_api()
    except Exception as e:
        await log_error(f"Критическая ошибка в режиме {mode}: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    mode = "api"
    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        if arg not in ("api", "migrate"):
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)
        mode = arg

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
