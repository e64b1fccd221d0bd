from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import uvicorn

from core.api import create_api_app
from core.bot import TicketBot
from core.config import AppConfig, load_config
from core.logging import configure_logging

LOGGER = logging.getLogger("ticket_desk")


def _status_server(bot: TicketBot, config: AppConfig) -> uvicorn.Server:
    return uvicorn.Server(
        uvicorn.Config(
            app=create_api_app(bot),
            host=config.status_api.host,
            port=config.status_api.port,
            log_level=config.logging.level.lower(),
            log_config=None,
        )
    )


async def _run_bot(config: AppConfig) -> None:
    bot = TicketBot(config=config)
    async with bot:
        server: uvicorn.Server | None = None
        api_task: asyncio.Task[None] | None = None
        if config.status_api.enabled:
            server = _status_server(bot, config)
            api_task = asyncio.create_task(server.serve(), name="status-api")
            LOGGER.info("Status API listening on %s:%s", config.status_api.host, config.status_api.port)
        try:
            await bot.start(config.discord.token)
        finally:
            if server is not None and api_task is not None:
                server.should_exit = True
                await asyncio.gather(api_task, return_exceptions=True)


def main() -> None:
    root = Path(__file__).resolve().parent
    config = load_config(root / "config" / "config.yaml")
    configure_logging(config.logging)
    asyncio.run(_run_bot(config))


if __name__ == "__main__":
    main()
