"""Hebbot — Main entry point."""

import asyncio
import logging
import os
from typing import Optional

from .bot import Bot
from .config import HebbotSettings, load_config, load_settings
from .errors import ConfigError
from .matrix import MatrixTransport
from .store import NewsStore

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("hebbot")


def setup_logging(settings: HebbotSettings):
    handlers: list[logging.Handler] = [logging.StreamHandler()]  # stderr (console)
    if settings.log_file:
        handlers.append(logging.FileHandler(os.path.expanduser(settings.log_file), encoding="utf-8"))

    logging.basicConfig(level=logging.INFO, format=_log_format, handlers=handlers)
    if settings.debug:
        logging.getLogger("hebbot").setLevel(logging.DEBUG)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_template(path: str) -> Optional[str]:
    """Report template source, or None to use the built-in one."""
    if not os.path.exists(path):
        logger.info(f"No template at {path}, using the built-in template")
        return None
    with open(path, encoding="utf-8") as f:
        return f.read()


async def run(settings: Optional[HebbotSettings] = None):
    """Main run loop. Returns when the sync loop stops; StoreWriteError propagates."""
    settings = settings or load_settings()

    config_result = load_config(settings.config_path)
    config = config_result.config
    for warning in config_result.warnings:
        logger.warning(warning)

    if not settings.bot_password:
        raise ConfigError("HEBBOT_BOT_PASSWORD is not set")

    store = NewsStore.read(settings.store_path)
    template = load_template(settings.template_path)
    transport = MatrixTransport(config, homeserver_url=settings.homeserver_url)

    try:
        await transport.login(settings.bot_password)
        await transport.join(config.reporting_room_id)
        await transport.join(config.admin_room_id)
        await transport.sync_once()

        bot = Bot(config, store, transport, template=template)
        await bot.announce_start(config_result)

        async for event in transport.events():
            await bot.on_event(event)
    finally:
        await transport.close()
        logger.info("Hebbot stopped.")


def main(settings: Optional[HebbotSettings] = None):
    settings = settings or load_settings()
    setup_logging(settings)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
