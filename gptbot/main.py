"""
Entrypoint: load the configuration once, configure logging and run the bot.

`python -m gptbot.main` or the `gptbot` console script.
"""

import asyncio
import logging
import os
import sys

from gptbot.client import ChatBot
from gptbot.config.loader import get_config
from gptbot.config.models import BotConfig


def setup_logging(config: BotConfig | None = None) -> None:
    debug = bool(os.environ.get("DEBUG")) or (config is not None and config.dev_config.debug_logs)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        force=True,
    )
    if debug:
        logging.getLogger("httpx").setLevel(logging.DEBUG)
    else:
        logging.getLogger("httpx").setLevel(logging.WARNING)


async def run_bot(config: BotConfig) -> None:
    async with ChatBot(config) as bot:
        await bot.start(config.bot_token)


def main() -> None:
    setup_logging()
    config = get_config()
    setup_logging(config)

    if not config.bot_token:
        logging.error("No bot token configured (set 'bot_token' or DISCORD_TOKEN)")
        sys.exit(1)

    try:
        asyncio.run(run_bot(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
