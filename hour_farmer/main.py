from __future__ import annotations

import asyncio
import logging
import sys

from hour_farmer.config import Config, ConfigError, load_accounts
from hour_farmer.fleet import Fleet
from hour_farmer.health import start_status_server
from hour_farmer.session import load_session_factory

logger = logging.getLogger(__name__)


async def run(config: Config) -> None:
    accounts = load_accounts(config.accounts_file)
    session_factory = load_session_factory(config.session_factory)
    fleet = Fleet(accounts, session_factory)

    runner = None
    if config.status_port > 0:
        runner = await start_status_server(fleet, config.status_port)

    try:
        await fleet.run()
    finally:
        await fleet.close()
        if runner is not None:
            await runner.cleanup()


def main() -> int:
    try:
        config = Config.from_env()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(message)s")
        logger.error("Fatal configuration error: %s", exc)
        return 1

    logging.basicConfig(level=config.log_level, format="%(asctime)s [%(name)s] %(message)s")
    try:
        asyncio.run(run(config))
    except ConfigError as exc:
        logger.error("Fatal configuration error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
