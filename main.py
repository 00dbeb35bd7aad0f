"""
Entrypoint: load .env and config.yaml, init logging, seed the pool with the
static servers, build the online config loader and run it until signalled.
"""

import asyncio
import logging
import signal
import sys

import structlog
from dotenv import load_dotenv

from serverloader.balancer import ServerPool
from serverloader.config import Config
from serverloader.errors import OnlineConfigError
from serverloader.service import OnlineConfigServiceBuilder
from serverloader.sip008 import ConfigType, load_from_mapping


def setup_logging(log_config: dict):
    """Route stdlib and structlog output through one stdout handler."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_config.get('json', True)
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_static_pool(servers) -> ServerPool:
    """Pool seeded with the servers of the config file."""
    static = load_from_mapping({'servers': servers or []}, ConfigType.LOCAL)
    static.check_integrity()
    return ServerPool(static.servers)


async def main() -> int:
    """Initialize dependencies and run the server loader"""
    load_dotenv()
    config = Config()
    setup_logging(config.logging)
    logger = structlog.get_logger(__name__)

    try:
        pool = load_static_pool(config.servers)
    except OnlineConfigError as e:
        logger.error("static_servers_invalid", config=str(config.config_path), error=str(e))
        return 1
    logger.info("static_servers_loaded", count=len(pool))

    if not config.config_url:
        logger.error("missing_online_config_url")
        return 1

    builder = OnlineConfigServiceBuilder(config.config_url, pool)
    online = config.online_config
    if 'update_interval' in online:
        builder.set_update_interval(float(online['update_interval']))
    if 'timeout' in online:
        builder.set_timeout(float(online['timeout']))

    try:
        service = await builder.build()
    except OnlineConfigError as e:
        logger.error("server_loader_build_failed", url=config.config_url, error=str(e))
        return 1

    task = asyncio.ensure_future(service.run())
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, task.cancel)

    try:
        await task
    except asyncio.CancelledError:
        logger.info("server_loader_stopped")
    finally:
        await service.aclose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
