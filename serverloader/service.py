"""
Online config (SIP008) loader service.

Fetches the server list published at a URL on a fixed interval and replaces
the ONLINE_CONFIG servers of a shared pool with it. One cycle runs:

    fetch -> check headers -> collect body -> parse -> check integrity -> update pool

under a single deadline. The pool update is the only mutation and always
comes last, so a cycle that fails or times out leaves the pool untouched.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx
import structlog

from .balancer import ServerPool, ServerSource
from .errors import CycleTimeout, OnlineConfigError, PoolUpdateError
from .fetcher import ConfigFetcher, check_content_type
from .sip008 import ConfigType, load_from_str

logger = structlog.get_logger(__name__)

DEFAULT_UPDATE_INTERVAL = 3600.0
DEFAULT_CYCLE_TIMEOUT = 30.0


class CycleStage(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    VALIDATING_HEADERS = "validating_headers"
    COLLECTING_BODY = "collecting_body"
    PARSING = "parsing"
    CHECKING_INTEGRITY = "checking_integrity"
    UPDATING_POOL = "updating_pool"


@dataclass
class FetchCycle:
    """Timestamps of one cycle, only kept for the duration log line."""
    start: float = field(default_factory=time.monotonic)
    fetched: Optional[float] = None
    parsed: Optional[float] = None
    applied: Optional[float] = None
    stage: CycleStage = CycleStage.IDLE

    def elapsed(self) -> float:
        return time.monotonic() - self.start


class OnlineConfigServiceBuilder:
    def __init__(self, config_url: str, pool: ServerPool, client: Optional[httpx.AsyncClient] = None):
        self.config_url = config_url
        self.pool = pool
        self.client = client
        self.update_interval = DEFAULT_UPDATE_INTERVAL
        self.timeout = DEFAULT_CYCLE_TIMEOUT

    def set_update_interval(self, seconds: float) -> "OnlineConfigServiceBuilder":
        """Set update interval. Default is 3600s."""
        if seconds <= 0:
            raise ValueError(f"update interval must be positive, got {seconds}")
        self.update_interval = seconds
        return self

    def set_timeout(self, seconds: float) -> "OnlineConfigServiceBuilder":
        """Set the deadline of a whole cycle. Default is 30s."""
        if seconds <= 0:
            raise ValueError(f"timeout must be positive, got {seconds}")
        self.timeout = seconds
        return self

    async def build(self) -> "OnlineConfigService":
        """Create the service and run its first cycle.

        Raises:
            OnlineConfigError: the first cycle failed; no service is returned.
        """
        service = OnlineConfigService(
            config_url=self.config_url,
            pool=self.pool,
            fetcher=ConfigFetcher(self.client, timeout=self.timeout),
            update_interval=self.update_interval,
            timeout=self.timeout,
        )
        try:
            await service.run_once()
        except OnlineConfigError:
            await service.aclose()
            raise
        return service


class OnlineConfigService:
    def __init__(
        self,
        config_url: str,
        pool: ServerPool,
        fetcher: ConfigFetcher,
        update_interval: float = DEFAULT_UPDATE_INTERVAL,
        timeout: float = DEFAULT_CYCLE_TIMEOUT,
    ):
        self.config_url = config_url
        self.pool = pool
        self.fetcher = fetcher
        self.update_interval = update_interval
        self.timeout = timeout

    async def aclose(self):
        await self.fetcher.aclose()

    async def run_once(self) -> None:
        """Run one cycle under the deadline, logging any failure before raising it."""
        cycle = FetchCycle()
        try:
            await asyncio.wait_for(self._run_once_impl(cycle), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(
                "server_loader_timeout",
                url=self.config_url,
                stage=cycle.stage.value,
                timeout=self.timeout,
                elapsed=round(cycle.elapsed(), 3),
            )
            raise CycleTimeout(
                f"server-loader cycle exceeded {self.timeout}s in stage {cycle.stage.value}"
            ) from e
        except OnlineConfigError as e:
            logger.error(
                "server_loader_failed",
                url=self.config_url,
                stage=e.stage,
                error=str(e),
                elapsed=round(cycle.elapsed(), 3),
            )
            raise

    async def _run_once_impl(self, cycle: FetchCycle) -> None:
        cycle.stage = CycleStage.FETCHING
        response = await self.fetcher.send(self.config_url)
        cycle.fetched = time.monotonic()

        # Content-Type: application/json; charset=utf-8
        # mandatory in standard SIP008, only warned about here
        cycle.stage = CycleStage.VALIDATING_HEADERS
        check_content_type(response, self.config_url)

        cycle.stage = CycleStage.COLLECTING_BODY
        text = await self.fetcher.collect_body(response, self.config_url)

        cycle.stage = CycleStage.PARSING
        online_config = load_from_str(text, ConfigType.ONLINE)

        cycle.stage = CycleStage.CHECKING_INTEGRITY
        online_config.check_integrity()
        cycle.parsed = time.monotonic()

        cycle.stage = CycleStage.UPDATING_POOL
        server_len = len(online_config.servers)
        try:
            await self.pool.reset_servers(online_config.servers, {ServerSource.ONLINE_CONFIG})
        except PoolUpdateError:
            raise
        except Exception as e:
            raise PoolUpdateError(f"failed to reset pool: {e}") from e
        cycle.applied = time.monotonic()
        cycle.stage = CycleStage.IDLE

        logger.debug(
            "server_loader_finished",
            servers=server_len,
            url=self.config_url,
            fetch_time=round(cycle.fetched - cycle.start, 3),
            read_time=round(cycle.parsed - cycle.fetched, 3),
            load_time=round(cycle.applied - cycle.parsed, 3),
            total_time=round(cycle.applied - cycle.start, 3),
        )

    async def run(self) -> None:
        """Start the service loop. Never returns on its own."""
        logger.debug(
            "server_loader_started",
            url=self.config_url,
            update_interval=self.update_interval,
        )

        while True:
            await asyncio.sleep(self.update_interval)
            try:
                await self.run_once()
            except OnlineConfigError:
                # already logged by run_once; keep the previous servers
                pass
            except Exception as e:
                logger.error("server_loader_error", url=self.config_url, error=str(e), exc_info=True)
