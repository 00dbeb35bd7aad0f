"""
Live server pool shared by every subsystem that contributes servers.

Each entry carries the ServerSource that produced it, and replacements are
always scoped to a set of sources so one loader never touches servers that
belong to another.
"""

import asyncio
import logging
from enum import Enum
from typing import Iterable, Optional, Set, Tuple

from .errors import PoolUpdateError

logger = logging.getLogger(__name__)


class ServerSource(str, Enum):
    DEFAULT = "default"
    CONFIG_FILE = "config_file"
    COMMAND_LINE = "command_line"
    ONLINE_CONFIG = "online_config"


class ServerPool:
    """Server collection with tag-scoped, all-or-nothing replacement."""

    def __init__(self, servers: Iterable = ()):
        self._servers: Tuple = tuple(servers)
        self._lock = asyncio.Lock()
        self._cursor = 0

    def servers(self) -> Tuple:
        """Current snapshot; never a mix of two updates."""
        return self._servers

    def servers_from(self, source: ServerSource) -> Tuple:
        return tuple(s for s in self._servers if s.source == source)

    def __len__(self) -> int:
        return len(self._servers)

    def pick(self) -> Optional[object]:
        """Round-robin selection over the current snapshot."""
        snapshot = self._servers
        if not snapshot:
            return None
        server = snapshot[self._cursor % len(snapshot)]
        self._cursor = (self._cursor + 1) % len(snapshot)
        return server

    async def reset_servers(self, entries: Iterable, sources: Iterable[ServerSource]) -> None:
        """Replace every server tagged with one of `sources` by `entries`.

        Servers tagged with any other source are kept as they are, in their
        original order, ahead of the new entries.

        Raises:
            PoolUpdateError: `sources` is empty, or an entry is tagged with a
                source outside of `sources`. Nothing is changed in that case.
        """
        source_set: Set[ServerSource] = set(sources)
        if not source_set:
            raise PoolUpdateError("reset_servers requires at least one source")

        new_entries = tuple(entries)
        for entry in new_entries:
            if entry.source not in source_set:
                raise PoolUpdateError(
                    f"server {entry.ident} has source {entry.source.value}, "
                    f"expected one of {sorted(s.value for s in source_set)}"
                )

        async with self._lock:
            kept = tuple(s for s in self._servers if s.source not in source_set)
            self._servers = kept + new_entries
            self._cursor = 0

        logger.info(
            f"Pool reset for sources {sorted(s.value for s in source_set)}: "
            f"{len(new_entries)} replaced, {len(kept)} kept"
        )
