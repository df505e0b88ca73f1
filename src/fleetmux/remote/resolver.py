"""Host target resolution with ordered failover and a TTL cache.

A host lists several candidate targets (ssh aliases, addresses). The resolver
probes them in declared order and caches the first reachable one for
``CACHE_TTL_SECONDS``. The first success wins, not the fastest.

One resolver instance is shared by every poll loop. Each resolve call holds
the host's lock for its whole duration (cache check and probes), so panes on
the same host serialize through resolution while different hosts proceed
independently.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from .. import config
from ..errors import FleetmuxError, ResolutionError
from ..models import HostConfig, SshOptions
from ..telemetry import get_logger, metrics
from .executor import Executor, run_remote

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Resolved target for one host."""

    target: str
    checked_at: float


class HostResolver:
    """Resolve a host to one reachable target.

    Attributes:
        ttl: Seconds a cached resolution stays valid.
    """

    def __init__(
        self,
        executor: Executor,
        ttl: float = config.CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._executor = executor
        self.ttl = ttl
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def executor(self) -> Executor:
        return self._executor

    def _lock_for(self, host_name: str) -> asyncio.Lock:
        lock = self._locks.get(host_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[host_name] = lock
        return lock

    def cached_target(self, host_name: str) -> str | None:
        """Return the cached target if still within TTL."""
        entry = self._cache.get(host_name)
        if entry is None:
            return None
        if self._clock() - entry.checked_at < self.ttl:
            return entry.target
        return None

    def invalidate(self, host_name: str | None = None) -> None:
        """Drop one cached entry, or all of them."""
        if host_name is None:
            self._cache.clear()
        else:
            self._cache.pop(host_name, None)

    async def resolve(self, host: HostConfig, options: SshOptions) -> str:
        """Resolve ``host`` to a reachable target.

        Raises:
            ResolutionError: no candidate answered the probe. Nothing is cached.
        """
        async with self._lock_for(host.name):
            target = self.cached_target(host.name)
            if target is not None:
                if config.METRICS_ENABLED:
                    metrics.inc("resolver.cache_hit", {"host": host.name})
                return target

            for candidate in host.targets:
                if await self.probe(candidate, options):
                    self._cache[host.name] = CacheEntry(target=candidate, checked_at=self._clock())
                    logger.info(f"[Resolver] {host.name} -> {candidate}")
                    return candidate

            if config.METRICS_ENABLED:
                metrics.inc("resolver.failed", {"host": host.name})
            logger.warning(f"[Resolver] No reachable target for {host.name} ({', '.join(host.targets)})")
            raise ResolutionError(host.name)

    async def probe(self, target: str, options: SshOptions) -> bool:
        """Time-bounded reachability check (``tmux -V``)."""
        if config.METRICS_ENABLED:
            metrics.inc("resolver.probe", {"target": target})
        try:
            await run_remote(
                self._executor,
                target,
                config.PROBE_COMMAND,
                timeout=options.probe_timeout,
            )
        except FleetmuxError as e:
            logger.debug(f"[Resolver] Probe failed for {target}: {e}")
            return False
        return True
