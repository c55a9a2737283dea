"""Periodic sweeps that bound per-identity state."""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from enhance_gateway.admission import AdmissionController
from enhance_gateway.config import Config

logger = logging.getLogger(__name__)


class StateReaper:
    """Runs the quota-reset and idle-eviction sweeps on independent timers."""

    def __init__(
        self,
        admission: AdmissionController,
        config: Config,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.admission = admission
        self.quota_window = config.quota_window_seconds
        self.idle_sweep = config.idle_sweep_seconds
        self.idle_cutoff = config.idle_cutoff_seconds
        self.clock = clock
        self._tasks: List[asyncio.Task] = []
        self.running = False

    async def start(self):
        """Start both sweep loops."""
        if self.running:
            return
        self.running = True
        self._tasks = [
            asyncio.create_task(self._quota_loop()),
            asyncio.create_task(self._loop(self.idle_sweep, self.sweep_idle)),
        ]
        logger.info(
            "State reaper started (quota window %ss, idle sweep %ss, cutoff %ss)",
            self.quota_window,
            self.idle_sweep,
            self.idle_cutoff,
        )

    async def stop(self):
        """Cancel both sweep loops and wait for them to finish."""
        self.running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("State reaper stopped")

    async def sweep_quotas(self, now: Optional[float] = None) -> int:
        if now is None:
            now = self.clock()
        reset = await self.admission.reset_quotas(now)
        logger.info("Quota window rolled over, reset %d identities", reset)
        return reset

    async def sweep_idle(self, now: Optional[float] = None) -> List[str]:
        if now is None:
            now = self.clock()
        evicted = await self.admission.evict_idle(now, self.idle_cutoff)
        if evicted:
            logger.info("Evicted %d idle identities", len(evicted))
        return evicted

    def seconds_until_quota_sweep(self) -> float:
        """Time left in the current window; a manual reset moves it too."""
        return max(0.0, self.admission.seconds_until_reset(self.clock()))

    async def _quota_loop(self):
        while self.running:
            await asyncio.sleep(self.seconds_until_quota_sweep())
            try:
                await self.sweep_quotas()
            except Exception:
                logger.exception("Quota sweep failed")

    async def _loop(self, period: float, sweep):
        while self.running:
            await asyncio.sleep(period)
            try:
                await sweep()
            except Exception:
                logger.exception("State sweep failed")
