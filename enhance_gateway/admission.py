"""Per-identity admission control: minimum-interval throttle plus windowed quota."""

import asyncio
import logging
import math
from typing import Dict, List, Optional

from enhance_gateway.config import Config
from enhance_gateway.models import (
    Accepted,
    IdentityRecord,
    QuotaExceeded,
    Throttled,
    Verdict,
)

logger = logging.getLogger(__name__)


class AdmissionController:
    """Owns identity records and decides whether a request may proceed.

    The quota window is epoch-aligned: ``reset_quotas`` zeroes every
    identity's count at the same instant, so a caller can spend up to twice
    the quota across a window boundary.
    """

    def __init__(self, config: Config, started_at: float = 0.0):
        self.quota_limit = config.quota_limit
        self.quota_window = config.quota_window_seconds
        self.min_interval = config.min_interval_seconds
        self.records: Dict[str, IdentityRecord] = {}
        self.window_started_at: float = started_at
        self._lock: asyncio.Lock = asyncio.Lock()

    async def admit(self, identity: str, now: float) -> Verdict:
        async with self._lock:
            record = self.records.get(identity)

            if record is not None and record.last_request_at is not None:
                elapsed = now - record.last_request_at
                if elapsed < self.min_interval:
                    retry_after = max(1, math.ceil(self.min_interval - elapsed))
                    logger.info(
                        "Throttled %s (retry after %ss)", identity, retry_after
                    )
                    return Throttled(retry_after=retry_after)

            if record is not None and record.request_count >= self.quota_limit:
                logger.info(
                    "Quota exceeded for %s (%d/%d)",
                    identity,
                    record.request_count,
                    self.quota_limit,
                )
                return QuotaExceeded(retry_after=self._seconds_until_reset(now))

            if record is None:
                record = IdentityRecord(identity=identity)
                self.records[identity] = record

            record.request_count += 1
            record.last_request_at = now
            logger.debug(
                "[%s] Request %d/%d", identity, record.request_count, self.quota_limit
            )
            return Accepted()

    async def reset_quotas(self, now: float) -> int:
        """Zero every identity's request count; throttle state is kept."""
        async with self._lock:
            for record in self.records.values():
                record.request_count = 0
            self.window_started_at = now
            return len(self.records)

    async def evict_idle(self, now: float, cutoff: float) -> List[str]:
        """Delete identities idle for longer than ``cutoff``.

        Records still holding quota in the current window are kept until the
        next reset.
        """
        async with self._lock:
            stale = [
                identity
                for identity, record in self.records.items()
                if self._is_idle(record, now, cutoff)
            ]
            for identity in stale:
                del self.records[identity]
            return stale

    def get_record(self, identity: str) -> Optional[IdentityRecord]:
        return self.records.get(identity)

    def tracked_identities(self) -> int:
        return len(self.records)

    def seconds_until_reset(self, now: float) -> float:
        return self.window_started_at + self.quota_window - now

    def _is_idle(self, record: IdentityRecord, now: float, cutoff: float) -> bool:
        if record.last_request_at is None:
            return True
        if now - record.last_request_at <= cutoff:
            return False
        return (
            record.request_count == 0
            or record.last_request_at < self.window_started_at
        )

    def _seconds_until_reset(self, now: float) -> int:
        return max(1, math.ceil(self.seconds_until_reset(now)))
