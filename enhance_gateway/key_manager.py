"""Key pool management."""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from enhance_gateway.config import Config
from enhance_gateway.models import CredentialSlot

logger = logging.getLogger(__name__)

FALLBACK_SLOT = 0


class KeyManager:
    """Round-robin key pool that sidesteps recently failing keys.

    A failed slot is skipped until ``cooldown`` seconds have passed since its
    last failure. When every slot is cooling down, slot 0 is handed out
    anyway so the gateway keeps serving.
    """

    def __init__(self, config: Config):
        self.slots: List[CredentialSlot] = [
            CredentialSlot(slot_id=index, secret=api_key)
            for index, api_key in enumerate(config.api_keys)
        ]
        self.cooldown: float = config.key_cooldown_seconds
        self.cursor: int = 0
        self._lock: asyncio.Lock = asyncio.Lock()

    @property
    def pool_size(self) -> int:
        return len(self.slots)

    async def next_slot(self, now: float) -> Tuple[str, int]:
        async with self._lock:
            for _ in range(self.pool_size):
                slot = self.slots[self.cursor % self.pool_size]
                self.cursor += 1
                if not slot.in_cooldown(now, self.cooldown):
                    return slot.secret, slot.slot_id

            logger.warning(
                "All %d keys in cooldown, falling back to slot %d",
                self.pool_size,
                FALLBACK_SLOT,
            )
            fallback = self.slots[FALLBACK_SLOT]
            return fallback.secret, fallback.slot_id

    async def report_failure(self, slot_id: int, now: float) -> None:
        async with self._lock:
            slot = self._get(slot_id)
            if slot is None:
                return

            slot.failure_count += 1
            slot.last_failure_at = now
            logger.warning(
                "Key slot %d failed (%d failures), cooling down for %ss",
                slot_id,
                slot.failure_count,
                self.cooldown,
            )

    async def report_success(self, slot_id: int) -> None:
        async with self._lock:
            slot = self._get(slot_id)
            if slot is None:
                return
            slot.failure_count = 0
            slot.last_failure_at = None

    def is_healthy(self, slot_id: int, now: float) -> bool:
        slot = self._get(slot_id)
        if slot is None:
            return False
        return not slot.in_cooldown(now, self.cooldown)

    def get_status(self, now: float) -> Dict[str, object]:
        active_keys = sum(
            1 for slot in self.slots if not slot.in_cooldown(now, self.cooldown)
        )
        return {
            "totalKeys": self.pool_size,
            "activeKeys": active_keys,
            "failedKeys": [
                self._format_slot_status(slot, now)
                for slot in self.slots
                if slot.failure_count > 0
            ],
        }

    def _format_slot_status(self, slot: CredentialSlot, now: float) -> Dict[str, object]:
        return {
            "slotId": slot.slot_id,
            "failCount": slot.failure_count,
            "inCooldown": slot.in_cooldown(now, self.cooldown),
        }

    def _get(self, slot_id: int) -> Optional[CredentialSlot]:
        if 0 <= slot_id < self.pool_size:
            return self.slots[slot_id]
        return None
