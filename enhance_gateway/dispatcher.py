"""Request dispatch: validation, admission, and failover across upstream keys."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple, Union

import httpx

from enhance_gateway.config import Config
from enhance_gateway.errors import (
    AllKeysExhausted,
    GatewayError,
    QuotaError,
    ThrottleError,
    UpstreamFatalError,
    ValidationError,
)
from enhance_gateway.models import (
    AttemptOutcome,
    Fatal,
    QuotaExceeded,
    Retryable,
    Success,
    Throttled,
    Verdict,
)
from enhance_gateway.upstream import call_upstream

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to enhance prompt"


class Admission(Protocol):
    async def admit(self, identity: str, now: float) -> Verdict: ...


class KeyPool(Protocol):
    @property
    def pool_size(self) -> int: ...

    async def next_slot(self, now: float) -> Tuple[str, int]: ...

    async def report_failure(self, slot_id: int, now: float) -> None: ...

    async def report_success(self, slot_id: int) -> None: ...


@dataclass(frozen=True)
class Enhanced:
    text: str


EnhanceResult = Union[Enhanced, GatewayError]


class Dispatcher:
    """Runs one logical enhance operation end to end.

    Flow:
    1. Validate the input (never counted against quota or keys)
    2. Ask the admission controller for a verdict
    3. Loop up to min(max_attempts, pool_size) times:
       a. take the next key from the pool
       b. call the upstream provider
       c. Success -> done; Fatal -> stop; Retryable -> record a key failure
          if the upstream blamed the key, then try the next key
    4. Out of attempts -> AllKeysExhausted
    """

    def __init__(
        self,
        config: Config,
        admission: Admission,
        key_manager: KeyPool,
        http_client: httpx.AsyncClient,
        clock: Callable[[], float] = time.monotonic,
        upstream=call_upstream,
    ):
        self.config = config
        self.admission = admission
        self.key_manager = key_manager
        self.http_client = http_client
        self.clock = clock
        self._upstream = upstream

    def validate(self, text: object) -> Optional[ValidationError]:
        if not isinstance(text, str) or not text.strip():
            return ValidationError(message="Prompt is required")
        if len(text) > self.config.max_input_length:
            return ValidationError(
                message=(
                    f"Prompt exceeds maximum length of "
                    f"{self.config.max_input_length} characters"
                )
            )
        return None

    async def enhance(
        self, text: object, identity: str, now: Optional[float] = None
    ) -> EnhanceResult:
        invalid = self.validate(text)
        if invalid is not None:
            return invalid

        if now is None:
            now = self.clock()

        verdict = await self.admission.admit(identity, now)
        if isinstance(verdict, Throttled):
            return ThrottleError(
                message="Too many requests, slow down",
                retry_after=verdict.retry_after,
            )
        if isinstance(verdict, QuotaExceeded):
            return QuotaError(
                message="Request quota exceeded for this window",
                retry_after=verdict.retry_after,
            )

        return await self._dispatch(str(text), identity)

    async def _dispatch(self, text: str, identity: str) -> EnhanceResult:
        attempts = min(self.config.max_attempts, self.key_manager.pool_size)
        last_outcome: Optional[AttemptOutcome] = None

        for attempt in range(attempts):
            secret, slot_id = await self.key_manager.next_slot(self.clock())
            outcome = await self._upstream(self.http_client, self.config, secret, text)
            last_outcome = outcome

            if isinstance(outcome, Success):
                await self.key_manager.report_success(slot_id)
                return Enhanced(text=outcome.text)

            if isinstance(outcome, Fatal):
                logger.error(
                    "Fatal upstream error for %s (slot=%d): %s",
                    identity,
                    slot_id,
                    outcome.detail,
                )
                return UpstreamFatalError(message=GENERIC_FAILURE_MESSAGE)

            if isinstance(outcome, Retryable) and outcome.credential_fault:
                await self.key_manager.report_failure(slot_id, self.clock())
                logger.warning(
                    "Key rejected by upstream (slot=%d, attempt=%d/%d): %s",
                    slot_id,
                    attempt + 1,
                    attempts,
                    outcome.detail,
                )
            elif isinstance(outcome, Retryable) and outcome.status_code is not None:
                logger.warning(
                    "Unexpected upstream response (slot=%d, attempt=%d/%d): %s",
                    slot_id,
                    attempt + 1,
                    attempts,
                    outcome.detail,
                )
            else:
                logger.warning(
                    "Upstream unreachable (slot=%d, attempt=%d/%d): %s",
                    slot_id,
                    attempt + 1,
                    attempts,
                    outcome.detail,
                )

        logger.error(
            "All %d attempts failed for %s, last error: %s",
            attempts,
            identity,
            getattr(last_outcome, "detail", "none"),
        )
        return AllKeysExhausted(message=GENERIC_FAILURE_MESSAGE)
