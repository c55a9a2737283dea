"""Data models for admission state, credential slots and dispatch outcomes."""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class IdentityRecord:
    """Rate-limit state for a single caller identity."""

    identity: str
    request_count: int = 0
    last_request_at: Optional[float] = None


@dataclass
class CredentialSlot:
    """Represents a single upstream API key with its observed health."""

    slot_id: int
    secret: str
    failure_count: int = 0
    last_failure_at: Optional[float] = None

    def in_cooldown(self, now: float, cooldown: float) -> bool:
        if self.last_failure_at is None:
            return False
        return now - self.last_failure_at < cooldown

    def __repr__(self) -> str:
        return (
            f"CredentialSlot(slot_id={self.slot_id}, "
            f"failure_count={self.failure_count}, "
            f"last_failure_at={self.last_failure_at})"
        )


# Admission verdicts


@dataclass(frozen=True)
class Accepted:
    pass


@dataclass(frozen=True)
class Throttled:
    retry_after: int


@dataclass(frozen=True)
class QuotaExceeded:
    retry_after: int


Verdict = Union[Accepted, Throttled, QuotaExceeded]


# Per-attempt upstream outcomes


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class Retryable:
    """An attempt that may succeed with another key.

    ``credential_fault`` is set when the upstream rejected or throttled the
    key itself, which puts the slot into cooldown.
    """

    detail: str
    credential_fault: bool = False
    status_code: Optional[int] = None


@dataclass(frozen=True)
class Fatal:
    detail: str


AttemptOutcome = Union[Success, Retryable, Fatal]
