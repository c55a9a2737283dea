"""Typed gateway failures returned to callers.

These are values, not exceptions: the dispatcher returns them so that every
outcome, exhaustion included, is visible in its return type.
"""

from dataclasses import dataclass
from typing import ClassVar, Dict, Optional

INVALID_INPUT = "invalid_input"
TOO_MANY_REQUESTS = "too_many_requests"
QUOTA_EXCEEDED = "quota_exceeded"
UPSTREAM_FAILURE = "upstream_failure"


@dataclass(frozen=True)
class GatewayError:
    code: ClassVar[str] = UPSTREAM_FAILURE
    status_code: ClassVar[int] = 502

    message: str
    retry_after: Optional[int] = None

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"error": self.code, "message": self.message}
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload

    def headers(self) -> Dict[str, str]:
        if self.retry_after is None:
            return {}
        return {"Retry-After": str(self.retry_after)}


@dataclass(frozen=True)
class ValidationError(GatewayError):
    """Caller input rejected before admission; never retried or counted."""

    code: ClassVar[str] = INVALID_INPUT
    status_code: ClassVar[int] = 400


@dataclass(frozen=True)
class ThrottleError(GatewayError):
    code: ClassVar[str] = TOO_MANY_REQUESTS
    status_code: ClassVar[int] = 429


@dataclass(frozen=True)
class QuotaError(GatewayError):
    code: ClassVar[str] = QUOTA_EXCEEDED
    status_code: ClassVar[int] = 429


@dataclass(frozen=True)
class UpstreamFatalError(GatewayError):
    pass


@dataclass(frozen=True)
class AllKeysExhausted(GatewayError):
    pass
