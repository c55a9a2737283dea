"""Single chat-completions call against the upstream provider."""

import logging
from typing import Dict, Optional, cast

import httpx

from enhance_gateway.config import Config
from enhance_gateway.models import AttemptOutcome, Fatal, Retryable, Success

logger = logging.getLogger(__name__)

COMPLETIONS_PATH = "/v1/chat/completions"

# Statuses that say something about the key itself rather than the request.
CREDENTIAL_FAULT_STATUSES = frozenset({401, 403, 429})


def build_payload(config: Config, text: str) -> Dict[str, object]:
    return {
        "model": config.upstream_model,
        "messages": [
            {"role": "system", "content": config.system_prompt},
            {"role": "user", "content": text},
        ],
    }


async def call_upstream(
    http_client: httpx.AsyncClient,
    config: Config,
    secret: str,
    text: str,
) -> AttemptOutcome:
    """Send ``text`` to the provider with ``secret`` and classify the result.

    Never raises for upstream or transport problems; every outcome is
    mapped onto ``Success``, ``Retryable`` or ``Fatal``.
    """
    headers = {
        "Authorization": f"Bearer {secret}",
        "Content-Type": "application/json",
    }

    try:
        response = await http_client.post(
            COMPLETIONS_PATH,
            json=build_payload(config, text),
            headers=headers,
        )
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
        return Fatal(detail=f"upstream misconfigured: {type(exc).__name__}")
    except httpx.TimeoutException:
        return Retryable(detail="upstream timeout")
    except httpx.RequestError as exc:
        return Retryable(detail=f"transport error: {type(exc).__name__}")

    if not response.is_success:
        return Retryable(
            detail=f"upstream status {response.status_code} "
            f"({_error_code(response) or 'no error code'})",
            credential_fault=response.status_code in CREDENTIAL_FAULT_STATUSES,
            status_code=response.status_code,
        )

    content = _extract_content(response)
    if content is None:
        return Retryable(
            detail="malformed upstream response body",
            status_code=response.status_code,
        )
    return Success(text=content)


def _extract_content(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str) or not content.strip():
        return None
    return content


def _error_code(response: httpx.Response) -> Optional[str]:
    """Pull the provider's short error code; the message may quote the key."""
    try:
        data = cast(Dict[str, object], response.json())
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    error_obj = data.get("error")
    if not isinstance(error_obj, dict):
        return None
    error_dict = cast(Dict[str, object], error_obj)
    code = error_dict.get("code") or error_dict.get("type")
    return str(code) if code else None
