"""Backoff policy for transient text-generation failures.

Delays are ``0.8 * 2**i`` seconds for attempt index ``i`` unless the
service sent a RetryInfo ``retryDelay``, which always wins.
"""
import asyncio
import json
import logging
import re
from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from .errors import StructuralServiceError, TransientServiceError

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 0.8

_DELAY_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|s|m|h)?", re.I)
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

Sleep = Callable[[float], Awaitable[None]]


def parse_retry_delay(body: Optional[str]) -> Optional[float]:
    """Return the server-suggested delay in seconds, or None.

    Looks for ``error.details[*]`` with an ``@type`` containing "RetryInfo"
    and reads its ``retryDelay`` ("12s", "1.5s", "500ms"...).
    """
    if not body:
        return None
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("error"), dict):
        return None

    details = payload["error"].get("details")
    if not isinstance(details, list):
        return None
    for detail in details:
        if not isinstance(detail, dict) or "RetryInfo" not in str(detail.get("@type", "")):
            continue
        m = _DELAY_RE.search(str(detail.get("retryDelay", "")))
        if m:
            unit = (m.group(2) or "s").lower()
            return float(m.group(1)) * _UNIT_SECONDS[unit]
    return None


def backoff_delay(attempt_index: int, retry_after: Optional[float] = None) -> float:
    if retry_after is not None:
        return retry_after
    return BASE_DELAY_SECONDS * (2 ** attempt_index)


class wait_retry_hint(wait_base):
    """Tenacity wait strategy driven by the exception the attempt raised.

    Structural failures move on to the next model immediately; transient
    ones wait for the server hint or the exponential default.
    """

    def __call__(self, retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, StructuralServiceError):
            return 0.0
        retry_after = exc.retry_after if isinstance(exc, TransientServiceError) else None
        return backoff_delay(retry_state.attempt_number - 1, retry_after)


def plan_retrying(attempts: int, sleep: Sleep = asyncio.sleep) -> AsyncRetrying:
    """Retry controller for one pass over a retry plan of ``attempts`` models."""

    async def _sleep(seconds: float) -> None:
        if seconds > 0:
            await sleep(seconds)

    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_retry_hint(),
        retry=retry_if_exception_type((TransientServiceError, StructuralServiceError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=_sleep,
        reraise=True,
    )
