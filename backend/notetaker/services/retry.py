"""Exponential backoff retry for transient speech/chat service errors."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from notetaker.errors import is_transient

logger = logging.getLogger("notetaker.retry")

T = TypeVar("T")


def call_with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "request",
) -> T:
    """Call ``fn`` until it succeeds, retrying only transient failures.

    The delay before retry ``n`` (0-based) is ``base_delay * 2**n``. A
    non-transient error propagates on first occurrence; exhausting the
    attempts re-raises the last error.
    """
    attempts = max(1, int(max_attempts))
    last_exc: Optional[Exception] = None
    for attempt in range(attempts):
        try:
            return fn()
        except Exception as exc:
            last_exc = exc
            if not is_transient(exc) or attempt == attempts - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description, attempt + 1, attempts, delay, exc,
            )
            sleep(delay)
    raise last_exc  # type: ignore[misc]  # unreachable
