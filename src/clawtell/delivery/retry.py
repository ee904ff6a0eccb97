"""
Module: delivery/retry.py
Description: Retry policy for relay requests.

Builds tenacity retry controllers with capped exponential backoff for
transient failures, and Retry-After aware waits for rate limiting.
"""

from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from clawtell.delivery.errors import RateLimitError, TransientServerError
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)

# Transient: 2s, 4s, 8s ... capped at 10s
TRANSIENT_MULTIPLIER = 2
TRANSIENT_MAX_WAIT = 10
# Rate limited without Retry-After: same growth, capped at 30s
RATE_LIMIT_MAX_WAIT = 30

RETRYABLE_ERRORS = (TransientServerError, RateLimitError)


class wait_for_failure(wait_base):
    """
    Pick the wait based on the failure that ended the attempt.

    A RateLimitError carrying ``retry_after`` waits exactly that long.
    Otherwise rate-limited attempts use ``rate_limited`` and everything
    else uses ``transient``.
    """

    def __init__(self, transient: wait_base, rate_limited: wait_base):
        self.transient = transient
        self.rate_limited = rate_limited

    def __call__(self, retry_state) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError):
            if exc.retry_after is not None:
                return exc.retry_after
            return self.rate_limited(retry_state)
        return self.transient(retry_state)


def backoff_wait() -> wait_for_failure:
    """Default wait strategy for relay requests."""
    return wait_for_failure(
        transient=wait_exponential(multiplier=TRANSIENT_MULTIPLIER, max=TRANSIENT_MAX_WAIT),
        rate_limited=wait_exponential(multiplier=TRANSIENT_MULTIPLIER, max=RATE_LIMIT_MAX_WAIT),
    )


def _log_retry(retry_state) -> None:
    """Log each scheduled retry with the failure that caused it."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(
        "Retrying relay request",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc),
        error_type=type(exc).__name__,
    )


def relay_retrying(
    max_attempts: int = 3,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> AsyncRetrying:
    """
    Build the retry controller for one logical relay request.

    Only TransientServerError and RateLimitError are retried; anything else
    propagates on the first attempt. After the last attempt the final error
    is re-raised unchanged.

    Args:
        max_attempts: Total attempts, including the first
        sleep: Awaitable sleep used between attempts (tests inject a recorder)

    Returns:
        Configured tenacity AsyncRetrying instance
    """
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=backoff_wait(),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=_log_retry,
        reraise=True,
        **kwargs,
    )
