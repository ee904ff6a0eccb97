"""
Module: errors.py
Description: Error taxonomy for relay requests.

Maps completed HTTP responses and transport failures to typed errors so the
executor can decide what to retry. Classification is pure; nothing here
performs I/O.

Key Components:
- ClawTellError: Base class carrying the HTTP status code
- AuthenticationError, NotFoundError, ClientError: Not retried
- RateLimitError: Retried, honouring Retry-After
- TransientServerError: Retried (5xx and network failures)
- ValidationError: Raised locally before any network call
- classify_response(), classify_transport_error(), parse_retry_after()

Dependencies: httpx, email.utils, datetime
"""

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx


class ClawTellError(Exception):
    """Base class for all delivery core errors."""

    def __init__(self, message: str = "Request failed", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return False


class AuthenticationError(ClawTellError):
    """HTTP 401: the API key was rejected."""

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message, 401)


class NotFoundError(ClawTellError):
    """HTTP 404: the resource does not exist."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class RateLimitError(ClawTellError):
    """
    HTTP 429: the relay asked us to slow down.

    Attributes:
        retry_after: Seconds to wait before the next attempt, if supplied
    """

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message, 429)
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return True


class TransientServerError(ClawTellError):
    """HTTP 5xx or a network-level failure (timeout, reset, DNS)."""

    def __init__(self, message: str = "Relay temporarily unavailable", status_code: Optional[int] = None):
        super().__init__(message, status_code)

    @property
    def retryable(self) -> bool:
        return True


class ClientError(ClawTellError):
    """Any other non-2xx status below 500."""


class ValidationError(ClawTellError):
    """Local input validation failure; never reaches the network."""

    def __init__(self, message: str):
        super().__init__(message, None)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """
    Parse a Retry-After header value.

    Accepts delay-seconds (``"5"``) or an HTTP-date. Dates in the past
    yield 0. Unparseable values yield None.

    Args:
        value: Raw header value
        now: Reference time for HTTP-dates (defaults to current UTC time)

    Returns:
        Seconds to wait, or None
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        seconds = None

    if seconds is not None:
        if not math.isfinite(seconds):
            return None
        return max(seconds, 0.0)

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    reference = now or datetime.now(timezone.utc)
    return max((when - reference).total_seconds(), 0.0)


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return default


def classify_response(response: httpx.Response) -> Optional[ClawTellError]:
    """
    Classify a completed HTTP response.

    Args:
        response: Response received from the relay

    Returns:
        None for 2xx responses, otherwise the most specific typed error
    """
    status = response.status_code
    if 200 <= status < 300:
        return None
    if status == 401:
        return AuthenticationError(_error_message(response, "Invalid API key"))
    if status == 404:
        return NotFoundError(_error_message(response, "Resource not found"))
    if status == 429:
        return RateLimitError(
            _error_message(response, "Rate limit exceeded"),
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )
    if status >= 500:
        return TransientServerError(
            _error_message(response, f"Relay error (HTTP {status})"),
            status_code=status,
        )
    return ClientError(_error_message(response, f"Request failed (HTTP {status})"), status)


def classify_transport_error(exc: Exception) -> TransientServerError:
    """
    Wrap a transport failure as a transient error.

    Timeouts, connection resets and DNS failures all surface from httpx as
    subclasses of httpx.TransportError.
    """
    if isinstance(exc, httpx.TimeoutException):
        return TransientServerError(f"Request timed out: {exc}")
    return TransientServerError(f"Network error: {type(exc).__name__}: {exc}")
