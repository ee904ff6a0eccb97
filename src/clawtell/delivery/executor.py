"""
Module: delivery/executor.py
Description: Resilient request executor for the relay API.

Issues one logical HTTPS request with bounded retries. Every attempt has
its own timeout; failures are classified by the error taxonomy, and only
transient and rate-limit failures are retried.

Requests are not idempotent at this layer. If an attempt times out after
the relay processed it, the retry can duplicate the server-side effect;
callers must assume at-least-once semantics.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from clawtell.delivery.errors import (
    ClawTellError,
    classify_response,
    classify_transport_error,
)
from clawtell.delivery.retry import relay_retrying
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ATTEMPTS = 3
USER_AGENT = "clawtell-python"


@dataclass
class DeliveryAttempt:
    """Transient record of one attempt within a single execute() call."""

    attempt_number: int
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcome: str = "pending"


class RequestExecutor:
    """
    HTTP executor for authenticated relay requests.

    Owns an httpx.AsyncClient unless one is supplied. Concurrent execute()
    calls are independent; retries sleep without blocking other tasks.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the executor.

        Args:
            api_key: Bearer credential sent on every request
            base_url: Relay base URL; ``/api`` is appended
            timeout_seconds: Default per-attempt timeout
            max_attempts: Attempts per logical request
            http_client: Optional shared AsyncClient
            sleep: Optional awaitable sleep used between attempts

        Raises:
            ValueError: If api_key or base_url is invalid
        """
        if not api_key or not isinstance(api_key, str):
            raise ValueError("api_key must be a non-empty string")
        if not base_url or not base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP/HTTPS URL")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}/api{path}"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def execute(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Execute one logical request against the relay.

        Args:
            method: HTTP method
            path: Path below ``/api``, e.g. ``/messages/send``
            json: Optional JSON body
            params: Optional query parameters
            timeout: Per-attempt timeout in seconds (defaults to the executor's)

        Returns:
            Parsed JSON response body ({} for empty bodies)

        Raises:
            AuthenticationError, NotFoundError, ClientError: On the first attempt
            RateLimitError, TransientServerError: After exhausting all attempts
        """
        url = self.url_for(path)
        per_attempt = timeout if timeout is not None else self.timeout_seconds
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}

        async for attempt in relay_retrying(self.max_attempts, sleep=self._sleep):
            with attempt:
                record = DeliveryAttempt(attempt_number=attempt.retry_state.attempt_number)
                return await self._attempt(record, method, url, json, query, per_attempt)

        # relay_retrying re-raises on exhaustion; this is unreachable
        raise ClawTellError("Request failed after retries")

    async def _attempt(
        self,
        record: DeliveryAttempt,
        method: str,
        url: str,
        body: Optional[Any],
        query: Dict[str, str],
        timeout: float,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                url,
                json=body,
                params=query or None,
                headers=self.headers,
                timeout=timeout,
            )
        except httpx.TransportError as e:
            error = classify_transport_error(e)
            record.outcome = "transport_error"
            self._log_attempt(record, method, url, error=error)
            raise error from e

        error = classify_response(response)
        if error is not None:
            record.outcome = f"http_{response.status_code}"
            self._log_attempt(record, method, url, error=error)
            raise error

        record.outcome = "success"
        self._log_attempt(record, method, url, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise ClawTellError(
                f"Relay returned invalid JSON (HTTP {response.status_code})",
                response.status_code,
            ) from e
        return data if isinstance(data, dict) else {"data": data}

    def _log_attempt(
        self,
        record: DeliveryAttempt,
        method: str,
        url: str,
        error: Optional[ClawTellError] = None,
        status_code: Optional[int] = None,
    ) -> None:
        elapsed_ms = (datetime.now(timezone.utc) - record.started_at).total_seconds() * 1000
        if error is None:
            logger.debug(
                "Relay request succeeded",
                method=method,
                url=url,
                attempt=record.attempt_number,
                status_code=status_code,
                elapsed_ms=round(elapsed_ms, 1),
            )
            return
        logger.warning(
            "Relay request attempt failed",
            method=method,
            url=url,
            attempt=record.attempt_number,
            max_attempts=self.max_attempts,
            outcome=record.outcome,
            error=error.message,
            error_type=type(error).__name__,
            elapsed_ms=round(elapsed_ms, 1),
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
