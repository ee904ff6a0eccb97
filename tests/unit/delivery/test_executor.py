"""
Module: test_executor.py
Description: Unit tests for the resilient request executor.

Relay responses are mocked with pytest-httpx; the executor's sleep is a
recorder, so backoff delays are asserted without waiting.
"""

import json

import httpx
import pytest

from clawtell.delivery.errors import (
    AuthenticationError,
    ClientError,
    NotFoundError,
    RateLimitError,
    TransientServerError,
)
from clawtell.delivery.executor import RequestExecutor

ME_URL = "https://relay.test/api/me"
SEND_URL = "https://relay.test/api/messages/send"


class TestExecutorConstruction:
    """Test cases for executor configuration."""

    def test_rejects_missing_api_key(self):
        with pytest.raises(ValueError):
            RequestExecutor(api_key="", base_url="https://relay.test")

    def test_rejects_invalid_base_url(self):
        with pytest.raises(ValueError):
            RequestExecutor(api_key="key", base_url="relay.test")

    def test_url_for_appends_api_prefix(self):
        executor = RequestExecutor(api_key="key", base_url="https://relay.test/")
        assert executor.url_for("/me") == ME_URL
        assert executor.url_for("messages/send") == SEND_URL


class TestExecutorSuccess:
    """Test cases for successful requests."""

    @pytest.mark.asyncio
    async def test_returns_parsed_json_with_bearer_auth(self, executor, httpx_mock):
        httpx_mock.add_response(method="GET", url=ME_URL, json={"name": "bob"})

        data = await executor.execute("GET", "/me")

        assert data == {"name": "bob"}
        request = httpx_mock.get_requests()[0]
        assert request.headers["Authorization"] == "Bearer ct_test_0123456789abcdef"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_sends_json_body(self, executor, httpx_mock):
        httpx_mock.add_response(method="POST", url=SEND_URL, json={"messageId": "m1"})

        await executor.execute("POST", "/messages/send", json={"to": "bob", "body": "hi"})

        request = httpx_mock.get_requests()[0]
        assert json.loads(request.content) == {"to": "bob", "body": "hi"}

    @pytest.mark.asyncio
    async def test_empty_body_returns_empty_dict(self, executor, httpx_mock):
        httpx_mock.add_response(method="POST", url=SEND_URL, status_code=204)

        assert await executor.execute("POST", "/messages/send") == {}

    @pytest.mark.asyncio
    async def test_per_attempt_timeout_is_applied(self, executor, httpx_mock):
        httpx_mock.add_response(method="GET", url=ME_URL, json={})

        await executor.execute("GET", "/me", timeout=7)

        timeout = httpx_mock.get_requests()[0].extensions["timeout"]
        assert timeout["read"] == 7


class TestExecutorNonRetryable:
    """401, 404 and other client errors abort on the first attempt."""

    @pytest.mark.asyncio
    async def test_401_single_attempt(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=401, json={"error": "Invalid API key"})

        with pytest.raises(AuthenticationError):
            await executor.execute("GET", "/me")

        assert len(httpx_mock.get_requests()) == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_404_single_attempt(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=404)

        with pytest.raises(NotFoundError):
            await executor.execute("GET", "/me")

        assert len(httpx_mock.get_requests()) == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_400_single_attempt(self, executor, httpx_mock):
        httpx_mock.add_response(method="POST", url=SEND_URL, status_code=400, json={"error": "Body too long"})

        with pytest.raises(ClientError) as exc_info:
            await executor.execute("POST", "/messages/send", json={})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Body too long"
        assert len(httpx_mock.get_requests()) == 1


class TestExecutorRetries:
    """Transient and rate-limit failures are retried within the budget."""

    @pytest.mark.asyncio
    async def test_5xx_exhausts_attempts_with_monotonic_backoff(self, executor, httpx_mock, recording_sleep):
        for _ in range(3):
            httpx_mock.add_response(method="GET", url=ME_URL, status_code=503)

        with pytest.raises(TransientServerError) as exc_info:
            await executor.execute("GET", "/me")

        assert exc_info.value.status_code == 503
        assert len(httpx_mock.get_requests()) == 3
        assert len(recording_sleep.delays) == 2
        assert recording_sleep.delays == sorted(recording_sleep.delays)
        assert recording_sleep.delays == [2, 4]

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self, recording_sleep, httpx_mock):
        executor = RequestExecutor(
            api_key="key", base_url="https://relay.test", max_attempts=6, sleep=recording_sleep
        )
        for _ in range(6):
            httpx_mock.add_response(method="GET", url=ME_URL, status_code=500)

        with pytest.raises(TransientServerError):
            await executor.execute("GET", "/me")

        assert recording_sleep.delays == [2, 4, 8, 10, 10]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=502)
        httpx_mock.add_response(method="GET", url=ME_URL, json={"name": "bob"})

        assert await executor.execute("GET", "/me") == {"name": "bob"}
        assert recording_sleep.delays == [2]

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"), method="GET", url=ME_URL)
        httpx_mock.add_response(method="GET", url=ME_URL, json={"name": "bob"})

        assert await executor.execute("GET", "/me") == {"name": "bob"}
        assert len(httpx_mock.get_requests()) == 2
        assert recording_sleep.delays == [2]

    @pytest.mark.asyncio
    async def test_network_failure_surfaces_as_transient(self, executor, httpx_mock):
        for _ in range(3):
            httpx_mock.add_exception(httpx.ConnectError("connection reset"), method="GET", url=ME_URL)

        with pytest.raises(TransientServerError):
            await executor.execute("GET", "/me")

        assert len(httpx_mock.get_requests()) == 3

    @pytest.mark.asyncio
    async def test_429_waits_retry_after(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=429, headers={"Retry-After": "5"})
        httpx_mock.add_response(method="GET", url=ME_URL, json={"name": "bob"})

        assert await executor.execute("GET", "/me") == {"name": "bob"}
        assert recording_sleep.delays == [5]

    @pytest.mark.asyncio
    async def test_429_without_retry_after_uses_exponential(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=429)
        httpx_mock.add_response(method="GET", url=ME_URL, json={})

        await executor.execute("GET", "/me")

        assert recording_sleep.delays == [2]

    @pytest.mark.asyncio
    async def test_429_exhausted_surfaces_rate_limit_error(self, executor, httpx_mock):
        for _ in range(3):
            httpx_mock.add_response(method="GET", url=ME_URL, status_code=429, headers={"Retry-After": "1"})

        with pytest.raises(RateLimitError) as exc_info:
            await executor.execute("GET", "/me")

        assert exc_info.value.retry_after == 1.0
        assert len(httpx_mock.get_requests()) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_after_retry_stops(self, executor, httpx_mock, recording_sleep):
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=500)
        httpx_mock.add_response(method="GET", url=ME_URL, status_code=401)

        with pytest.raises(AuthenticationError):
            await executor.execute("GET", "/me")

        assert len(httpx_mock.get_requests()) == 2
        assert recording_sleep.delays == [2]
