"""
Module: test_errors.py
Description: Unit tests for the relay error taxonomy.

Covers status classification, Retry-After parsing, and wrapping of
transport failures.
"""

from datetime import datetime, timezone

import httpx
import pytest

from clawtell.delivery.errors import (
    AuthenticationError,
    ClientError,
    NotFoundError,
    RateLimitError,
    TransientServerError,
    classify_response,
    classify_transport_error,
    parse_retry_after,
)


def _response(status_code, json=None, headers=None):
    return httpx.Response(status_code, json=json, headers=headers)


class TestClassifyResponse:
    """Test cases for classify_response()."""

    @pytest.mark.parametrize("status_code", [200, 201, 204])
    def test_success_is_not_an_error(self, status_code):
        assert classify_response(_response(status_code)) is None

    def test_401_is_authentication_error(self):
        error = classify_response(_response(401, json={"error": "Invalid API key"}))
        assert isinstance(error, AuthenticationError)
        assert error.status_code == 401
        assert error.retryable is False

    def test_404_is_not_found(self):
        error = classify_response(_response(404))
        assert isinstance(error, NotFoundError)
        assert error.message == "Resource not found"

    def test_429_carries_retry_after(self):
        error = classify_response(_response(429, headers={"Retry-After": "5"}))
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 5.0
        assert error.retryable is True

    def test_429_without_header(self):
        error = classify_response(_response(429))
        assert isinstance(error, RateLimitError)
        assert error.retry_after is None

    @pytest.mark.parametrize("status_code", [500, 502, 503, 504])
    def test_5xx_is_transient(self, status_code):
        error = classify_response(_response(status_code))
        assert isinstance(error, TransientServerError)
        assert error.status_code == status_code
        assert error.retryable is True

    @pytest.mark.parametrize("status_code", [400, 403, 409, 422])
    def test_other_4xx_is_client_error(self, status_code):
        error = classify_response(_response(status_code, json={"error": "Recipient not found"}))
        assert isinstance(error, ClientError)
        assert error.status_code == status_code
        assert error.message == "Recipient not found"
        assert error.retryable is False

    def test_non_json_error_body_uses_default_message(self):
        error = classify_response(httpx.Response(400, text="<html>bad</html>"))
        assert error.message == "Request failed (HTTP 400)"


class TestParseRetryAfter:
    """Test cases for parse_retry_after()."""

    def test_seconds(self):
        assert parse_retry_after("5") == 5.0
        assert parse_retry_after(" 12 ") == 12.0

    def test_missing_or_blank(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None

    def test_negative_clamps_to_zero(self):
        assert parse_retry_after("-3") == 0.0

    def test_http_date(self):
        now = datetime(2026, 1, 15, 10, 30, 0, tzinfo=timezone.utc)
        assert parse_retry_after("Thu, 15 Jan 2026 10:30:10 GMT", now=now) == 10.0

    def test_http_date_in_past(self):
        now = datetime(2026, 1, 15, 10, 30, 0, tzinfo=timezone.utc)
        assert parse_retry_after("Thu, 15 Jan 2026 10:00:00 GMT", now=now) == 0.0

    def test_garbage(self):
        assert parse_retry_after("soon") is None

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf", "Infinity"])
    def test_non_finite_seconds_ignored(self, value):
        assert parse_retry_after(value) is None


class TestClassifyTransportError:
    """Test cases for classify_transport_error()."""

    def test_timeout(self):
        error = classify_transport_error(httpx.ReadTimeout("read timed out"))
        assert isinstance(error, TransientServerError)
        assert "timed out" in error.message

    def test_connect_error(self):
        error = classify_transport_error(httpx.ConnectError("name resolution failed"))
        assert isinstance(error, TransientServerError)
        assert "ConnectError" in error.message
