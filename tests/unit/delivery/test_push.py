"""
Module: test_push.py
Description: Unit tests for application sinks.
"""

import httpx
import pytest

from clawtell.delivery.push import CallbackSink, LogSink, MessageSink, PushDeliveryClient
from clawtell.models.message import InboundMessage

FORWARD_URL = "https://app.example.com/inbound"


@pytest.fixture
def inbound() -> InboundMessage:
    return InboundMessage.build(
        account_id="default",
        message_id="m1",
        sender="tell/alice",
        body="hello",
        subject="Hi",
        source="webhook",
    )


class TestPushDeliveryClient:
    """Test cases for PushDeliveryClient."""

    def test_init_rejects_invalid_url(self):
        with pytest.raises(ValueError, match="non-empty"):
            PushDeliveryClient("")
        with pytest.raises(ValueError, match="HTTP/HTTPS"):
            PushDeliveryClient("ftp://app.example.com")

    @pytest.mark.asyncio
    async def test_deliver_success(self, httpx_mock, inbound):
        httpx_mock.add_response(url=FORWARD_URL, method="POST", status_code=202)
        client = PushDeliveryClient(FORWARD_URL)

        assert await client.deliver(inbound) is True

        request = httpx_mock.get_request()
        assert request.headers["Idempotency-Key"] == "m1"
        body = request.read().decode()
        assert '"message_id":"m1"' in body.replace(" ", "")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_deliver_http_error(self, httpx_mock, inbound):
        httpx_mock.add_response(url=FORWARD_URL, method="POST", status_code=503)
        client = PushDeliveryClient(FORWARD_URL)

        assert await client.deliver(inbound) is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_deliver_timeout(self, httpx_mock, inbound):
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
        client = PushDeliveryClient(FORWARD_URL)

        assert await client.deliver(inbound) is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_deliver_network_error(self, httpx_mock, inbound):
        httpx_mock.add_exception(httpx.ConnectError("refused"))
        client = PushDeliveryClient(FORWARD_URL)

        assert await client.deliver(inbound) is False
        await client.aclose()


class TestCallbackSink:
    """Test cases for CallbackSink."""

    @pytest.mark.asyncio
    async def test_sync_callable_returning_none_is_success(self, inbound):
        received = []
        sink = CallbackSink(received.append)

        assert await sink.deliver(inbound) is True
        assert received == [inbound]

    @pytest.mark.asyncio
    async def test_async_callable_returning_false_is_failure(self, inbound):
        async def reject(message):
            return False

        assert await CallbackSink(reject).deliver(inbound) is False

    def test_rejects_non_callable(self):
        with pytest.raises(ValueError):
            CallbackSink("not callable")


class TestLogSink:
    """Test cases for LogSink."""

    @pytest.mark.asyncio
    async def test_always_accepts(self, inbound):
        sink = LogSink()
        assert isinstance(sink, MessageSink)
        assert await sink.deliver(inbound) is True
