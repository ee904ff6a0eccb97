"""
Module: delivery/push.py
Description: Application sinks for inbound messages.

The reconciler hands each new message to a MessageSink. Sinks report
success or failure; a failure makes the webhook answer 500 and keeps the
poll loop from acknowledging the message, so it is delivered again later.

Key Components:
- MessageSink: Protocol implemented by every sink
- PushDeliveryClient: Forwards messages to a downstream HTTP endpoint
- CallbackSink: Adapts an in-process callable
- LogSink: Logs messages when no downstream is configured
"""

import inspect
from typing import Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

import httpx

from clawtell.models.message import InboundMessage
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class MessageSink(Protocol):
    """Consumer of inbound messages. Must tolerate the same id twice."""

    async def deliver(self, message: InboundMessage) -> bool:
        ...


class PushDeliveryClient:
    """
    HTTP sink pushing inbound messages to a downstream application.

    Handles delivery attempts with proper timeout and error handling for
    network issues. Does not retry: the relay webhook and the next poll
    cycle provide redelivery.
    """

    def __init__(
        self,
        forward_url: str,
        timeout_seconds: float = 10,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize push delivery client.

        Args:
            forward_url: Downstream URL receiving inbound messages
            timeout_seconds: HTTP timeout in seconds
            http_client: Optional shared AsyncClient

        Raises:
            ValueError: If forward_url is invalid
        """
        if not forward_url or not isinstance(forward_url, str):
            raise ValueError("forward_url must be a non-empty string")
        if not forward_url.startswith(("http://", "https://")):
            raise ValueError("forward_url must be a valid HTTP/HTTPS URL")

        self.forward_url = forward_url
        self.timeout = httpx.Timeout(timeout_seconds, connect=timeout_seconds)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)

        logger.info(
            "Push delivery client initialized",
            forward_url=forward_url,
            timeout_seconds=timeout_seconds
        )

    async def deliver(self, message: InboundMessage) -> bool:
        """
        Deliver a message downstream via HTTP POST.

        Args:
            message: Message to deliver

        Returns:
            True if delivery successful, False otherwise
        """
        try:
            logger.debug(
                "Attempting message forward",
                message_id=message.message_id,
                forward_url=self.forward_url
            )

            response = await self._client.post(
                self.forward_url,
                json=message.model_dump(mode="json"),
                headers={
                    "Content-Type": "application/json",
                    "Idempotency-Key": message.message_id,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()

            logger.info(
                "Message forwarded successfully",
                message_id=message.message_id,
                status_code=response.status_code,
                response_time_ms=response.elapsed.total_seconds() * 1000
            )
            return True

        except httpx.TimeoutException:
            logger.warning(
                "Message forward timeout",
                message_id=message.message_id,
                forward_url=self.forward_url
            )
            return False

        except httpx.HTTPStatusError as e:
            logger.warning(
                "Message forward HTTP error",
                message_id=message.message_id,
                status_code=e.response.status_code,
                response=e.response.text[:500]
            )
            return False

        except httpx.TransportError as e:
            logger.warning(
                "Message forward network error",
                message_id=message.message_id,
                error=str(e)
            )
            return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


SinkCallable = Callable[[InboundMessage], Union[bool, None, Awaitable[Optional[bool]]]]


class CallbackSink:
    """
    Sink wrapping a plain or async callable.

    A callable returning None counts as success; returning False or raising
    counts as failure.
    """

    def __init__(self, callback: SinkCallable):
        if not callable(callback):
            raise ValueError("callback must be callable")
        self.callback = callback

    async def deliver(self, message: InboundMessage) -> bool:
        result = self.callback(message)
        if inspect.isawaitable(result):
            result = await result
        return result is not False


class LogSink:
    """Fallback sink that records inbound messages in the log."""

    async def deliver(self, message: InboundMessage) -> bool:
        logger.info(
            "Inbound message",
            account_id=message.account_id,
            message_id=message.message_id,
            sender=message.sender_id,
            chat_id=message.chat_id,
            source=message.source,
            text=message.text[:500],
        )
        return True
