"""
Module: delivery/poller.py
Description: Poll loop for inbound messages.

Runs as one long-lived task per account. Each cycle fetches unread
messages, routes them through the reconciler (which deduplicates against
the shared Seen-Message Window) and acknowledges what the application now
has in one batch. Acknowledgment failures are only logged: the next cycle
refetches unacknowledged messages and the window drops the repeats.
"""

from datetime import datetime, timezone
from typing import List, Optional

from clawtell.delivery.client import ClawTellClient
from clawtell.delivery.errors import ClawTellError
from clawtell.delivery.reconciler import DeliveryOutcome, InboundReconciler
from clawtell.models.message import InboundMessage, Message
from clawtell.models.response import AccountStatus
from clawtell.utils.cancellation import CancellationToken, OperationCancelled
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)


class PollLoop:
    """
    Pull transport for one account.

    Attributes:
        mode: ``long_poll`` (relay holds the request open, no sleep between
            successful cycles) or ``interval`` (inbox read, then sleep)
        interval_seconds: Sleep between interval cycles and after failures
    """

    def __init__(
        self,
        account_id: str,
        client: ClawTellClient,
        reconciler: InboundReconciler,
        status: AccountStatus,
        mode: str = "long_poll",
        interval_seconds: float = 30.0,
        poll_timeout_seconds: int = 30,
        limit: int = 50,
    ):
        if mode not in ("long_poll", "interval"):
            raise ValueError(f"Unknown poll mode: {mode}")
        self.account_id = account_id
        self.client = client
        self.reconciler = reconciler
        self.status = status
        self.mode = mode
        self.interval_seconds = interval_seconds
        self.poll_timeout_seconds = poll_timeout_seconds
        self.limit = limit

    async def fetch(self) -> List[Message]:
        """Fetch one batch of unread messages from the relay."""
        if self.mode == "long_poll":
            result = await self.client.poll(timeout_seconds=self.poll_timeout_seconds, limit=self.limit)
        else:
            result = await self.client.inbox(limit=self.limit, unread_only=True)
        return result.messages

    async def process(self, messages: List[Message], token: Optional[CancellationToken] = None) -> List[str]:
        """
        Route a batch and acknowledge what the application has.

        Messages are handed over in batch order. Ids the sink accepted, and
        ids it already had, are acknowledged; failed and in-flight ids are
        left unacknowledged so they are fetched again.

        Returns:
            Ids newly delivered to the application in this batch
        """
        delivered: List[str] = []
        to_ack: List[str] = []

        for message in messages:
            if token is not None and token.cancelled:
                break
            inbound = InboundMessage.from_message(message, account_id=self.account_id, source="poll")
            outcome = await self.reconciler.deliver(inbound)
            if outcome is DeliveryOutcome.DELIVERED:
                delivered.append(message.id)
                self.status.last_inbound_at = datetime.now(timezone.utc)
                self.status.delivered_count += 1
            if outcome.surfaced:
                to_ack.append(message.id)

        if to_ack:
            try:
                await self.client.ack(to_ack)
            except ClawTellError as e:
                logger.warning(
                    "Acknowledgment failed; messages will be refetched",
                    account_id=self.account_id,
                    count=len(to_ack),
                    error=e.message,
                    error_type=type(e).__name__,
                )

        return delivered

    async def poll_once(self, token: CancellationToken) -> List[str]:
        """
        Run a single cycle: fetch (interruptible) then process.

        Raises:
            OperationCancelled: If the token fires while waiting on the relay
            ClawTellError: If fetching fails after the executor's retries
        """
        messages = await token.run(self.fetch())
        if messages:
            logger.debug("Poll returned messages", account_id=self.account_id, count=len(messages))
        return await self.process(messages, token)

    async def run(self, token: CancellationToken) -> None:
        """
        Poll until ``token`` is cancelled.

        Errors never end the loop; they are recorded in the status and the
        loop waits ``interval_seconds`` before the next cycle. Cancellation
        interrupts both the sleep and an in-flight long-poll.
        """
        self.status.running = True
        self.status.last_start_at = datetime.now(timezone.utc)
        logger.info("Poll loop started", account_id=self.account_id, mode=self.mode)

        try:
            while not token.cancelled:
                delay = self.interval_seconds if self.mode == "interval" else 0
                try:
                    await self.poll_once(token)
                    self.status.last_error = None
                except OperationCancelled:
                    break
                except ClawTellError as e:
                    self.status.last_error = e.message
                    delay = self.interval_seconds
                    logger.warning(
                        "Poll cycle failed",
                        account_id=self.account_id,
                        error=e.message,
                        error_type=type(e).__name__,
                        retry_in_seconds=delay,
                    )
                except Exception as e:
                    self.status.last_error = str(e)
                    delay = self.interval_seconds
                    logger.error(
                        "Unexpected poll cycle error",
                        account_id=self.account_id,
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
                if await token.sleep(delay):
                    break
        finally:
            self.status.running = False
            self.status.last_stop_at = datetime.now(timezone.utc)
            logger.info("Poll loop stopped", account_id=self.account_id)
