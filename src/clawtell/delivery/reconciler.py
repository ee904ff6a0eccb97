"""
Module: delivery/reconciler.py
Description: Inbound delivery reconciler.

Both inbound transports (webhook push and poll) hand messages to the
reconciler, which checks the account's Seen-Message Window and forwards
each new message to the application sink once.
"""

from enum import Enum

from clawtell.delivery.dedup import ClaimResult, SeenMessageWindow
from clawtell.delivery.push import MessageSink
from clawtell.models.message import InboundMessage
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    DUPLICATE = "duplicate"
    IN_FLIGHT = "in_flight"
    FAILED = "failed"

    @property
    def surfaced(self) -> bool:
        """The application has this message (now or earlier)."""
        return self in (DeliveryOutcome.DELIVERED, DeliveryOutcome.DUPLICATE)


class InboundReconciler:
    """
    Dedup+route step shared by the webhook receiver and the poll loop.

    Attributes:
        sink: Application sink receiving each message at most once
        window: Seen-Message Window shared by both transports
    """

    def __init__(self, sink: MessageSink, window: SeenMessageWindow):
        self.sink = sink
        self.window = window

    async def deliver(self, message: InboundMessage) -> DeliveryOutcome:
        """
        Surface ``message`` to the application unless already seen.

        A sink that returns False or raises counts as a failure; the id is
        released so a later arrival can retry delivery. The id is also
        released when the handoff is cancelled.

        Args:
            message: Routed inbound message

        Returns:
            DeliveryOutcome describing what happened
        """
        claim = self.window.claim(message.message_id)
        if claim is ClaimResult.SEEN:
            logger.debug(
                "Duplicate message suppressed",
                account_id=message.account_id,
                message_id=message.message_id,
                source=message.source,
            )
            return DeliveryOutcome.DUPLICATE
        if claim is ClaimResult.IN_FLIGHT:
            logger.debug(
                "Message already being delivered",
                account_id=message.account_id,
                message_id=message.message_id,
                source=message.source,
            )
            return DeliveryOutcome.IN_FLIGHT

        try:
            delivered = await self.sink.deliver(message)
        except Exception as e:
            logger.error(
                "Application sink raised",
                account_id=message.account_id,
                message_id=message.message_id,
                source=message.source,
                error=str(e),
                error_type=type(e).__name__,
            )
            delivered = False
        except BaseException:
            # Cancelled mid-handoff: drop the reservation so a later arrival retries
            self.window.release(message.message_id)
            raise

        if not delivered:
            self.window.release(message.message_id)
            logger.warning(
                "Message delivery failed",
                account_id=message.account_id,
                message_id=message.message_id,
                source=message.source,
            )
            return DeliveryOutcome.FAILED

        self.window.commit(message.message_id)
        logger.info(
            "Message delivered",
            account_id=message.account_id,
            message_id=message.message_id,
            sender=message.sender_display,
            source=message.source,
        )
        return DeliveryOutcome.DELIVERED
