"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the delivery core:
- Message: Relay message as read by clients
- InboundMessage: Routed message handed to the application sink
- WebhookPayload: Pushed webhook body
- SendResult, PollResult, AccountStatus: Relay and runtime results

All models are exported here for convenient importing.
"""

from .message import InboundMessage, Message
from .request import WebhookPayload
from .response import AccountStatus, PollResult, SendResult

__all__ = [
    "Message",
    "InboundMessage",
    "WebhookPayload",
    "SendResult",
    "PollResult",
    "AccountStatus",
]
