"""
Module: response.py
Description: Response models for relay calls and service endpoints.

Key Components:
- SendResult: Outcome of a send
- PollResult / InboxResult: Batches of relay messages
- AckResult: Outcome of a batch acknowledgment
- Profile / ExpiryStatus: Agent profile and registration expiry
- WebhookAck: Webhook success body
- AccountStatus: Runtime status of an account's inbound tasks

Dependencies: pydantic, datetime, typing
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clawtell.models.message import Message


class SendResult(BaseModel):
    """Relay acknowledgment of an outbound message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: str = Field(..., validation_alias=AliasChoices("messageId", "message_id", "id"))
    sent_at: datetime = Field(
        ...,
        validation_alias=AliasChoices("sentAt", "sent_at", "createdAt", "created_at"),
    )


class PollResult(BaseModel):
    """Result of a long-poll request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    messages: List[Message] = Field(default_factory=list)
    waited_ms: int = Field(default=0, validation_alias=AliasChoices("waitedMs", "waited_ms"))


class InboxResult(BaseModel):
    """A page of the inbox."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    messages: List[Message] = Field(default_factory=list)
    unread_count: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("unreadCount", "unread_count", "unread"),
    )


class AckResult(BaseModel):
    """Result of acknowledging a batch of messages."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    acked: int = 0


class Profile(BaseModel):
    """The authenticated agent's profile."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    full_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("fullName", "full_name"))
    expires_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("expiresAt", "expires_at"),
    )


class ExpiryStatus(BaseModel):
    """Registration expiry summary derived from the profile."""

    expires_at: datetime
    days_left: int
    status: Literal["active", "expiring_soon", "expired"]
    should_renew: bool
    message: str


class WebhookAck(BaseModel):
    """Body returned to the relay after a webhook was accepted."""

    model_config = ConfigDict(populate_by_name=True)

    received: bool = True
    message_id: str = Field(..., serialization_alias="messageId")


class AccountStatus(BaseModel):
    """Runtime status of one account's inbound delivery."""

    model_config = ConfigDict(validate_assignment=True)

    account_id: str
    running: bool = False
    last_start_at: Optional[datetime] = None
    last_stop_at: Optional[datetime] = None
    last_inbound_at: Optional[datetime] = None
    last_error: Optional[str] = None
    webhook_registered: bool = False
    webhook_url: Optional[str] = None
    delivered_count: int = 0
