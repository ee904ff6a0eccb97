"""
Module: request.py
Description: Request models for the relay API and the webhook receiver.

Key Components:
- SendMessageRequest: Body of ``POST /messages/send``
- AckRequest: Body of ``POST /messages/ack``
- NameUpdateRequest: Body of ``PATCH /names/<name>`` (gateway registration)
- WebhookPayload: Pushed webhook body, validated before routing

Dependencies: pydantic, datetime, typing
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clawtell.models.message import parse_timestamp


class SendMessageRequest(BaseModel):
    """Outbound message as sent to the relay."""

    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    subject: str = "Message"
    reply_to: Optional[str] = Field(default=None, alias="replyTo")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize using the relay's field names, omitting unset replies."""
        return self.model_dump(by_alias=True, exclude_none=True)


class AckRequest(BaseModel):
    """Batch acknowledgment of delivered messages."""

    model_config = ConfigDict(populate_by_name=True)

    message_ids: List[str] = Field(..., alias="messageIds")


class NameUpdateRequest(BaseModel):
    """Agent name settings update; used to register the gateway webhook."""

    gateway_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    webhook_url: Optional[str] = None
    communication_mode: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WebhookPayload(BaseModel):
    """
    Body pushed by the relay to the webhook receiver.

    ``messageId``, ``from`` and ``body`` are required and must be non-empty;
    everything else is optional.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: str = Field(..., alias="messageId")
    sender: str = Field(..., alias="from")
    body: str
    subject: Optional[str] = None
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    reply_to_message_id: Optional[str] = Field(default=None, alias="replyToMessageId")
    auto_reply_eligible: Optional[bool] = Field(default=None, alias="autoReplyEligible")
    timestamp: Optional[datetime] = None

    @field_validator("message_id", "sender", "body", mode="before")
    @classmethod
    def require_non_empty(cls, v: Any) -> Any:
        """Required fields must be present and non-empty strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("timestamp", mode="before")
    @classmethod
    def lenient_timestamp(cls, v: Any) -> Optional[datetime]:
        """An unreadable timestamp is dropped; the receive time is used instead."""
        return parse_timestamp(v)
