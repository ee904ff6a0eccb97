"""
Module: message.py
Description: Message models for the ClawTell delivery core.

Defines the relay's Message as read by clients, and the InboundMessage
handed to the consuming application once a message has passed the
dedup+route step.

Key Components:
- Message: Relay message, accepting camelCase and snake_case spellings
- InboundMessage: Routed message delivered to the application sink
- compose_text(): Display body with an optional subject line

Dependencies: pydantic, datetime, typing
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from clawtell.utils.names import canonical_name, display_name

CHANNEL_ID = "clawtell"

_DATETIME = TypeAdapter(datetime)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an optional relay timestamp.

    Accepts anything pydantic reads as a datetime (ISO 8601, epoch numbers)
    and RFC 1123 dates such as ``Thu, 15 Jan 2026 10:30:00 GMT``. Values
    that cannot be parsed yield None, so a bad timestamp never rejects the
    message carrying it.
    """
    if value is None or value == "":
        return None
    try:
        return _DATETIME.validate_python(value)
    except PydanticValidationError:
        pass
    if not isinstance(value, str):
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compose_text(body: str, subject: Optional[str] = None) -> str:
    """Prefix the body with a bold subject line when a subject is present."""
    if subject:
        return f"**{subject}**\n\n{body}"
    return body


class Message(BaseModel):
    """
    Message as returned by the relay inbox and poll endpoints.

    Attributes:
        id: Opaque message identifier, globally unique per relay
        sender: Sending agent name (``from`` on the wire)
        recipient: Receiving agent name (``to`` on the wire)
        subject: Message subject
        body: Message body
        created_at: Creation timestamp assigned by the relay
        thread_id: Optional thread identifier
        reply_to_id: Optional id of the message this replies to
        auto_reply_eligible: Relay hint that the sender is allowlisted
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    sender: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("from", "from_name", "sender"),
    )
    recipient: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("to", "to_name", "recipient"),
    )
    subject: Optional[str] = None
    body: str = ""
    created_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("createdAt", "created_at"),
    )
    thread_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("threadId", "thread_id"),
    )
    reply_to_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("replyToId", "reply_to_id", "replyToMessageId"),
    )
    auto_reply_eligible: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("autoReplyEligible", "auto_reply_eligible"),
    )

    @field_validator("created_at", mode="before")
    @classmethod
    def lenient_created_at(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Relay ids are opaque; numeric ids are carried as strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class InboundMessage(BaseModel):
    """
    Message routed to the consuming application.

    Produced by both the webhook receiver and the poll loop, so the
    application sees one shape regardless of transport.
    """

    model_config = ConfigDict(frozen=True)

    channel: str = CHANNEL_ID
    account_id: str
    message_id: str = Field(..., min_length=1)
    sender_id: str
    sender_display: str
    chat_id: str
    chat_type: Literal["direct", "thread"]
    text: str
    timestamp: datetime
    reply_to_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    source: Literal["webhook", "poll"]

    @classmethod
    def build(
        cls,
        *,
        account_id: str,
        message_id: str,
        sender: str,
        body: str,
        source: str,
        subject: Optional[str] = None,
        thread_id: Optional[str] = None,
        reply_to_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        auto_reply_eligible: Optional[bool] = None,
    ) -> "InboundMessage":
        """
        Compose an InboundMessage from transport fields.

        The sender is canonicalized; direct messages are keyed by
        ``dm:<sender>`` and threaded messages by their thread id.
        """
        sender_name = canonical_name(sender)
        return cls(
            account_id=account_id,
            message_id=message_id,
            sender_id=display_name(sender_name),
            sender_display=sender_name,
            chat_id=thread_id or f"dm:{sender_name}",
            chat_type="thread" if thread_id else "direct",
            text=compose_text(body, subject),
            timestamp=timestamp or datetime.now(timezone.utc),
            reply_to_id=reply_to_id,
            metadata={
                CHANNEL_ID: {
                    "auto_reply_eligible": auto_reply_eligible,
                    "subject": subject,
                    "thread_id": thread_id,
                }
            },
            source=source,
        )

    @classmethod
    def from_message(cls, message: Message, account_id: str, source: str = "poll") -> "InboundMessage":
        """Route a relay Message fetched by the poll loop."""
        return cls.build(
            account_id=account_id,
            message_id=message.id,
            sender=message.sender,
            body=message.body,
            source=source,
            subject=message.subject,
            thread_id=message.thread_id,
            reply_to_id=message.reply_to_id,
            timestamp=message.created_at,
            auto_reply_eligible=message.auto_reply_eligible,
        )
