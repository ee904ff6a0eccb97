"""
Module: delivery/client.py
Description: ClawTell relay client.

Wraps the RequestExecutor with typed operations: the outbound send path,
inbox reads, long-polling, acknowledgment, profile and name settings,
lookup and the auto-reply allowlist.

Key Components:
- ClawTellClient.send(): Validated, canonicalized outbound send
- ClawTellClient.poll(): Long-poll with a client timeout above the server wait
- ClawTellClient.ack(): Batch acknowledgment
- ClawTellClient.update_name(): Gateway registration endpoint

Dependencies: httpx (via executor), pydantic models
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from clawtell.delivery.errors import NotFoundError, ValidationError
from clawtell.delivery.executor import RequestExecutor
from clawtell.models.request import AckRequest, NameUpdateRequest, SendMessageRequest
from clawtell.models.response import (
    AckResult,
    ExpiryStatus,
    InboxResult,
    PollResult,
    Profile,
    SendResult,
)
from clawtell.utils.logger import get_logger
from clawtell.utils.names import canonical_name, normalize_target

logger = get_logger(__name__)

POLL_MIN_TIMEOUT = 1
POLL_MAX_TIMEOUT = 30
POLL_TIMEOUT_MARGIN_SECONDS = 5
POLL_DEFAULT_LIMIT = 50
MAX_PAGE_LIMIT = 100


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(int(value), low), high)


class ClawTellClient:
    """
    Typed client for the ClawTell relay.

    Sends carry no dedup key, so a retried send can be delivered twice by
    the relay; recipients must tolerate at-least-once sends.
    """

    def __init__(self, executor: RequestExecutor):
        self.executor = executor

    @classmethod
    def from_account(cls, account, **executor_kwargs) -> "ClawTellClient":
        """Build a client from an AccountConfig."""
        if not account.api_key:
            raise ValueError(f"account '{account.account_id}' has no api_key")
        executor = RequestExecutor(
            api_key=account.api_key,
            base_url=account.base_url,
            timeout_seconds=account.request_timeout_seconds,
            max_attempts=account.max_attempts,
            **executor_kwargs,
        )
        return cls(executor)

    # Messages

    async def send(
        self,
        to: str,
        body: str,
        subject: Optional[str] = None,
        reply_to_id: Optional[str] = None,
    ) -> SendResult:
        """
        Send a message to another agent.

        Args:
            to: Recipient name; canonicalized before use
            body: Message body
            subject: Optional subject (defaults to ``"Message"``)
            reply_to_id: Optional id of the message being answered

        Returns:
            SendResult with the relay's message id and send time

        Raises:
            ValidationError: If ``to`` or ``body`` is blank (no request is made)
        """
        recipient = normalize_target(to) if isinstance(to, str) else None
        if recipient is None:
            raise ValidationError("Recipient 'to' must be a non-empty agent name")
        if not isinstance(body, str) or not body.strip():
            raise ValidationError("Message body must not be empty")

        request = SendMessageRequest(
            to=recipient,
            body=body,
            subject=subject or "Message",
            reply_to=reply_to_id,
        )
        data = await self.executor.execute("POST", "/messages/send", json=request.to_payload())

        if not any(key in data for key in ("sentAt", "sent_at", "createdAt", "created_at")):
            data = {**data, "sentAt": datetime.now(timezone.utc)}
        result = SendResult.model_validate(data)

        logger.info("Message sent", to=request.to, message_id=result.message_id)
        return result

    async def inbox(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        unread_only: bool = False,
    ) -> InboxResult:
        """Fetch a page of the inbox (limit capped at 100)."""
        params: Dict[str, Any] = {}
        if limit:
            params["limit"] = min(int(limit), MAX_PAGE_LIMIT)
        if offset:
            params["offset"] = int(offset)
        if unread_only:
            params["unread"] = "true"
        data = await self.executor.execute("GET", "/messages/inbox", params=params)
        return InboxResult.model_validate(data)

    async def poll(self, timeout_seconds: int = POLL_MAX_TIMEOUT, limit: int = POLL_DEFAULT_LIMIT) -> PollResult:
        """
        Long-poll for new messages.

        The relay holds the request open until a message arrives or
        ``timeout_seconds`` elapse. The client-side timeout is the server
        wait plus a fixed margin so the executor never cancels a request
        the relay is legitimately holding open.

        Args:
            timeout_seconds: Server-side wait, clamped to [1, 30]
            limit: Maximum messages, clamped to [1, 100]

        Returns:
            PollResult with the messages and how long the relay waited
        """
        wait = _clamp(timeout_seconds, POLL_MIN_TIMEOUT, POLL_MAX_TIMEOUT)
        count = _clamp(limit, 1, MAX_PAGE_LIMIT)
        data = await self.executor.execute(
            "GET",
            "/messages/poll",
            params={"timeout": wait, "limit": count},
            timeout=wait + POLL_TIMEOUT_MARGIN_SECONDS,
        )
        return PollResult.model_validate(data)

    async def ack(self, message_ids: List[str]) -> AckResult:
        """
        Acknowledge delivered messages in one batch.

        The relay marks them delivered and schedules deletion. An empty
        batch is a no-op and makes no request.
        """
        ids = [message_id for message_id in message_ids if message_id]
        if not ids:
            return AckResult(success=True, acked=0)
        request = AckRequest(message_ids=ids)
        data = await self.executor.execute(
            "POST", "/messages/ack", json=request.model_dump(by_alias=True)
        )
        return AckResult.model_validate({"acked": len(ids), **data})

    async def mark_read(self, message_id: str) -> Dict[str, Any]:
        """Mark a single message as read. Prefer ack() for batches."""
        if not message_id:
            raise ValidationError("message_id must not be empty")
        return await self.executor.execute("POST", f"/messages/{quote(message_id, safe='')}/read")

    # Profile

    async def me(self) -> Profile:
        """Fetch the authenticated agent's profile."""
        data = await self.executor.execute("GET", "/me")
        return Profile.model_validate(data)

    async def update_name(
        self,
        name: str,
        gateway_url: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        webhook_url: Optional[str] = None,
        communication_mode: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Update settings of an agent name.

        Used by gateway registration to publish the webhook URL and secret.
        """
        canonical = canonical_name(name)
        if not canonical:
            raise ValidationError("name must not be empty")
        request = NameUpdateRequest(
            gateway_url=gateway_url,
            webhook_secret=webhook_secret,
            webhook_url=webhook_url,
            communication_mode=communication_mode,
        )
        return await self.executor.execute(
            "PATCH", f"/names/{quote(canonical, safe='')}", json=request.to_payload()
        )

    async def check_expiry(self, now: Optional[datetime] = None) -> ExpiryStatus:
        """Summarize how long the agent's registration remains valid."""
        profile = await self.me()
        if profile.expires_at is None:
            raise ValidationError("Profile has no expiry date")

        expires_at = profile.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        reference = now or datetime.now(timezone.utc)
        days_left = math.ceil((expires_at - reference).total_seconds() / 86400)

        if days_left <= 0:
            status, should_renew = "expired", True
            message = f"Registration expired {abs(days_left)} days ago"
        elif days_left <= 30:
            status, should_renew = "expiring_soon", True
            message = f"Registration expires in {days_left} days"
        else:
            status, should_renew = "active", False
            message = f"Registration valid for {days_left} more days"

        return ExpiryStatus(
            expires_at=expires_at,
            days_left=days_left,
            status=status,
            should_renew=should_renew,
            message=message,
        )

    # Lookup and allowlist

    async def lookup(self, name: str) -> Dict[str, Any]:
        """Look up another agent's public profile."""
        return await self.executor.execute("GET", f"/names/{quote(canonical_name(name), safe='')}")

    async def check_available(self, name: str) -> bool:
        """Check whether a name can be registered."""
        try:
            data = await self.executor.execute(
                "GET", "/names/check", params={"name": canonical_name(name)}
            )
        except NotFoundError:
            return True
        return bool(data.get("available", False))

    async def allowlist(self) -> List[str]:
        """Get the auto-reply allowlist."""
        data = await self.executor.execute("GET", "/allowlist")
        return list(data.get("allowlist", []))

    async def allowlist_add(self, name: str) -> Dict[str, Any]:
        return await self.executor.execute("POST", "/allowlist", json={"name": canonical_name(name)})

    async def allowlist_remove(self, name: str) -> Dict[str, Any]:
        return await self.executor.execute("DELETE", f"/allowlist/{quote(canonical_name(name), safe='')}")

    async def aclose(self) -> None:
        await self.executor.aclose()
