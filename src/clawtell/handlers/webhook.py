"""
Module: webhook.py
Description: Webhook receiver for messages pushed by the relay.

Each account has a WebhookReceiver bound to its webhook path. Receivers
are registered with a WebhookRouter, which the application consults
before normal routing: the first receiver whose path matches handles the
request, and requests matching no receiver fall through untouched.

Request pipeline:
1. Path match (otherwise decline without side effects)
2. POST only (405)
3. Per-source rate limit (429)
4. Bounded body read (413)
5. Signature check when a secret is configured (401)
6. Payload validation (400)
7. Dedup+route to the application (500 on sink failure, 200 otherwise)

Dependencies: FastAPI/Starlette, pydantic, auth, delivery
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Request, status as status_codes
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError as PydanticValidationError

from clawtell.auth.rate_limit import source_key
from clawtell.auth.signature import SIGNATURE_HEADER, verify_signature
from clawtell.delivery.account import AccountContext
from clawtell.delivery.reconciler import DeliveryOutcome
from clawtell.models.message import InboundMessage
from clawtell.models.request import WebhookPayload
from clawtell.models.response import WebhookAck
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)


class PayloadTooLarge(Exception):
    """Raised while reading a body that exceeds the configured maximum."""


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def read_body(request: Request, max_bytes: int) -> bytes:
    """
    Read the request body, aborting once it exceeds ``max_bytes``.

    A declared Content-Length above the limit is rejected before reading.

    Raises:
        PayloadTooLarge: If the body is larger than allowed
    """
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge()

    chunks = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > max_bytes:
            raise PayloadTooLarge()
        chunks.append(chunk)
    return b"".join(chunks)


class WebhookReceiver:
    """
    Push transport for one account.

    Attributes:
        context: AccountContext whose reconciler, rate limiter and secret
            this receiver uses
    """

    def __init__(self, context: AccountContext):
        self.context = context

    @property
    def path(self) -> str:
        return self.context.config.webhook_path

    def matches(self, request: Request) -> bool:
        """Side-effect free path check."""
        return request.url.path == self.path

    async def handle(self, request: Request) -> Optional[Response]:
        """
        Handle a request, or decline it.

        Returns:
            None if the path does not match, otherwise the response
        """
        if not self.matches(request):
            return None

        config = self.context.config
        account_id = self.context.account_id

        if request.method != "POST":
            return PlainTextResponse(
                "Method Not Allowed",
                status_code=status_codes.HTTP_405_METHOD_NOT_ALLOWED,
                headers={"Allow": "POST"},
            )

        client_key = source_key(request.headers, request.client.host if request.client else None)
        if not self.context.rate_limiter.allow(client_key):
            logger.warning("Webhook rate limit exceeded", account_id=account_id, source=client_key)
            return _error(status_codes.HTTP_429_TOO_MANY_REQUESTS, "Rate limit exceeded")

        try:
            raw_body = await read_body(request, config.max_body_bytes)
        except PayloadTooLarge:
            logger.warning(
                "Webhook body too large",
                account_id=account_id,
                source=client_key,
                max_bytes=config.max_body_bytes,
            )
            return _error(
                status_codes.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                "Payload too large",
                headers={"Connection": "close"},
            )

        secret = self.context.webhook_secret
        if secret:
            signature = request.headers.get(SIGNATURE_HEADER)
            if not verify_signature(signature, raw_body, secret):
                logger.warning(
                    "Webhook signature rejected",
                    account_id=account_id,
                    source=client_key,
                    signature_present=signature is not None,
                )
                return _error(status_codes.HTTP_401_UNAUTHORIZED, "Invalid signature")

        try:
            data = json.loads(raw_body)
        except (UnicodeDecodeError, ValueError):
            return _error(status_codes.HTTP_400_BAD_REQUEST, "Invalid JSON")
        if not isinstance(data, dict):
            return _error(status_codes.HTTP_400_BAD_REQUEST, "Invalid JSON")

        try:
            payload = WebhookPayload.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(
                "Webhook payload rejected",
                account_id=account_id,
                errors=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
            )
            return _error(status_codes.HTTP_400_BAD_REQUEST, "Missing required fields")

        message = InboundMessage.build(
            account_id=account_id,
            message_id=payload.message_id,
            sender=payload.sender,
            body=payload.body,
            source="webhook",
            subject=payload.subject,
            thread_id=payload.thread_id,
            reply_to_id=payload.reply_to_message_id,
            timestamp=payload.timestamp,
            auto_reply_eligible=payload.auto_reply_eligible,
        )

        outcome = await self.context.reconciler.deliver(message)
        if outcome is DeliveryOutcome.FAILED:
            return _error(status_codes.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to process message")

        if outcome is DeliveryOutcome.DELIVERED:
            self.context.status.last_inbound_at = datetime.now(timezone.utc)
            self.context.status.delivered_count += 1

        ack = WebhookAck(message_id=payload.message_id)
        return JSONResponse(status_code=status_codes.HTTP_200_OK, content=ack.model_dump(by_alias=True))


class WebhookRouter:
    """Ordered set of webhook receivers; the first path match wins."""

    def __init__(self) -> None:
        self._receivers: List[WebhookReceiver] = []

    @property
    def receivers(self) -> List[WebhookReceiver]:
        return list(self._receivers)

    def register(self, receiver: WebhookReceiver) -> None:
        for existing in self._receivers:
            if existing.path == receiver.path:
                raise ValueError(f"webhook path already registered: {receiver.path}")
        self._receivers.append(receiver)

    def unregister(self, receiver: WebhookReceiver) -> None:
        if receiver in self._receivers:
            self._receivers.remove(receiver)

    async def dispatch(self, request: Request) -> Optional[Response]:
        """Return the first matching receiver's response, or None."""
        for receiver in self._receivers:
            response = await receiver.handle(request)
            if response is not None:
                return response
        return None


def install_webhook_dispatch(app, router: WebhookRouter) -> None:
    """
    Put ``router`` in front of the application's normal routing.

    Requests matching a receiver's path are answered by the receiver;
    everything else continues to the application's own routes.
    """
    app.state.webhook_router = router

    @app.middleware("http")
    async def dispatch_webhooks(request: Request, call_next):
        response = await router.dispatch(request)
        if response is None:
            return await call_next(request)
        return response
