"""
Module: delivery/gateway.py
Description: Gateway registration.

On account start, publishes this service's public webhook URL and the
shared secret to the relay so it can push messages. Registration failure
is non-fatal: the account then relies on the poll loop alone.
"""

from clawtell.auth.signature import generate_webhook_secret
from clawtell.delivery.errors import ClawTellError
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)


async def register_gateway(context) -> bool:
    """
    Register the account's webhook with the relay.

    Generates a webhook secret when none is configured (before contacting
    the relay, so the receiver verifies signatures from the first push),
    resolves the agent name from the profile when it is not configured, and
    updates the name settings through the executor.

    Args:
        context: AccountContext of the starting account

    Returns:
        True if the relay accepted the registration, False otherwise
    """
    config = context.config
    webhook_url = config.webhook_url
    if not webhook_url:
        logger.info("No gateway URL configured; using poll-only delivery", account_id=config.account_id)
        return False

    if not context.webhook_secret:
        context.webhook_secret = generate_webhook_secret()
        logger.info("Generated webhook secret", account_id=config.account_id)

    try:
        name = config.tell_name
        if not name:
            name = (await context.client.me()).name
        await context.client.update_name(
            name,
            gateway_url=webhook_url,
            webhook_secret=context.webhook_secret,
        )
    except ClawTellError as e:
        context.status.webhook_registered = False
        context.status.last_error = f"Gateway registration failed: {e.message}"
        logger.warning(
            "Gateway registration failed; continuing with poll-only delivery",
            account_id=config.account_id,
            webhook_url=webhook_url,
            error=e.message,
            error_type=type(e).__name__,
        )
        return False

    context.status.webhook_registered = True
    context.status.webhook_url = webhook_url
    logger.info("Registered gateway", account_id=config.account_id, webhook_url=webhook_url)
    return True
