"""
clawtell: Delivery core for agent-to-agent messaging over the ClawTell relay.

Outbound sends go through a resilient request executor; inbound messages
arrive by webhook push or long-poll and are surfaced to the application at
most once per message id.
"""

from clawtell.delivery.client import ClawTellClient
from clawtell.delivery.errors import (
    AuthenticationError,
    ClawTellError,
    ClientError,
    NotFoundError,
    RateLimitError,
    TransientServerError,
    ValidationError,
)

__version__ = "0.3.0"

__all__ = [
    "ClawTellClient",
    "ClawTellError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
    "TransientServerError",
    "ClientError",
    "ValidationError",
    "__version__",
]
