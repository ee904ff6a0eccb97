"""
Module: conftest.py
Description: Shared pytest fixtures for ClawTell delivery tests.

Provides account configuration, a recording sleep for retry timing, an
in-memory relay client for poll/gateway tests, and a recording sink.
Relay HTTP traffic in executor and client tests is mocked with pytest-httpx.
"""

from datetime import datetime, timezone
from typing import List

import pytest

from clawtell.config.settings import AccountConfig
from clawtell.delivery.client import ClawTellClient
from clawtell.delivery.errors import TransientServerError
from clawtell.delivery.executor import RequestExecutor
from clawtell.models.message import Message
from clawtell.models.response import AckResult, InboxResult, PollResult, Profile

RELAY_URL = "https://relay.test"
API_KEY = "ct_test_0123456789abcdef"


class RecordingSleep:
    """Awaitable sleep that records requested delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingSink:
    """Application sink recording every delivered message."""

    def __init__(self, fail_ids=(), raise_ids=()):
        self.messages = []
        self.fail_ids = set(fail_ids)
        self.raise_ids = set(raise_ids)

    @property
    def ids(self) -> List[str]:
        return [message.message_id for message in self.messages]

    async def deliver(self, message) -> bool:
        if message.message_id in self.raise_ids:
            raise RuntimeError("downstream unavailable")
        if message.message_id in self.fail_ids:
            return False
        self.messages.append(message)
        return True


class FakeRelayClient:
    """In-memory stand-in for ClawTellClient used by inbound tests."""

    def __init__(self):
        self.batches: List[List[Message]] = []
        self.acked: List[List[str]] = []
        self.ack_error = None
        self.fetch_error = None
        self.updates = []
        self.update_error = None
        self.profile_name = "bob"
        self.poll_calls = 0
        self.inbox_calls = 0
        self.closed = False

    def queue(self, *messages: Message) -> None:
        self.batches.append(list(messages))

    def _next_batch(self) -> List[Message]:
        if self.fetch_error is not None:
            raise self.fetch_error
        if self.batches:
            return self.batches.pop(0)
        return []

    async def poll(self, timeout_seconds: int = 30, limit: int = 50) -> PollResult:
        self.poll_calls += 1
        return PollResult(messages=self._next_batch(), waited_ms=0)

    async def inbox(self, limit=None, offset=None, unread_only=False) -> InboxResult:
        self.inbox_calls += 1
        return InboxResult(messages=self._next_batch())

    async def ack(self, message_ids: List[str]) -> AckResult:
        if self.ack_error is not None:
            raise self.ack_error
        self.acked.append(list(message_ids))
        return AckResult(success=True, acked=len(message_ids))

    async def me(self) -> Profile:
        return Profile(name=self.profile_name)

    async def update_name(self, name, **kwargs):
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((name, kwargs))
        return {"success": True}

    async def aclose(self) -> None:
        self.closed = True


def make_message(message_id: str, sender: str = "tell/Alice", **overrides) -> Message:
    data = {
        "id": message_id,
        "from": sender,
        "to": "bob",
        "subject": None,
        "body": f"body of {message_id}",
        "created_at": datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc).isoformat(),
    }
    data.update(overrides)
    return Message.model_validate(data)


@pytest.fixture
def account_config() -> AccountConfig:
    """Account configuration pointing at the mocked relay."""
    return AccountConfig(
        account_id="default",
        tell_name="bob",
        api_key=API_KEY,
        base_url=RELAY_URL,
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor(recording_sleep) -> RequestExecutor:
    """Executor against the mocked relay that never really sleeps."""
    return RequestExecutor(api_key=API_KEY, base_url=RELAY_URL, sleep=recording_sleep)


@pytest.fixture
def client(executor) -> ClawTellClient:
    return ClawTellClient(executor)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_client() -> FakeRelayClient:
    return FakeRelayClient()


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def transient_error() -> TransientServerError:
    return TransientServerError("Relay error (HTTP 503)", status_code=503)


@pytest.fixture
def sink_factory():
    """Build sinks that fail or raise for chosen message ids."""
    return RecordingSink
