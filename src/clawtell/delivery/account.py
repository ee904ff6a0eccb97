"""
Module: delivery/account.py
Description: Per-account context and lifecycle.

Everything an account needs for inbound and outbound delivery lives in one
AccountContext: the relay client, the shared Seen-Message Window, the
webhook rate limiter, the webhook secret and the runtime status. Nothing
is shared between accounts. AccountRuntime creates the context on start
and tears it down on stop.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from clawtell.auth.rate_limit import RateLimiter
from clawtell.config.settings import AccountConfig
from clawtell.delivery.client import ClawTellClient
from clawtell.delivery.dedup import SeenMessageWindow
from clawtell.delivery.gateway import register_gateway
from clawtell.delivery.poller import PollLoop
from clawtell.delivery.push import MessageSink
from clawtell.delivery.reconciler import InboundReconciler
from clawtell.models.response import AccountStatus
from clawtell.utils.cancellation import CancellationToken
from clawtell.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AccountContext:
    """State owned by one running account, passed to every inbound call."""

    config: AccountConfig
    client: ClawTellClient
    reconciler: InboundReconciler
    rate_limiter: RateLimiter
    status: AccountStatus
    webhook_secret: Optional[str] = None
    token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def account_id(self) -> str:
        return self.config.account_id

    @property
    def window(self) -> SeenMessageWindow:
        return self.reconciler.window

    @classmethod
    def create(
        cls,
        config: AccountConfig,
        sink: MessageSink,
        client: Optional[ClawTellClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> "AccountContext":
        """Build a fresh context from configuration."""
        window = SeenMessageWindow(capacity=config.seen_window_size)
        return cls(
            config=config,
            client=client or ClawTellClient.from_account(config),
            reconciler=InboundReconciler(sink=sink, window=window),
            rate_limiter=rate_limiter or RateLimiter(
                max_requests=config.rate_limit_requests,
                window_seconds=config.rate_limit_window_seconds,
            ),
            status=AccountStatus(account_id=config.account_id),
            webhook_secret=config.webhook_secret,
        )


class AccountRuntime:
    """
    Lifecycle of one account: registration, poll loop and bucket sweeper.

    Usage:
        runtime = AccountRuntime(AccountContext.create(config, sink))
        await runtime.start()
        ...
        await runtime.stop()
    """

    def __init__(self, context: AccountContext):
        self.context = context
        self.poll_loop = PollLoop(
            account_id=context.account_id,
            client=context.client,
            reconciler=context.reconciler,
            status=context.status,
            mode=context.config.poll_mode,
            interval_seconds=context.config.poll_interval_seconds,
            poll_timeout_seconds=context.config.poll_timeout_seconds,
            limit=context.config.poll_limit,
        )
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """
        Start inbound delivery.

        Gateway registration runs first; its failure only means the account
        relies on polling. The poll loop and sweeper then run as background
        tasks until stop().
        """
        if self.running:
            return
        context = self.context
        logger.info("Starting account", account_id=context.account_id, name=context.config.tell_name)

        await register_gateway(context)

        self._tasks = [
            asyncio.create_task(
                self.poll_loop.run(context.token),
                name=f"clawtell-poll-{context.account_id}",
            ),
            asyncio.create_task(
                context.rate_limiter.run_sweeper(context.token, context.config.rate_limit_sweep_seconds),
                name=f"clawtell-sweep-{context.account_id}",
            ),
        ]

    async def stop(self) -> None:
        """Cancel background tasks, wait for them, and close the relay client."""
        context = self.context
        context.token.cancel()
        if self._tasks:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for task, result in zip(self._tasks, results):
                if isinstance(result, Exception):
                    logger.error(
                        "Account task ended with error",
                        account_id=context.account_id,
                        task=task.get_name(),
                        error=str(result),
                        error_type=type(result).__name__,
                    )
            self._tasks = []
        await context.client.aclose()
        logger.info("Stopped account", account_id=context.account_id)
