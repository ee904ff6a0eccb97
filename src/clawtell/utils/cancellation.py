"""
Module: cancellation.py
Description: Cooperative cancellation for long-lived account tasks.

A CancellationToken is handed to the poll loop and the rate-limit sweeper.
Cancelling it wakes any in-progress sleep immediately and aborts an
in-flight awaitable started through ``run()``.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised by CancellationToken.run() when the token is cancelled first."""


class CancellationToken:
    """
    Structured cancellation signal shared by an account's tasks.

    Attributes:
        cancelled: True once cancel() has been called
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Idempotent."""
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for up to ``seconds``, waking early on cancellation.

        Args:
            seconds: Maximum time to sleep

        Returns:
            True if the token was cancelled (the caller should stop),
            False if the full interval elapsed
        """
        if self.cancelled:
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Await ``awaitable`` unless the token is cancelled first.

        The awaitable is wrapped in a task; on cancellation that task is
        cancelled and OperationCancelled is raised.

        Raises:
            OperationCancelled: If the token fires before completion
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled()

        work = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, stopper},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            stopper.cancel()

        if work in done:
            return work.result()

        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        if not done:
            raise asyncio.TimeoutError()
        raise OperationCancelled()
