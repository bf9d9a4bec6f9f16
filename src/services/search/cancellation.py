"""Cancellation handle threaded through one orchestrated search."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from src.errors import SearchCancelledError

T = TypeVar("T")


class CancellationToken:
    """Lets a caller abandon a search so it stops consuming upstream quota."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "search abandoned") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SearchCancelledError(self.reason or "search abandoned")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await an upstream call, aborting it as soon as the token fires."""

        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()
        raise SearchCancelledError(self.reason or "search abandoned")
