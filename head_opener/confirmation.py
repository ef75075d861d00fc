"""Waiting for submitted transactions to be confirmed."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Protocol

from .errors import ConfirmationTimeout

logger = logging.getLogger(__name__)


class ConfirmationSource(Protocol):
    """Anything that can notify once a transaction is confirmed."""

    def watch_confirmation(self, tx_id: str, notify: Callable[[], Any]) -> Awaitable[None]:  # pragma: no cover - protocol
        """Call ``notify`` once ``tx_id`` is confirmed."""


class SingleFireSignal:
    """Future that can be fired any number of times but resolves only once."""

    def __init__(self) -> None:
        self._future: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    @property
    def fired(self) -> bool:
        return self._future.done() and not self._future.cancelled()

    def fire(self) -> bool:
        """Resolve the signal; later calls, or calls after cancellation, are no-ops."""

        if self._future.done():
            return False
        self._future.set_result(None)
        return True

    def cancel(self) -> None:
        if not self._future.done():
            self._future.cancel()

    async def wait(self) -> None:
        await self._future


class ConfirmationWaiter:
    """Race a single confirmation notification against a timeout."""

    def __init__(self, source: ConfirmationSource, *, timeout: float = 120.0) -> None:
        self._source = source
        self._timeout = timeout

    async def wait(self, tx_id: str) -> None:
        signal = SingleFireSignal()
        watcher = asyncio.ensure_future(self._source.watch_confirmation(tx_id, signal.fire))
        try:
            await asyncio.wait_for(self._first_notification(signal, watcher), self._timeout)
        except asyncio.TimeoutError as exc:
            raise ConfirmationTimeout(tx_id, self._timeout) from exc
        finally:
            # A notification arriving after this point is dropped by the signal.
            signal.cancel()
            if not watcher.done():
                watcher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watcher

    @staticmethod
    async def _first_notification(signal: SingleFireSignal, watcher: asyncio.Future) -> None:
        pending = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({pending, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if watcher.done() and not watcher.cancelled() and watcher.exception() is not None:
                raise watcher.exception()
            await pending
        finally:
            if not pending.done():
                pending.cancel()


__all__ = ["ConfirmationSource", "ConfirmationWaiter", "SingleFireSignal"]
