"""Head status reads over the head node's WebSocket API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import WebSocketException
from pydantic import ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from .config import RetryBudget
from .errors import ConnectivityError, ProtocolError
from .models import HeadGreeting, HeadStatus

logger = logging.getLogger(__name__)

StatusReader = Callable[[str], Awaitable[HeadStatus]]

TRANSPORT_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    WebSocketException,
)


def parse_greeting(message: Any) -> HeadStatus:
    """Extract the lifecycle status from a head node greeting."""

    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    try:
        greeting = HeadGreeting.model_validate(json.loads(message))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ProtocolError("status field absent from greeting") from exc
    return HeadStatus.parse(greeting.head_status)


async def read_head_status(
    ws_url: str,
    *,
    timeout: float = 10.0,
    connect: Callable[..., Any] = websockets.connect,
) -> HeadStatus:
    """Open a subscription, read the first message and close again.

    The connection is released on every path out of this function.
    """

    try:
        async with connect(ws_url, open_timeout=timeout) as connection:
            message = await asyncio.wait_for(connection.recv(), timeout)
    except TRANSPORT_ERRORS as exc:
        raise ConnectivityError(f"head status feed {ws_url} unreachable: {exc!r}") from exc
    return parse_greeting(message)


def _log_retry(ws_url: str, attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        logger.info(
            "[hydra] Waiting for head websocket at %s (attempt %d/%d)...",
            ws_url,
            state.attempt_number,
            attempts,
            extra={
                "event": "status_retry",
                "data": {"attempt": state.attempt_number, "attempts": attempts, "url": ws_url},
            },
        )

    return before_sleep


async def poll_head_status(
    ws_url: str,
    budget: RetryBudget | None = None,
    *,
    reader: StatusReader | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> HeadStatus:
    """Read the head status, retrying while the feed refuses connections.

    Only :class:`ConnectivityError` is retried; a :class:`ProtocolError` means the
    node answered with something unusable and is raised straight away.
    """

    budget = budget or RetryBudget()
    read = reader or read_head_status
    retrying = AsyncRetrying(
        stop=stop_after_attempt(budget.attempts),
        wait=wait_fixed(budget.delay),
        retry=retry_if_exception_type(ConnectivityError),
        before_sleep=_log_retry(ws_url, budget.attempts),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            status = await read(ws_url)
    return status


__all__ = ["StatusReader", "TRANSPORT_ERRORS", "parse_greeting", "read_head_status", "poll_head_status"]
