"""Decides the single lifecycle transition a run is allowed to make."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from .errors import InvariantViolation
from .models import HeadState, HeadStatus

logger = logging.getLogger(__name__)

StatusSource = Callable[[], Awaitable[HeadStatus]]


class InitCommand(Protocol):  # pragma: no cover - protocol
    async def init(self) -> None:
        ...


@dataclass(frozen=True)
class LifecycleDecision:
    status: HeadStatus
    proceed: bool
    init_sent: bool = False


class HeadLifecycleDriver:
    """Read the controlling node's status and act on it.

    ======================  ==========================================
    observed                action
    ======================  ==========================================
    ``Open``                nothing to do, the run ends successfully
    ``Idle``                send ``Init`` once, then commit
    ``Initializing``        commit without sending anything
    anything else           :class:`InvariantViolation`
    ======================  ==========================================
    """

    def __init__(self, controller: InitCommand, status_source: StatusSource) -> None:
        self._controller = controller
        self._status_source = status_source

    async def prepare(self) -> LifecycleDecision:
        status = await self._status_source()
        logger.info(
            "[hydra] Initial head status: %s", status, extra={"event": "head_status", "data": {"status": status.raw}}
        )

        if status.state is HeadState.OPEN:
            logger.info("[hydra] Head already open; nothing to do.", extra={"event": "head_open"})
            return LifecycleDecision(status=status, proceed=False)

        if status.state is HeadState.UNINITIALIZED:
            logger.info("[hydra] Sending Init to open the head", extra={"event": "head_init"})
            await self._controller.init()
            return LifecycleDecision(status=status, proceed=True, init_sent=True)

        if status.state is HeadState.INITIALIZING:
            logger.info("[hydra] Head already initializing; skipping Init", extra={"event": "head_initializing"})
            return LifecycleDecision(status=status, proceed=True)

        raise InvariantViolation(status.raw, step="lifecycle")


__all__ = ["HeadLifecycleDriver", "InitCommand", "LifecycleDecision", "StatusSource"]
