"""Error taxonomy for head opening runs."""

from __future__ import annotations

from typing import Optional


class HeadOpenerError(RuntimeError):
    """Base class for fatal errors raised while opening a head.

    ``participant`` and ``step`` are filled in by the commit pipeline so the
    operator can tell how far the run got before it aborted.
    """

    exit_code = 1

    def __init__(
        self,
        message: str,
        *,
        participant: Optional[str] = None,
        step: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.participant = participant
        self.step = step

    def describe(self) -> str:
        prefix = ""
        if self.participant:
            prefix = f"[{self.participant}] "
        if self.step:
            prefix += f"step {self.step}: "
        return f"{prefix}{self}"


class ConfigError(HeadOpenerError):
    """Raised when local input (environment, key files) is missing or malformed."""


class ConnectivityError(HeadOpenerError):
    """Raised on transport failures talking to a head node or the ledger."""


class ProtocolError(HeadOpenerError):
    """Raised when a reachable endpoint returns data we cannot interpret."""


class NoFundsError(HeadOpenerError):
    """Raised when a funding address holds no spendable outputs."""


class InvariantViolation(HeadOpenerError):
    """Raised when the head reports a lifecycle state we have no policy for."""

    def __init__(self, state: str, **kwargs) -> None:
        super().__init__(f'head in unexpected status "{state}", aborting', **kwargs)
        self.state = state


class ConfirmationTimeout(HeadOpenerError):
    """Raised when a submitted commit is not seen confirmed in time.

    The transaction has already been broadcast, so the funds may be committed
    on-chain. Re-running the commit step is not safe.
    """

    exit_code = 3

    def __init__(self, tx_id: str, timeout: float, **kwargs) -> None:
        super().__init__(
            f"timed out after {timeout:g}s waiting for tx {tx_id} confirmation; "
            "the commit was submitted and may still land on-chain, do not re-run",
            **kwargs,
        )
        self.tx_id = tx_id
        self.timeout = timeout


__all__ = [
    "HeadOpenerError",
    "ConfigError",
    "ConnectivityError",
    "ProtocolError",
    "NoFundsError",
    "InvariantViolation",
    "ConfirmationTimeout",
]
