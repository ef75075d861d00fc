"""Open a Hydra head and commit each participant's funds into it."""

from __future__ import annotations

from .config import OpenerConfig, Participant, RetryBudget, load_config
from .errors import (
    ConfigError,
    ConfirmationTimeout,
    ConnectivityError,
    HeadOpenerError,
    InvariantViolation,
    NoFundsError,
    ProtocolError,
)
from .models import CommitOutcome, HeadState, HeadStatus, RunSummary, SpendableOutput
from .runner import HeadOpener, open_head

__version__ = "0.1.0"

__all__ = [
    "OpenerConfig",
    "Participant",
    "RetryBudget",
    "load_config",
    "HeadOpenerError",
    "ConfigError",
    "ConnectivityError",
    "ProtocolError",
    "NoFundsError",
    "InvariantViolation",
    "ConfirmationTimeout",
    "CommitOutcome",
    "HeadState",
    "HeadStatus",
    "RunSummary",
    "SpendableOutput",
    "HeadOpener",
    "open_head",
]
