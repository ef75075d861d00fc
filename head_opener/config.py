"""Configuration for head opening runs.

The configuration is resolved once at startup, from the environment and an
optional YAML file, and handed to every component explicitly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

MAINNET = 1
TESTNET = 0

BLOCKFROST_URLS = {
    TESTNET: "https://cardano-preprod.blockfrost.io/api/v0",
    MAINNET: "https://cardano-mainnet.blockfrost.io/api/v0",
}
_ADDRESS_SUFFIX = {TESTNET: "preprod", MAINNET: "mainnet"}

DEFAULT_KEYS_DIR = Path("data") / "keys"

# Fixed participant set: (id, label, default head API url).
PARTICIPANTS = (
    (1, "alice", "http://127.0.0.1:4001"),
    (2, "bob", "http://127.0.0.1:4002"),
)


@dataclass(frozen=True)
class RetryBudget:
    """Bounded retry with a fixed delay (seconds) between attempts."""

    attempts: int = 30
    delay: float = 2.0

    def __post_init__(self) -> None:
        if not isinstance(self.attempts, int) or self.attempts < 1:
            raise ConfigError("retry attempts must be a positive integer")
        if self.delay < 0:
            raise ConfigError("retry delay must be non-negative")


@dataclass(frozen=True)
class Participant:
    """One head member: where its keys live and how to reach its head node."""

    id: int
    label: str
    funding_address_file: Path
    signing_key_file: Path
    http_url: str
    ws_url: str


@dataclass
class OpenerConfig:
    """Resolved settings for one run."""

    keys_dir: Path
    blockfrost_api_key: str
    participants: List[Participant]
    network_id: int = TESTNET
    blockfrost_url: Optional[str] = None
    status_retry: RetryBudget = field(default_factory=RetryBudget)
    status_timeout: float = 10.0
    confirm_timeout: float = 120.0
    confirm_poll_interval: float = 5.0
    http_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.blockfrost_api_key:
            raise ConfigError("BLOCKFROST_API_KEY is required to query UTxOs")
        if self.network_id not in (TESTNET, MAINNET):
            raise ConfigError(
                f'HYDRA_NETWORK_ID must be 0 (test) or 1 (mainnet), got "{self.network_id}"'
            )
        if not self.participants:
            raise ConfigError("at least one participant is required")
        if self.confirm_timeout <= 0 or self.status_timeout <= 0:
            raise ConfigError("timeouts must be positive")
        if self.confirm_poll_interval <= 0:
            raise ConfigError("confirmation poll interval must be positive")
        if self.blockfrost_url is None:
            self.blockfrost_url = BLOCKFROST_URLS[self.network_id]

    @property
    def controller(self) -> Participant:
        """The participant whose head node drives lifecycle transitions."""

        return self.participants[0]

    def participant(self, label: str) -> Participant:
        for participant in self.participants:
            if participant.label == label or str(participant.id) == label:
                return participant
        raise ConfigError(f"unknown participant: {label}")

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "OpenerConfig":
        """Build the configuration from environment variables.

        ``overrides`` (typically a parsed YAML file) take precedence over the
        environment for the keys they define.
        """

        source: Dict[str, Any] = dict(os.environ if environ is None else environ)
        for key, value in (overrides or {}).items():
            if value is not None:
                source[str(key)] = str(value)

        keys_dir = Path(source.get("KEYS_DIR") or DEFAULT_KEYS_DIR).expanduser().resolve()
        network_raw = str(source.get("HYDRA_NETWORK_ID") or TESTNET)
        try:
            network_id = int(network_raw, 10)
        except ValueError as exc:
            raise ConfigError(
                f'HYDRA_NETWORK_ID must be 0 (test) or 1 (mainnet), got "{network_raw}"'
            ) from exc
        suffix = _ADDRESS_SUFFIX.get(network_id, _ADDRESS_SUFFIX[TESTNET])

        participants = []
        for participant_id, label, default_api in PARTICIPANTS:
            api_url, ws_url = _resolve_node_urls(source, participant_id, default_api)
            participants.append(
                Participant(
                    id=participant_id,
                    label=label,
                    funding_address_file=keys_dir / str(participant_id) / f"address-funding.{suffix}",
                    signing_key_file=keys_dir / str(participant_id) / "cardano-funding.skey",
                    http_url=api_url,
                    ws_url=ws_url,
                )
            )

        return cls(
            keys_dir=keys_dir,
            blockfrost_api_key=str(source.get("BLOCKFROST_API_KEY") or ""),
            participants=participants,
            network_id=network_id,
            blockfrost_url=source.get("BLOCKFROST_URL") or None,
            status_retry=RetryBudget(
                attempts=_parse_int(source, "HYDRA_STATUS_RETRIES", 30),
                delay=_parse_int(source, "HYDRA_STATUS_RETRY_DELAY_MS", 2000) / 1000,
            ),
            confirm_timeout=_parse_int(source, "HYDRA_CONFIRM_TIMEOUT_MS", 120_000) / 1000,
            confirm_poll_interval=_parse_int(source, "HYDRA_CONFIRM_POLL_MS", 5000) / 1000,
        )


def _resolve_node_urls(source: Mapping[str, Any], participant_id: int, default_api: str) -> tuple[str, str]:
    api = source.get(f"HYDRA_NODE_{participant_id}_API")
    if not api and participant_id == 1:
        api = source.get("HYDRA_NODE_API")
    api = api or default_api
    ws = source.get(f"HYDRA_NODE_{participant_id}_WS")
    if not ws and participant_id == 1:
        ws = source.get("HYDRA_NODE_WS")
    if not ws:
        ws = "ws" + api[len("http"):] if api.startswith("http") else api
    return api, ws


def _parse_int(source: Mapping[str, Any], name: str, default: int) -> int:
    raw = source.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(str(raw), 10)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def load_config(path: str | Path | None = None, environ: Optional[Mapping[str, str]] = None) -> OpenerConfig:
    """Load configuration, merging an optional YAML mapping over the environment."""

    overrides: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigError(f"configuration file not found: {config_path}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("configuration file must contain a mapping")
        overrides = {str(key).upper(): value for key, value in data.items()}
        logger.debug("Loaded configuration overrides from %s", config_path)
    return OpenerConfig.from_env(environ, overrides=overrides)


__all__ = [
    "BLOCKFROST_URLS",
    "MAINNET",
    "TESTNET",
    "OpenerConfig",
    "Participant",
    "RetryBudget",
    "load_config",
]
