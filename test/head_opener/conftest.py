"""Shared fixtures for the head opener suites."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

HERE = Path(__file__).resolve().parent
if str(HERE) not in sys.path:
    sys.path.insert(0, str(HERE))

from head_opener.config import OpenerConfig, RetryBudget, load_config  # noqa: E402
from opener_stubs import write_keys  # noqa: E402


@pytest.fixture
def keys_dir(tmp_path: Path) -> Path:
    root = tmp_path / "keys"
    write_keys(root, 1, "addr_test1alice")
    write_keys(root, 2, "addr_test1bob")
    return root


@pytest.fixture
def opener_config(keys_dir: Path) -> OpenerConfig:
    config = load_config(
        environ={
            "KEYS_DIR": str(keys_dir),
            "BLOCKFROST_API_KEY": "preprodTestKey",
            "HYDRA_CONFIRM_TIMEOUT_MS": "200",
        }
    )
    config.status_retry = RetryBudget(attempts=3, delay=0)
    return config
