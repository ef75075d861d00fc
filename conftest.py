"""Repository-wide pytest configuration.

Keeps test discovery deterministic by putting the repository root on
``sys.path`` so ``head_opener`` imports without an editable install, and
clears the environment variables the configuration layer reads so a
developer's shell cannot leak into the suites.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_CONFIG_PREFIXES = ("HYDRA_", "BLOCKFROST_")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    for key in list(os.environ):
        if key.startswith(_CONFIG_PREFIXES) or key == "KEYS_DIR":
            monkeypatch.delenv(key, raising=False)
    yield
