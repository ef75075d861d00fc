"""Readers for the key material kept on disk for each participant."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from .errors import ConfigError
from .models import SigningKeyEnvelope

# CBOR header of a 32-byte bytestring, present on cardano-cli signing keys.
CBOR_KEY_PREFIX = "5820"
SIGNING_KEY_HEX_LENGTH = 64


def read_trimmed_file(path: Path, description: str) -> str:
    if not path.exists():
        raise ConfigError(f"{description} not found: {path}")
    content = path.read_text(encoding="utf-8").strip()
    if not content:
        raise ConfigError(f"{description} is empty: {path}")
    return content


def parse_signing_key(raw: str, *, source: str = "<memory>") -> bytes:
    """Return the 32 raw key bytes held by a text envelope."""

    try:
        envelope = SigningKeyEnvelope.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigError(f"failed to parse signing key from {source}: cborHex missing or invalid") from exc

    key_hex = envelope.cbor_hex
    if len(key_hex) == SIGNING_KEY_HEX_LENGTH + len(CBOR_KEY_PREFIX) and key_hex.startswith(CBOR_KEY_PREFIX):
        key_hex = key_hex[len(CBOR_KEY_PREFIX):]
    if len(key_hex) != SIGNING_KEY_HEX_LENGTH:
        raise ConfigError(
            f"signing key must be {SIGNING_KEY_HEX_LENGTH} hex chars, got {len(key_hex)} (from {source})"
        )
    try:
        return bytes.fromhex(key_hex)
    except ValueError as exc:
        raise ConfigError(f"signing key in {source} is not valid hex") from exc


def read_signing_key(path: Path) -> bytes:
    return parse_signing_key(read_trimmed_file(path, "signing key"), source=str(path))


def read_funding_address(path: Path, label: str) -> str:
    return read_trimmed_file(path, f"{label} funding address")


__all__ = ["read_trimmed_file", "parse_signing_key", "read_signing_key", "read_funding_address"]
