"""Signer interfaces for commit transactions."""

from __future__ import annotations

import hashlib
from typing import List, Protocol, Tuple

import cbor2
from pycardano import PaymentSigningKey, PaymentVerificationKey

from .errors import ProtocolError

_ARRAY = 4
_MAP = 5
_SET_TAG = 258
_VKEY_WITNESSES = 0


class TxSigner(Protocol):
    """Protocol for objects able to witness a transaction with a payment key."""

    async def sign(self, tx_cbor: str, signing_key: bytes) -> str:  # pragma: no cover - protocol
        """Return ``tx_cbor`` with a witness for ``signing_key`` added."""


def _read_header(raw: bytes, pos: int, major: int) -> Tuple[int, int]:
    """Return ``(length, next_pos)`` for a definite-length array or map header."""

    if pos >= len(raw) or raw[pos] >> 5 != major:
        raise ProtocolError("transaction CBOR does not have the expected structure")
    info = raw[pos] & 0x1F
    if info < 24:
        return info, pos + 1
    if info in (24, 25, 26):
        size = 1 << (info - 24)
        return int.from_bytes(raw[pos + 1 : pos + 1 + size], "big"), pos + 1 + size
    raise ProtocolError("indefinite-length transaction envelopes are not supported")


def _header(major: int, length: int) -> bytes:
    if length < 24:
        return bytes([(major << 5) | length])
    if length < 0x100:
        return bytes([(major << 5) | 24, length])
    return bytes([(major << 5) | 25]) + length.to_bytes(2, "big")


def _item_end(raw: bytes, pos: int) -> int:
    """Return the offset just past the CBOR item starting at ``pos``."""

    major, info = raw[pos] >> 5, raw[pos] & 0x1F
    pos += 1
    if info == 31:
        if major not in (2, 3, 4, 5):
            raise ProtocolError("unsupported CBOR item in transaction")
        while raw[pos] != 0xFF:
            pos = _item_end(raw, pos)
        return pos + 1
    if info < 24:
        value = info
    elif info < 28:
        size = 1 << (info - 24)
        if pos + size > len(raw):
            raise EOFError("truncated CBOR header")
        value = int.from_bytes(raw[pos : pos + size], "big")
        pos += size
    else:
        raise ProtocolError("unsupported CBOR item in transaction")

    if major in (2, 3):
        pos += value
    elif major in (4, 5):
        for _ in range(value * (2 if major == 5 else 1)):
            pos = _item_end(raw, pos)
    elif major == 6:
        pos = _item_end(raw, pos)
    if pos > len(raw):
        raise EOFError("truncated CBOR item")
    return pos


def _split_items(raw: bytes, pos: int, count: int) -> Tuple[List[bytes], int]:
    """Slice ``count`` consecutive CBOR items out of ``raw`` without re-encoding them."""

    items = []
    for _ in range(count):
        end = _item_end(raw, pos)
        items.append(raw[pos:end])
        pos = end
    return items, pos


def add_vkey_witness(raw_tx: bytes, vkey: bytes, signature: bytes) -> bytes:
    """Add a ``[vkey, signature]`` witness, keeping every other byte as it was.

    The body, the remaining envelope fields and the other witness set entries
    (scripts, datums, redeemers) are copied verbatim so the transaction id and
    the script integrity hash stay valid.
    """

    count, pos = _read_header(raw_tx, 0, _ARRAY)
    if count < 3:
        raise ProtocolError("transaction CBOR does not have the expected structure")
    body, witness_set = _split_items(raw_tx, pos, 2)[0]
    witness_start = pos + len(body)
    rest = raw_tx[witness_start + len(witness_set) :]

    entries, entries_pos = _read_header(witness_set, 0, _MAP)
    raw_entries, _ = _split_items(witness_set, entries_pos, entries * 2)
    pairs = list(zip(raw_entries[::2], raw_entries[1::2]))

    witnesses: list = []
    tagged = False
    for key, value in pairs:
        if cbor2.loads(key) == _VKEY_WITNESSES:
            decoded = cbor2.loads(value)
            # cbor2 decodes tag 258 to a set of tuples on its own.
            if isinstance(decoded, (set, frozenset)):
                tagged = True
            elif isinstance(decoded, cbor2.CBORTag):
                tagged = decoded.tag == _SET_TAG
                decoded = decoded.value
            witnesses = list(decoded)
            break
    if any(bytes(existing[0]) == vkey for existing in witnesses):
        return raw_tx
    witnesses.append([vkey, signature])
    encoded = cbor2.dumps(cbor2.CBORTag(_SET_TAG, witnesses) if tagged else witnesses)

    rebuilt = [(key, encoded if cbor2.loads(key) == _VKEY_WITNESSES else value) for key, value in pairs]
    if not any(cbor2.loads(key) == _VKEY_WITNESSES for key, _ in pairs):
        rebuilt.insert(0, (cbor2.dumps(_VKEY_WITNESSES), encoded))
    new_witness_set = _header(_MAP, len(rebuilt)) + b"".join(key + value for key, value in rebuilt)
    return raw_tx[:witness_start] + new_witness_set + rest


def body_hash(raw_tx: bytes) -> bytes:
    """Blake2b-256 of the body bytes exactly as they appear in ``raw_tx``."""

    _, pos = _read_header(raw_tx, 0, _ARRAY)
    body = _split_items(raw_tx, pos, 1)[0][0]
    return hashlib.blake2b(body, digest_size=32).digest()


class PaymentKeySigner:
    """Adds a vkey witness using a raw 32-byte ed25519 payment key.

    The head node drafts the commit transaction and may already have
    witnessed it; only the witness set is touched here.
    """

    async def sign(self, tx_cbor: str, signing_key: bytes) -> str:
        try:
            raw = bytes.fromhex(tx_cbor)
            digest = body_hash(raw)
        except (ValueError, EOFError, IndexError, cbor2.CBORDecodeError) as exc:
            raise ProtocolError("head node returned a transaction that does not decode") from exc

        skey = PaymentSigningKey(signing_key)
        vkey = PaymentVerificationKey.from_signing_key(skey)
        try:
            signed = add_vkey_witness(raw, vkey.payload, skey.sign(digest))
        except (ValueError, EOFError, IndexError, cbor2.CBORDecodeError) as exc:
            raise ProtocolError("head node returned a transaction that does not decode") from exc
        return signed.hex()


__all__ = ["TxSigner", "PaymentKeySigner", "add_vkey_witness", "body_hash"]
