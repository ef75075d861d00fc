"""Client for a participant's local head node."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx
import websockets
from pydantic import ValidationError

from .errors import ConnectivityError, ProtocolError
from .models import CommitTxEnvelope, HeadStatus, SpendableOutput
from .status import TRANSPORT_ERRORS, read_head_status

logger = logging.getLogger(__name__)


class HeadNodeClient:
    """HTTP and WebSocket access to one head node.

    The HTTP API builds commit transactions; the WebSocket API carries the
    status greeting and client commands such as ``Init``.
    """

    def __init__(
        self,
        http_url: str,
        ws_url: str,
        *,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.http_url = http_url
        self.ws_url = ws_url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._connect = connect

    async def read_status(self, *, timeout: float = 10.0) -> HeadStatus:
        return await read_head_status(self.ws_url, timeout=timeout, connect=self._connect)

    async def init(self) -> None:
        """Send a single ``Init`` command; no retry."""

        try:
            async with self._connect(self.ws_url, open_timeout=self._timeout) as connection:
                await connection.send(json.dumps({"tag": "Init"}))
        except TRANSPORT_ERRORS as exc:
            raise ConnectivityError(f"failed to send Init to {self.ws_url}: {exc!r}") from exc

    async def build_commit(self, output: SpendableOutput) -> str:
        """Ask the node for an unsigned commit transaction spending ``output``."""

        url = self.http_url.rstrip("/") + "/commit"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self._headers, transport=self._transport
            ) as client:
                response = await client.post(url, json=output.to_head_utxo())
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"head node {self.http_url} unreachable: {exc!r}") from exc
        if response.status_code >= 400:
            raise ProtocolError(
                f"head node rejected commit for {output.ref} with HTTP {response.status_code}: {response.text[:200]}"
            )
        try:
            envelope = CommitTxEnvelope.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ProtocolError("head node returned an invalid commit transaction payload") from exc
        return envelope.cbor_hex


__all__ = ["HeadNodeClient"]
