"""Async client for the Blockfrost ledger query/submit API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import ConfigError, ConnectivityError, ProtocolError
from .models import LedgerAddress, LedgerUtxo, SpendableOutput

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

_UTXO_PAGE = TypeAdapter(List[LedgerUtxo])


class LedgerClient:
    """Minimal Blockfrost client used for UTxO queries, submission and confirmation.

    One HTTP connection pool is shared by every call; close it with
    :meth:`aclose` or use the client as an async context manager.
    """

    def __init__(
        self,
        base_url: str,
        *,
        project_id: str,
        timeout: float = 30.0,
        poll_interval: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"project_id": project_id},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"ledger provider unreachable ({method} {path}): {exc!r}") from exc
        if response.status_code == 404:
            return response
        if response.status_code == 403:
            raise ConfigError("ledger provider rejected the project id (check BLOCKFROST_API_KEY)")
        if response.status_code >= 500 or response.status_code == 429:
            raise ConnectivityError(f"ledger provider responded with HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ProtocolError(
                f"ledger provider rejected {method} {path} with HTTP {response.status_code}: {_error_detail(response)}"
            )
        return response

    async def fetch_address_utxos(self, address: str) -> List[SpendableOutput]:
        """Return every unspent output at ``address``; an unknown address has none."""

        outputs: List[SpendableOutput] = []
        page = 1
        while True:
            response = await self._request(
                "GET", f"/addresses/{address}/utxos", params={"page": page, "count": PAGE_SIZE}
            )
            if response.status_code == 404:
                return outputs
            try:
                entries = _UTXO_PAGE.validate_python(response.json())
            except (json.JSONDecodeError, ValidationError) as exc:
                raise ProtocolError(f"invalid UTxO listing for {address}") from exc
            outputs.extend(entry.to_output() for entry in entries)
            if len(entries) < PAGE_SIZE:
                return outputs
            page += 1

    async def fetch_address(self, address: str) -> Optional[LedgerAddress]:
        """Return the address summary, or ``None`` for an address never seen on-chain."""

        response = await self._request("GET", f"/addresses/{address}")
        if response.status_code == 404:
            return None
        try:
            return LedgerAddress.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ProtocolError(f"invalid address summary for {address}") from exc

    async def submit_tx(self, cbor_hex: str) -> str:
        """Broadcast a signed transaction and return its id."""

        try:
            payload = bytes.fromhex(cbor_hex)
        except ValueError as exc:
            raise ProtocolError("signed transaction is not valid hex") from exc
        response = await self._request(
            "POST",
            "/tx/submit",
            content=payload,
            headers={"Content-Type": "application/cbor"},
        )
        if response.status_code == 404:
            raise ProtocolError("ledger provider has no /tx/submit endpoint")
        try:
            tx_id = response.json()
        except json.JSONDecodeError as exc:
            raise ProtocolError("ledger provider returned an invalid submission id") from exc
        if not isinstance(tx_id, str) or not tx_id:
            raise ProtocolError("ledger provider returned an invalid submission id")
        return tx_id

    async def is_confirmed(self, tx_id: str) -> bool:
        response = await self._request("GET", f"/txs/{tx_id}")
        return response.status_code != 404

    async def watch_confirmation(self, tx_id: str, notify: Callable[[], Any]) -> None:
        """Poll until ``tx_id`` is in a block, then call ``notify`` once.

        Transport hiccups while polling are logged and polling continues; the
        caller bounds the whole wait with its own timeout.
        """

        while True:
            try:
                if await self.is_confirmed(tx_id):
                    notify()
                    return
            except ConnectivityError as exc:
                logger.warning("Confirmation poll for %s failed: %s", tx_id, exc)
            await asyncio.sleep(self._poll_interval)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except json.JSONDecodeError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


__all__ = ["LedgerClient", "PAGE_SIZE"]
