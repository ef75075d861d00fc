import asyncio
import json
from typing import List

import httpx
import pytest

from head_opener.errors import ConfigError, ConnectivityError, ProtocolError
from head_opener.ledger import PAGE_SIZE, LedgerClient

BASE = "https://ledger.test/api/v0"


def _utxo(index: int, lovelace: int, *assets: dict) -> dict:
    return {
        "address": "addr_test1alice",
        "tx_hash": "ab" * 32,
        "output_index": index,
        "amount": [{"unit": "lovelace", "quantity": str(lovelace)}, *assets],
        "block": "deadbeef",
    }


def _run(handler, coro_factory, **kwargs):
    async def scenario():
        async with LedgerClient(BASE, project_id="preprodKey", transport=httpx.MockTransport(handler), **kwargs) as ledger:
            return await coro_factory(ledger)

    return asyncio.run(scenario())


def test_utxo_listing_follows_pages():
    requests: List[httpx.Request] = []
    first_page = [_utxo(i, 1_000_000) for i in range(PAGE_SIZE)]
    second_page = [_utxo(PAGE_SIZE, 9_000_000, {"unit": "aa" * 28 + "746f6b656e", "quantity": "5"})]

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        page = int(request.url.params["page"])
        return httpx.Response(200, json=first_page if page == 1 else second_page)

    outputs = _run(handler, lambda ledger: ledger.fetch_address_utxos("addr_test1alice"))

    assert len(outputs) == PAGE_SIZE + 1
    assert [r.url.params["page"] for r in requests] == ["1", "2"]
    assert all(r.headers["project_id"] == "preprodKey" for r in requests)
    assert requests[0].url.path == "/api/v0/addresses/addr_test1alice/utxos"
    last = outputs[-1]
    assert last.lovelace == 9_000_000
    assert last.assets == {"aa" * 28 + "746f6b656e": 5}


def test_unknown_address_has_no_outputs():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"status_code": 404, "error": "Not Found"})

    assert _run(handler, lambda ledger: ledger.fetch_address_utxos("addr_test1new")) == []


def test_submit_sends_raw_cbor():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json="f" * 64)

    tx_id = _run(handler, lambda ledger: ledger.submit_tx("84a400"))

    assert tx_id == "f" * 64
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/v0/tx/submit"
    assert seen[0].headers["content-type"] == "application/cbor"
    assert seen[0].content == bytes.fromhex("84a400")


def test_submit_rejects_non_hex_payload():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never reached
        raise AssertionError("no request expected")

    with pytest.raises(ProtocolError):
        _run(handler, lambda ledger: ledger.submit_tx("not-hex"))


def test_submit_rejection_is_a_protocol_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"status_code": 400, "message": "BadInputsUTxO"})

    with pytest.raises(ProtocolError) as excinfo:
        _run(handler, lambda ledger: ledger.submit_tx("84a400"))

    assert "BadInputsUTxO" in str(excinfo.value)


@pytest.mark.parametrize(
    "status, error",
    [(500, ConnectivityError), (503, ConnectivityError), (429, ConnectivityError), (403, ConfigError), (418, ProtocolError)],
)
def test_status_codes_map_to_error_kinds(status, error):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"message": "nope"})

    with pytest.raises(error):
        _run(handler, lambda ledger: ledger.fetch_address_utxos("addr_test1alice"))


def test_transport_failure_is_a_connectivity_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ConnectivityError):
        _run(handler, lambda ledger: ledger.is_confirmed("f" * 64))


def test_is_confirmed_treats_not_found_as_pending():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/txs/known"):
            return httpx.Response(200, json={"hash": "known", "block_height": 1})
        return httpx.Response(404, json={"error": "Not Found"})

    assert _run(handler, lambda ledger: ledger.is_confirmed("known")) is True
    assert _run(handler, lambda ledger: ledger.is_confirmed("pending")) is False


def test_watch_confirmation_polls_until_seen_and_notifies_once():
    responses = iter([404, 500, 404, 200])
    notifications: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(responses), json={})

    _run(
        handler,
        lambda ledger: ledger.watch_confirmation("abc", lambda: notifications.append("abc")),
        poll_interval=0.001,
    )

    assert notifications == ["abc"]


def test_address_summary():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/addresses/addr_test1alice"):
            body = {
                "address": "addr_test1alice",
                "amount": [{"unit": "lovelace", "quantity": "61000000"}, {"unit": "ab" * 30, "quantity": "1"}],
                "type": "shelley",
            }
            return httpx.Response(200, content=json.dumps(body))
        return httpx.Response(404, json={})

    summary = _run(handler, lambda ledger: ledger.fetch_address("addr_test1alice"))
    assert summary.lovelace == 61_000_000
    assert _run(handler, lambda ledger: ledger.fetch_address("addr_test1other")) is None
