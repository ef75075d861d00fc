"""Per-participant commit pipeline: select, build, sign, submit, confirm."""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Callable, Dict, Iterator, List, Protocol

from .config import Participant
from .confirmation import ConfirmationWaiter
from .errors import HeadOpenerError, NoFundsError
from .hydra import HeadNodeClient
from .keys import read_funding_address, read_signing_key
from .models import CommitOutcome, SpendableOutput
from .selection import select_funding_output
from .signers import TxSigner

logger = logging.getLogger(__name__)


class FundingLedger(Protocol):  # pragma: no cover - protocol
    async def fetch_address_utxos(self, address: str) -> List[SpendableOutput]:
        ...

    async def submit_tx(self, cbor_hex: str) -> str:
        ...

    async def watch_confirmation(self, tx_id: str, notify: Callable[[], Any]) -> None:
        ...


HeadClientFactory = Callable[[Participant], HeadNodeClient]


def default_head_client(participant: Participant) -> HeadNodeClient:
    return HeadNodeClient(participant.http_url, participant.ws_url)


@contextlib.contextmanager
def _step(participant: Participant, name: str) -> Iterator[None]:
    try:
        yield
    except HeadOpenerError as exc:
        if exc.participant is None:
            exc.participant = participant.label
        if exc.step is None:
            exc.step = name
        raise


def _progress(participant: Participant, event: str, message: str, *args: Any, **data: Any) -> None:
    payload: Dict[str, Any] = {"participant": participant.label, **data}
    logger.info(message, *args, extra={"event": event, "data": payload})


class CommitPipeline:
    """Commit one participant's largest output into the head.

    Every step is awaited before the next one starts, and nothing is retried:
    once a commit is submitted the funds may already be locked on-chain.
    """

    def __init__(
        self,
        *,
        ledger: FundingLedger,
        signer: TxSigner,
        waiter: ConfirmationWaiter,
        head_client_factory: HeadClientFactory = default_head_client,
    ) -> None:
        self._ledger = ledger
        self._signer = signer
        self._waiter = waiter
        self._head_client_factory = head_client_factory

    async def commit(self, participant: Participant) -> CommitOutcome:
        with _step(participant, "address"):
            address = read_funding_address(participant.funding_address_file, participant.label)
        with _step(participant, "key"):
            signing_key = read_signing_key(participant.signing_key_file)
        _progress(participant, "commit_address", "Querying UTxOs for %s", address, address=address)

        with _step(participant, "outputs"):
            outputs = await self._ledger.fetch_address_utxos(address)
            if not outputs:
                raise NoFundsError(f"No UTxOs found to commit at {address}")
        _progress(participant, "commit_outputs", "Found %d UTxO(s) to commit", len(outputs), count=len(outputs))

        with _step(participant, "select"):
            output = select_funding_output(outputs)

        with _step(participant, "build"):
            _progress(
                participant,
                "commit_build",
                "Building commit for biggest UTxO %s (%d lovelace)",
                output.ref,
                output.lovelace,
                utxo=output.ref,
                lovelace=output.lovelace,
            )
            unsigned = await self._head_client_factory(participant).build_commit(output)
        _progress(participant, "commit_built", "Signing commit transaction for %s", output.ref, utxo=output.ref)

        with _step(participant, "sign"):
            signed = await self._signer.sign(unsigned, signing_key)
        _progress(participant, "commit_signed", "Signed commit transaction for %s", output.ref, utxo=output.ref)

        with _step(participant, "submit"):
            tx_id = await self._ledger.submit_tx(signed)
        _progress(participant, "commit_submitted", "Submitted commit transaction %s", tx_id, tx=tx_id)

        with _step(participant, "confirm"):
            _progress(participant, "commit_waiting", "Waiting for commit transaction confirmation...", tx=tx_id)
            await self._waiter.wait(tx_id)
        _progress(participant, "commit_confirmed", "Commit transaction %s confirmed", tx_id, tx=tx_id)

        return CommitOutcome(participant=participant.label, output=output, tx_id=tx_id, confirmed=True)


__all__ = ["CommitPipeline", "FundingLedger", "HeadClientFactory", "default_head_client"]
