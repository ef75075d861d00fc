"""Top-level head opening run."""

from __future__ import annotations

import logging
from typing import Optional

from .commit import CommitPipeline, FundingLedger, HeadClientFactory, default_head_client
from .config import OpenerConfig
from .confirmation import ConfirmationWaiter
from .hydra import HeadNodeClient
from .ledger import LedgerClient
from .lifecycle import HeadLifecycleDriver, StatusSource
from .models import HeadStatus, RunSummary
from .signers import PaymentKeySigner, TxSigner
from .status import poll_head_status

logger = logging.getLogger(__name__)


class HeadOpener:
    """Drive the head to initializing, then commit every participant in order.

    The first fatal error aborts the run; participants after the failing one
    are never started.
    """

    def __init__(
        self,
        config: OpenerConfig,
        *,
        ledger: FundingLedger,
        signer: Optional[TxSigner] = None,
        head_client_factory: HeadClientFactory = default_head_client,
        status_source: Optional[StatusSource] = None,
    ) -> None:
        self.config = config
        self._head_client_factory = head_client_factory
        self._controller = head_client_factory(config.controller)
        self._status_source = status_source or self._poll_controller
        self._pipeline = CommitPipeline(
            ledger=ledger,
            signer=signer or PaymentKeySigner(),
            waiter=ConfirmationWaiter(ledger, timeout=config.confirm_timeout),
            head_client_factory=head_client_factory,
        )

    async def _poll_controller(self) -> HeadStatus:
        controller = self._controller

        async def read(_url: str) -> HeadStatus:
            return await controller.read_status(timeout=self.config.status_timeout)

        return await poll_head_status(controller.ws_url, self.config.status_retry, reader=read)

    async def run(self) -> RunSummary:
        config = self.config
        logger.info("Using keys from %s", config.keys_dir, extra={"event": "run_start"})
        logger.info(
            "Hydra APIs: %s",
            ", ".join(f"{p.label} -> {p.http_url}" for p in config.participants),
            extra={"event": "run_endpoints", "data": {p.label: p.http_url for p in config.participants}},
        )

        decision = await HeadLifecycleDriver(self._controller, self._status_source).prepare()
        summary = RunSummary(initial_status=decision.status, init_sent=decision.init_sent)
        if not decision.proceed:
            return summary

        logger.info("[hydra] Head is initializing, committing funds...", extra={"event": "commit_phase"})
        for participant in config.participants:
            summary.commits.append(await self._pipeline.commit(participant))

        logger.info("Hydra head funds are committed.", extra={"event": "run_complete"})
        return summary


async def open_head(config: OpenerConfig, *, signer: Optional[TxSigner] = None) -> RunSummary:
    """Run the opener against the real head nodes and ledger provider."""

    async with LedgerClient(
        config.blockfrost_url or "",
        project_id=config.blockfrost_api_key,
        timeout=config.http_timeout,
        poll_interval=config.confirm_poll_interval,
    ) as ledger:
        opener = HeadOpener(
            config,
            ledger=ledger,
            signer=signer,
            head_client_factory=lambda participant: HeadNodeClient(
                participant.http_url, participant.ws_url, timeout=config.http_timeout
            ),
        )
        return await opener.run()


__all__ = ["HeadOpener", "open_head"]
