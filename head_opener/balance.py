"""Read-only balance report for the participants' addresses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol

from .config import OpenerConfig, Participant
from .errors import HeadOpenerError
from .models import LedgerAddress

logger = logging.getLogger(__name__)

LOVELACE_PER_ADA = 1_000_000
MINIMUM_LOVELACE = 50 * LOVELACE_PER_ADA


class AddressLedger(Protocol):  # pragma: no cover - protocol
    async def fetch_address(self, address: str) -> Optional[LedgerAddress]:
        ...


@dataclass
class BalanceRecord:
    participant: str
    kind: str
    address: str
    lovelace: int = 0
    error: Optional[str] = None

    @property
    def low(self) -> bool:
        return self.error is None and self.lovelace < MINIMUM_LOVELACE


def format_ada(lovelace: int) -> str:
    whole, fraction = divmod(lovelace, LOVELACE_PER_ADA)
    return f"{whole}.{fraction:06d}"


def _read_address(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    address = path.read_text(encoding="utf-8").strip()
    return address or None


def _address_files(participant: Participant) -> List[tuple[str, Path]]:
    funding = participant.funding_address_file
    payment = funding.with_name(funding.name.replace("address-funding", "address", 1))
    return [("payment", payment), ("funding", funding)]


async def collect_balances(config: OpenerConfig, ledger: AddressLedger) -> List[BalanceRecord]:
    """Fetch the lovelace held at every address file found for the participants.

    Missing or empty address files are skipped; fetch errors are recorded on
    the entry instead of aborting the report.
    """

    records: List[BalanceRecord] = []
    for participant in config.participants:
        for kind, path in _address_files(participant):
            address = _read_address(path)
            if address is None:
                continue
            record = BalanceRecord(participant=participant.label, kind=kind, address=address)
            try:
                summary = await ledger.fetch_address(address)
            except HeadOpenerError as exc:
                logger.error("[%s %s] Failed to fetch balance for %s: %s", participant.label, kind, address, exc)
                record.error = str(exc)
            else:
                record.lovelace = summary.lovelace if summary is not None else 0
            records.append(record)
    return records


__all__ = ["BalanceRecord", "MINIMUM_LOVELACE", "collect_balances", "format_ada"]
