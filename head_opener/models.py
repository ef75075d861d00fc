"""Domain records and wire payload models shared by the opener components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr

LOVELACE = "lovelace"
_POLICY_ID_HEX_LENGTH = 56


class HeadState(Enum):
    """Lifecycle stages the opener knows how to act on."""

    UNINITIALIZED = "Idle"
    INITIALIZING = "Initializing"
    OPEN = "Open"
    OTHER = "other"


@dataclass(frozen=True)
class HeadStatus:
    """A single status observation; ``raw`` keeps the reported string."""

    state: HeadState
    raw: str

    @classmethod
    def parse(cls, raw: str) -> "HeadStatus":
        for state in (HeadState.UNINITIALIZED, HeadState.INITIALIZING, HeadState.OPEN):
            if raw == state.value:
                return cls(state, raw)
        return cls(HeadState.OTHER, raw)

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class SpendableOutput:
    """Unspent output observed at a funding address."""

    tx_hash: str
    output_index: int
    lovelace: int
    address: str = ""
    assets: Dict[str, int] = field(default_factory=dict, compare=False)

    @property
    def ref(self) -> str:
        return f"{self.tx_hash}#{self.output_index}"

    def to_head_utxo(self) -> Dict[str, Any]:
        """Describe the output the way the head node's ``/commit`` endpoint expects."""

        value: Dict[str, Any] = {LOVELACE: self.lovelace}
        for unit, quantity in self.assets.items():
            policy_id = unit[:_POLICY_ID_HEX_LENGTH]
            asset_name = unit[_POLICY_ID_HEX_LENGTH:]
            value.setdefault(policy_id, {})[asset_name] = quantity
        return {
            self.ref: {
                "address": self.address,
                "value": value,
                "datum": None,
                "inlineDatum": None,
                "referenceScript": None,
            }
        }


@dataclass
class CommitOutcome:
    """Result of one participant's commit pipeline."""

    participant: str
    output: SpendableOutput
    tx_id: str
    confirmed: bool = True


@dataclass
class RunSummary:
    """What a head opening run did."""

    initial_status: HeadStatus
    init_sent: bool = False
    commits: List[CommitOutcome] = field(default_factory=list)

    @property
    def already_open(self) -> bool:
        return self.initial_status.state is HeadState.OPEN


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------


class HeadGreeting(BaseModel):
    """First message a head node pushes to a fresh WebSocket client."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tag: Optional[str] = None
    head_status: StrictStr = Field(alias="headStatus")


class CommitTxEnvelope(BaseModel):
    """Unsigned commit transaction returned by ``POST /commit``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    cbor_hex: StrictStr = Field(alias="cborHex", min_length=2)
    type: Optional[str] = None
    description: Optional[str] = None


class LedgerAmount(BaseModel):
    unit: str
    quantity: int


class LedgerUtxo(BaseModel):
    """Entry of Blockfrost's ``/addresses/{address}/utxos`` listing."""

    model_config = ConfigDict(extra="ignore")

    address: str
    tx_hash: str
    output_index: int
    amount: List[LedgerAmount]

    def to_output(self) -> SpendableOutput:
        lovelace = 0
        assets: Dict[str, int] = {}
        for entry in self.amount:
            if entry.unit == LOVELACE:
                lovelace += entry.quantity
            else:
                assets[entry.unit] = assets.get(entry.unit, 0) + entry.quantity
        return SpendableOutput(
            tx_hash=self.tx_hash,
            output_index=self.output_index,
            lovelace=lovelace,
            address=self.address,
            assets=assets,
        )


class LedgerAddress(BaseModel):
    """Blockfrost ``/addresses/{address}`` summary."""

    model_config = ConfigDict(extra="ignore")

    address: str
    amount: List[LedgerAmount] = Field(default_factory=list)

    @property
    def lovelace(self) -> int:
        return sum(entry.quantity for entry in self.amount if entry.unit == LOVELACE)


class SigningKeyEnvelope(BaseModel):
    """cardano-cli text envelope holding a signing key."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: Optional[str] = None
    description: Optional[str] = None
    cbor_hex: StrictStr = Field(alias="cborHex", min_length=1)


__all__ = [
    "HeadState",
    "HeadStatus",
    "SpendableOutput",
    "CommitOutcome",
    "RunSummary",
    "HeadGreeting",
    "CommitTxEnvelope",
    "LedgerAmount",
    "LedgerUtxo",
    "LedgerAddress",
    "SigningKeyEnvelope",
]
