"""Immutable value objects passed between the ledger, engine and pipeline.

None of these are ORM rows: they are snapshots captured inside a ledger
transaction and safe to hand across the commit boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - dataclass field types

from escrow_settlement.domain.enums import EscrowState, EventAction, PartyRole

ESCROW_SINGLE_ID = "ESCROW_SINGLE"

# BIGINT ceiling of the balance columns.
MAX_AMOUNT = 2**63 - 1


@dataclass(frozen=True)
class SeedBalances:
    """Initial balances restored by a system reset."""

    buyer: int = 200_000
    seller: int = 0

    @property
    def total(self) -> int:
        return self.buyer + self.seller


@dataclass(frozen=True)
class PartyBalance:
    id: str
    role: PartyRole
    name: str
    balance: int


@dataclass(frozen=True)
class LedgerSnapshot:
    """Consistent view of the escrow and both parties."""

    escrow_id: str
    state: EscrowState
    amount: int
    notarization_enabled: bool
    buyer: PartyBalance
    seller: PartyBalance

    @property
    def total_value(self) -> int:
        """Buyer + seller + escrowed funds. Constant except under account funding."""
        return self.buyer.balance + self.seller.balance + self.amount

    def to_dict(self) -> dict:
        return {
            "notarization_enabled": self.notarization_enabled,
            "escrow": {
                "id": self.escrow_id,
                "state": self.state.value,
                "amount": self.amount,
            },
            "buyer": {
                "id": self.buyer.id,
                "name": self.buyer.name,
                "balance": self.buyer.balance,
            },
            "seller": {
                "id": self.seller.id,
                "name": self.seller.name,
                "balance": self.seller.balance,
            },
        }


@dataclass(frozen=True)
class NotarizationMemo:
    """Payload submitted to the external notarization service."""

    escrow_id: str
    action: EventAction
    amount: int
    buyer_id: str
    seller_id: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "escrowId": self.escrow_id,
            "action": self.action.value,
            "amount": self.amount,
            "buyerId": self.buyer_id,
            "sellerId": self.seller_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class EventContext:
    """Handoff from a committed transition to the notarization pipeline.

    Attributes:
        event_id: Id of the appended settlement event.
        notarize: Whether notarization was enabled when the transition committed.
        memo: What to submit to the notarization service.
    """

    event_id: int
    notarize: bool
    memo: NotarizationMemo


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of one engine operation inside a ledger transaction."""

    state: LedgerSnapshot
    events: list[EventContext] = field(default_factory=list)


@dataclass(frozen=True)
class NotarizationReceipt:
    """Successful notarization returned by the service."""

    external_ref: str
    ledger_anchor: str


@dataclass(frozen=True)
class NotarizationFailure:
    """Failed notarization, recorded on the event instead of raised."""

    error_message: str


NotarizationOutcome = NotarizationReceipt | NotarizationFailure
