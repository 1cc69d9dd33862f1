"""Domain layer — pure business logic with zero framework dependencies."""

from escrow_settlement.domain.enums import (
    Actor,
    EscrowState,
    EventAction,
    NotaryMode,
    PartyRole,
)
from escrow_settlement.domain.exceptions import (
    AlreadyReleasedError,
    AmountOutOfRangeError,
    InfrastructureError,
    InsufficientBalanceError,
    InvalidActorForStateError,
    InvalidAmountError,
    InvalidStateTransitionError,
    LedgerBusyError,
    NotFundedError,
    NotInitializedError,
    SettlementError,
)
from escrow_settlement.domain.models import (
    ESCROW_SINGLE_ID,
    MAX_AMOUNT,
    EventContext,
    LedgerSnapshot,
    NotarizationMemo,
    SeedBalances,
    TransitionOutcome,
)
from escrow_settlement.domain.notary_protocol import NotarizationService
from escrow_settlement.domain.state_machine import EscrowStateMachine

__all__ = [
    "Actor",
    "EscrowState",
    "EventAction",
    "NotaryMode",
    "PartyRole",
    "AlreadyReleasedError",
    "AmountOutOfRangeError",
    "InfrastructureError",
    "InsufficientBalanceError",
    "InvalidActorForStateError",
    "InvalidAmountError",
    "InvalidStateTransitionError",
    "LedgerBusyError",
    "NotFundedError",
    "NotInitializedError",
    "SettlementError",
    "ESCROW_SINGLE_ID",
    "MAX_AMOUNT",
    "EventContext",
    "LedgerSnapshot",
    "NotarizationMemo",
    "SeedBalances",
    "TransitionOutcome",
    "NotarizationService",
    "EscrowStateMachine",
]
