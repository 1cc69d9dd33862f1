"""Pydantic API schemas."""

from escrow_settlement.schemas.settlement import (
    ClearEventsResponse,
    ConfirmRequest,
    EscrowView,
    EventListResponse,
    FundAccountRequest,
    FundEscrowRequest,
    HealthResponse,
    PartyView,
    SettlementEventResponse,
    StateResponse,
    ToggleNotarizationRequest,
)

__all__ = [
    "ClearEventsResponse",
    "ConfirmRequest",
    "EscrowView",
    "EventListResponse",
    "FundAccountRequest",
    "FundEscrowRequest",
    "HealthResponse",
    "PartyView",
    "SettlementEventResponse",
    "StateResponse",
    "ToggleNotarizationRequest",
]
