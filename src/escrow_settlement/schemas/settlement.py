"""Pydantic schemas for the Settlement API.

These schemas define the request/response shapes for the REST API and
MCP tools. Request models are the validation layer: they reject
non-integer or non-positive amounts and unknown actors before the
settlement facade is called (FastAPI answers 422).
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - resolved by pydantic at runtime

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from escrow_settlement.domain.enums import Actor
from escrow_settlement.domain.models import MAX_AMOUNT, LedgerSnapshot

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class ToggleNotarizationRequest(BaseModel):
    """Request body for switching notarization on or off."""

    enabled: StrictBool = Field(..., description="Whether new events are notarized")


class FundEscrowRequest(BaseModel):
    """Request body for moving buyer funds into escrow."""

    amount: int = Field(
        ...,
        gt=0,
        le=MAX_AMOUNT,
        strict=True,
        description="Amount in minor currency units",
        examples=[50000],
    )


class ConfirmRequest(BaseModel):
    """Request body for a party confirming the escrow."""

    actor: Actor = Field(..., description="P1 (buyer) or P2 (seller)", examples=["P1"])


class FundAccountRequest(BaseModel):
    """Request body for a simulated account top-up."""

    target: Actor = Field(..., description="P1 (buyer) or P2 (seller)", examples=["P2"])
    amount: int = Field(..., gt=0, le=MAX_AMOUNT, strict=True, examples=[1000])


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class EscrowView(BaseModel):
    id: str
    state: str
    amount: int


class PartyView(BaseModel):
    id: str
    name: str
    balance: int


class StateResponse(BaseModel):
    """Current escrow, buyer and seller, as one consistent snapshot."""

    notarization_enabled: bool
    escrow: EscrowView
    buyer: PartyView
    seller: PartyView

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot) -> StateResponse:
        return cls.model_validate(snapshot.to_dict())


class SettlementEventResponse(BaseModel):
    """Response schema for a settlement event and its notarization outcome."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    escrow_id: str
    action: str
    actor: str | None
    created_at: datetime
    escrow_state: str
    buyer_balance: int
    seller_balance: int
    escrow_amount: int
    amount: int
    note: str | None
    details: dict | None = Field(default=None, validation_alias="details_json")
    external_ref: str | None = None
    ledger_anchor: str | None = None
    notarization_error: str | None = None
    notarized_at: datetime | None = None


class EventListResponse(BaseModel):
    events: list[SettlementEventResponse]
    count: int


class ClearEventsResponse(BaseModel):
    cleared: int = Field(description="Number of events removed")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    redis: str = "unknown"
