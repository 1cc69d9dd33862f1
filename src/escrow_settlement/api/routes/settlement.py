"""Settlement REST API routes.

These endpoints are the HTTP interface of the escrow. The MCP tools in
mcp_server/tools.py call the same SettlementFacade, so both surfaces share
one set of rules.

Routes:
    GET    /api/v1/state                 — Escrow, buyer and seller snapshot
    POST   /api/v1/notarization/toggle   — Enable/disable notarization (CREATED only)
    POST   /api/v1/escrow/fund           — Buyer funds the escrow
    POST   /api/v1/escrow/confirm        — P1 or P2 confirms; second confirmation releases
    POST   /api/v1/reset                 — Restore seed balances and clear the event log
    POST   /api/v1/fund-account          — Simulated top-up of a party balance
    GET    /api/v1/events                — Newest settlement events first
    DELETE /api/v1/events                — Clear the event log
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from escrow_settlement.api.deps import enforce_idempotency, get_facade
from escrow_settlement.logging_config import get_logger
from escrow_settlement.schemas.settlement import (
    ClearEventsResponse,
    ConfirmRequest,
    EventListResponse,
    FundAccountRequest,
    FundEscrowRequest,
    SettlementEventResponse,
    StateResponse,
    ToggleNotarizationRequest,
)
from escrow_settlement.services.settlement_facade import SettlementFacade

router = APIRouter(prefix="/api/v1", tags=["Settlement"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@router.get(
    "/state",
    response_model=StateResponse,
    summary="Get escrow and party balances",
)
async def get_state(
    facade: SettlementFacade = Depends(get_facade),
) -> StateResponse:
    return StateResponse.from_snapshot(await facade.get_state())


# ---------------------------------------------------------------------------
# Notarization toggle
# ---------------------------------------------------------------------------


@router.post(
    "/notarization/toggle",
    response_model=StateResponse,
    summary="Enable or disable notarization",
    dependencies=[Depends(enforce_idempotency)],
)
async def toggle_notarization(
    request: ToggleNotarizationRequest,
    facade: SettlementFacade = Depends(get_facade),
) -> StateResponse:
    """Only allowed while the escrow is CREATED."""
    snapshot = await facade.toggle_notarization(request.enabled)
    return StateResponse.from_snapshot(snapshot)


# ---------------------------------------------------------------------------
# Escrow lifecycle
# ---------------------------------------------------------------------------


@router.post(
    "/escrow/fund",
    response_model=StateResponse,
    summary="Fund the escrow from the buyer balance",
    dependencies=[Depends(enforce_idempotency)],
)
async def fund_escrow(
    request: FundEscrowRequest,
    facade: SettlementFacade = Depends(get_facade),
) -> StateResponse:
    snapshot = await facade.fund_escrow(request.amount)
    return StateResponse.from_snapshot(snapshot)


@router.post(
    "/escrow/confirm",
    response_model=StateResponse,
    summary="Confirm the escrow as P1 or P2",
    dependencies=[Depends(enforce_idempotency)],
)
async def confirm_escrow(
    request: ConfirmRequest,
    facade: SettlementFacade = Depends(get_facade),
) -> StateResponse:
    """The second distinct confirmation releases the funds to the seller."""
    snapshot = await facade.confirm(request.actor)
    return StateResponse.from_snapshot(snapshot)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.post(
    "/reset",
    response_model=StateResponse,
    summary="Reset balances, escrow and event log",
    dependencies=[Depends(enforce_idempotency)],
)
async def reset_system(
    facade: SettlementFacade = Depends(get_facade),
) -> StateResponse:
    return StateResponse.from_snapshot(await facade.reset_system())


@router.post(
    "/fund-account",
    response_model=StateResponse,
    summary="Credit a party balance (simulated)",
    dependencies=[Depends(enforce_idempotency)],
)
async def fund_account(
    request: FundAccountRequest,
    facade: SettlementFacade = Depends(get_facade),
) -> StateResponse:
    snapshot = await facade.fund_account(request.target, request.amount)
    return StateResponse.from_snapshot(snapshot)


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------


@router.get(
    "/events",
    response_model=EventListResponse,
    summary="List settlement events, newest first",
)
async def list_events(
    limit: int | None = Query(default=None, description="Maximum number of events"),
    facade: SettlementFacade = Depends(get_facade),
) -> EventListResponse:
    events = await facade.list_events(limit)
    items = [SettlementEventResponse.model_validate(e) for e in events]
    return EventListResponse(events=items, count=len(items))


@router.delete(
    "/events",
    response_model=ClearEventsResponse,
    summary="Clear the settlement event log",
)
async def clear_events(
    facade: SettlementFacade = Depends(get_facade),
) -> ClearEventsResponse:
    cleared = await facade.clear_events()
    logger.info("api.events_cleared", count=cleared)
    return ClearEventsResponse(cleared=cleared)
