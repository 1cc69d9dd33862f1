"""MCP Tool definitions for the Escrow Settlement engine.

These tools expose the settlement facade via the Model Context Protocol,
allowing AI agents to discover and call them programmatically.

Tools:
    - get_state: Escrow state and both party balances
    - toggle_notarization: Enable/disable notarization between cycles
    - fund_escrow: Buyer funds the escrow
    - confirm_escrow: P1 or P2 confirms; the second confirmation releases
    - fund_account: Simulated top-up of a party balance
    - reset_system: Restore seed balances and clear the event log
    - list_events: Newest settlement events first
    - clear_events: Clear the event log

The MCP server is mounted into FastAPI at /mcp via app.mount(). The
facade is bound by the application lifespan (no FastAPI Depends here).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from escrow_settlement.domain.exceptions import NotInitializedError, SettlementError
from escrow_settlement.domain.models import ESCROW_SINGLE_ID
from escrow_settlement.logging_config import get_logger
from escrow_settlement.schemas.settlement import SettlementEventResponse, StateResponse

if TYPE_CHECKING:
    from escrow_settlement.domain.models import LedgerSnapshot
    from escrow_settlement.services.settlement_facade import SettlementFacade

logger = get_logger(__name__)

# Initialize the MCP server
# This will be mounted into the FastAPI app in main.py
mcp = FastMCP(
    "Escrow Settlement",
    json_response=True,
)

_facade: SettlementFacade | None = None


def bind_facade(facade: SettlementFacade | None) -> None:
    """Attach (or detach, with None) the facade the tools operate on."""
    global _facade
    _facade = facade


def _get_facade() -> SettlementFacade:
    if _facade is None:
        raise NotInitializedError(ESCROW_SINGLE_ID)
    return _facade


def _state(snapshot: LedgerSnapshot) -> dict:
    return StateResponse.from_snapshot(snapshot).model_dump(mode="json")


def _error(tool: str, exc: SettlementError) -> dict:
    logger.warning(f"mcp.{tool}.rejected", code=exc.code, error=exc.message)
    return {"error": exc.code, "message": exc.message}


@mcp.tool()
async def get_state() -> dict:
    """Get the escrow state, escrowed amount, and buyer/seller balances."""
    try:
        return _state(await _get_facade().get_state())
    except SettlementError as exc:
        return _error("get_state", exc)


@mcp.tool()
async def toggle_notarization(enabled: bool) -> dict:
    """Enable or disable notarization of new settlement events.

    Args:
        enabled: True to notarize events, False to skip notarization.

    Only allowed while the escrow is CREATED (no active cycle).
    """
    try:
        return _state(await _get_facade().toggle_notarization(enabled))
    except SettlementError as exc:
        return _error("toggle_notarization", exc)


@mcp.tool()
async def fund_escrow(amount: int) -> dict:
    """Move funds from the buyer (P1) into escrow.

    Args:
        amount: Positive integer amount in minor currency units.

    Returns:
        Updated state with the escrow FUNDED.
    """
    try:
        return _state(await _get_facade().fund_escrow(amount))
    except SettlementError as exc:
        return _error("fund_escrow", exc)


@mcp.tool()
async def confirm_escrow(actor: str) -> dict:
    """Confirm the escrow as P1 (buyer) or P2 (seller).

    Args:
        actor: "P1" or "P2".

    The second distinct confirmation releases the escrowed funds to the seller.
    """
    try:
        return _state(await _get_facade().confirm(actor))
    except ValueError:
        return {"error": "INVALID_ACTOR", "message": f"actor must be P1 or P2, got {actor!r}"}
    except SettlementError as exc:
        return _error("confirm_escrow", exc)


@mcp.tool()
async def fund_account(target: str, amount: int) -> dict:
    """Credit a party's balance from outside the escrow (simulated top-up).

    Args:
        target: "P1" or "P2".
        amount: Positive integer amount.
    """
    try:
        return _state(await _get_facade().fund_account(target, amount))
    except ValueError:
        return {"error": "INVALID_ACTOR", "message": f"target must be P1 or P2, got {target!r}"}
    except SettlementError as exc:
        return _error("fund_account", exc)


@mcp.tool()
async def reset_system() -> dict:
    """Restore seed balances, empty the escrow, and clear the event log."""
    try:
        return _state(await _get_facade().reset_system())
    except SettlementError as exc:
        return _error("reset_system", exc)


@mcp.tool()
async def list_events(limit: int = 100) -> dict:
    """List settlement events, newest first, with their notarization status.

    Args:
        limit: Maximum number of events to return.
    """
    try:
        events = await _get_facade().list_events(limit)
    except SettlementError as exc:
        return _error("list_events", exc)
    items = [SettlementEventResponse.model_validate(e).model_dump(mode="json") for e in events]
    return {"events": items, "count": len(items)}


@mcp.tool()
async def clear_events() -> dict:
    """Clear the settlement event log. Balances and escrow state are untouched."""
    try:
        cleared = await _get_facade().clear_events()
    except SettlementError as exc:
        return _error("clear_events", exc)
    return {"cleared": cleared}
