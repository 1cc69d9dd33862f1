"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update
from sqlalchemy.orm import joinedload

from escrow_settlement.domain.models import NotarizationReceipt
from escrow_settlement.infrastructure.database.orm_models import (
    Escrow,
    Party,
    SettlementEvent,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from escrow_settlement.domain.enums import Actor, EscrowState
    from escrow_settlement.domain.events import EventDetails
    from escrow_settlement.domain.models import NotarizationOutcome


class PartyRepository:
    """Data access for the buyer and seller rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, party: Party) -> Party:
        """Insert a new party."""
        self._session.add(party)
        await self._session.flush()
        return party

    async def get_by_handle(self, handle: str) -> Party | None:
        result = await self._session.execute(select(Party).where(Party.handle == handle))
        return result.scalar_one_or_none()

    async def set_balance(self, party: Party, balance: int) -> Party:
        """Overwrite a balance (call AFTER the engine validated it)."""
        party.balance = balance
        await self._session.flush()
        return party


class EscrowRepository:
    """Data access for the singleton escrow row."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, escrow: Escrow) -> Escrow:
        """Insert the escrow row."""
        self._session.add(escrow)
        await self._session.flush()
        return escrow

    async def get_by_id(self, escrow_id: str, *, for_update: bool = False) -> Escrow | None:
        """Fetch the escrow with both parties loaded.

        With ``for_update`` the escrow row is locked until the surrounding
        transaction ends (a no-op on SQLite, which locks the whole database
        on write instead). Without it the parties are joined into the same
        statement, so the read is one consistent snapshot.
        """
        stmt = select(Escrow).where(Escrow.id == escrow_id)
        if for_update:
            stmt = stmt.with_for_update()
        else:
            stmt = stmt.options(joinedload(Escrow.buyer), joinedload(Escrow.seller))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(
        self,
        escrow: Escrow,
        *,
        state: EscrowState | None = None,
        amount: int | None = None,
        notarization_enabled: bool | None = None,
    ) -> Escrow:
        """Apply field changes (call AFTER state machine validation)."""
        if state is not None:
            escrow.state = state.value
        if amount is not None:
            escrow.amount = amount
        if notarization_enabled is not None:
            escrow.notarization_enabled = notarization_enabled
        await self._session.flush()
        return escrow


class EventRepository:
    """Data access for the append-only settlement event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        escrow: Escrow,
        details: EventDetails,
        actor: Actor | None,
        amount: int,
        created_at: datetime,
    ) -> SettlementEvent:
        """Append an event whose snapshot is the escrow's current (post-transition) state."""
        evt = SettlementEvent(
            escrow_id=escrow.id,
            action=details.action.value,
            actor=actor.value if actor is not None else None,
            created_at=created_at,
            escrow_state=escrow.state,
            buyer_balance=escrow.buyer.balance,
            seller_balance=escrow.seller.balance,
            escrow_amount=escrow.amount,
            amount=amount,
            note=details.note,
            details_json=details.to_dict(),
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_id(self, event_id: int) -> SettlementEvent | None:
        result = await self._session.execute(
            select(SettlementEvent).where(SettlementEvent.id == event_id)
        )
        return result.scalar_one_or_none()

    async def list_recent(self, escrow_id: str, limit: int) -> list[SettlementEvent]:
        """Fetch the newest ``limit`` events, newest first."""
        result = await self._session.execute(
            select(SettlementEvent)
            .where(SettlementEvent.escrow_id == escrow_id)
            .order_by(SettlementEvent.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def patch_notarization(self, event_id: int, outcome: NotarizationOutcome) -> bool:
        """Record a notarization outcome. Last write wins.

        Only the notarization columns are touched. Returns False if the event
        no longer exists (cleared by a reset while notarization was in flight).
        """
        if isinstance(outcome, NotarizationReceipt):
            values = {
                "external_ref": outcome.external_ref,
                "ledger_anchor": outcome.ledger_anchor,
                "notarization_error": None,
            }
        else:
            values = {
                "external_ref": None,
                "ledger_anchor": None,
                "notarization_error": outcome.error_message,
            }
        result = await self._session.execute(
            update(SettlementEvent)
            .where(SettlementEvent.id == event_id)
            .values(notarized_at=datetime.now(UTC), **values)
        )
        return result.rowcount > 0

    async def clear_all(self, escrow_id: str) -> int:
        """Delete every event of the escrow. Returns the number removed."""
        result = await self._session.execute(
            delete(SettlementEvent).where(SettlementEvent.escrow_id == escrow_id)
        )
        return result.rowcount
