"""Settlement Facade — the single entry point for REST routes and MCP tools.

Every mutating call follows the same shape:

    1. open one LedgerStore transaction (escrow locked)
    2. delegate to the EscrowEngine
    3. commit when the block exits
    4. hand the committed event contexts to the notarization pipeline
       (fire and forget)
    5. return the post-commit snapshot
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from escrow_settlement.infrastructure.database.repositories import EventRepository
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from escrow_settlement.domain.enums import Actor
    from escrow_settlement.domain.models import LedgerSnapshot, TransitionOutcome
    from escrow_settlement.infrastructure.database.ledger_store import LedgerStore
    from escrow_settlement.infrastructure.database.orm_models import SettlementEvent
    from escrow_settlement.services.escrow_engine import EscrowEngine
    from escrow_settlement.services.notarization_pipeline import NotarizationPipeline

logger = get_logger(__name__)


class SettlementFacade:
    """Coordinates the ledger store, escrow engine and notarization pipeline."""

    def __init__(
        self,
        store: LedgerStore,
        engine: EscrowEngine,
        pipeline: NotarizationPipeline,
        default_event_limit: int = 100,
        max_event_limit: int = 500,
    ) -> None:
        self._store = store
        self._engine = engine
        self._pipeline = pipeline
        self._default_event_limit = default_event_limit
        self._max_event_limit = max_event_limit

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def pipeline(self) -> NotarizationPipeline:
        return self._pipeline

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_state(self) -> LedgerSnapshot:
        return await self._store.get()

    async def list_events(self, limit: int | None = None) -> list[SettlementEvent]:
        """Newest events first. ``limit`` is clamped to [1, max_event_limit]."""
        limit = self._default_event_limit if limit is None else limit
        limit = max(1, min(limit, self._max_event_limit))
        async with self._store.session() as session:
            return await EventRepository(session).list_recent(self._store.escrow_id, limit)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def toggle_notarization(self, enabled: bool) -> LedgerSnapshot:
        async with self._store.transaction() as uow:
            outcome = await self._engine.toggle_notarization(uow, enabled)
        return self._committed(outcome)

    async def fund_escrow(self, amount: int) -> LedgerSnapshot:
        async with self._store.transaction() as uow:
            outcome = await self._engine.fund_escrow(uow, amount)
        return self._committed(outcome)

    async def confirm(self, actor: Actor | str) -> LedgerSnapshot:
        async with self._store.transaction() as uow:
            outcome = await self._engine.confirm(uow, actor)
        return self._committed(outcome)

    async def fund_account(self, target: Actor | str, amount: int) -> LedgerSnapshot:
        async with self._store.transaction() as uow:
            outcome = await self._engine.fund_account(uow, target, amount)
        return self._committed(outcome)

    async def reset_system(self) -> LedgerSnapshot:
        async with self._store.transaction() as uow:
            outcome = await self._engine.reset_system(uow)
        return self._committed(outcome)

    async def clear_events(self) -> int:
        """Empty the event log. Returns how many events were removed."""
        async with self._store.transaction() as uow:
            return await self._engine.clear_events(uow)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _committed(self, outcome: TransitionOutcome) -> LedgerSnapshot:
        if outcome.events:
            self._pipeline.dispatch(outcome.events)
            logger.debug(
                "settlement.dispatched",
                event_ids=[ctx.event_id for ctx in outcome.events],
            )
        return outcome.state
