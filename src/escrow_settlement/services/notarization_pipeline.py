"""Notarization Pipeline — post-commit anchoring of settlement events.

After a ledger transaction commits, the facade hands its event contexts to
``dispatch``. Each context with ``notarize`` set becomes a background task
that submits the memo to the notarization service and patches the outcome
onto the event row:

    success -> external_ref + ledger_anchor
    failure -> notarization_error   (exception, rejection, or timeout)

Nothing here can roll back or delay a committed transition, and no error
reaches the caller of the original operation. There is no automatic retry.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from escrow_settlement.domain.models import NotarizationFailure
from escrow_settlement.infrastructure.database.repositories import EventRepository
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from escrow_settlement.domain.models import EventContext, NotarizationOutcome
    from escrow_settlement.domain.notary_protocol import NotarizationService
    from escrow_settlement.infrastructure.database.ledger_store import LedgerStore

logger = get_logger(__name__)


class NotarizationPipeline:
    """Bounded set of background notarization tasks."""

    def __init__(
        self,
        store: LedgerStore,
        notary: NotarizationService,
        timeout: float = 10.0,
        max_concurrency: int = 8,
    ) -> None:
        self._store = store
        self._notary = notary
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    def dispatch(self, contexts: Iterable[EventContext]) -> None:
        """Schedule notarization for every context that asks for it. Never blocks."""
        for ctx in contexts:
            if not ctx.notarize:
                continue
            if self._closed:
                logger.warning("notarization.dropped", event_id=ctx.event_id, reason="pipeline closed")
                continue
            task = asyncio.create_task(self._notarize(ctx), name=f"notarize-{ctx.event_id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every dispatched task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self, grace_seconds: float = 5.0) -> None:
        """Stop accepting work, wait ``grace_seconds`` for in-flight tasks, cancel the rest."""
        self._closed = True
        if not self._tasks:
            return
        pending = list(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=grace_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("notarization.cancelled_on_shutdown", count=len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notarize(self, ctx: EventContext) -> None:
        async with self._semaphore:
            outcome = await self._submit(ctx)
        try:
            await self._patch(ctx.event_id, outcome)
        except Exception as exc:
            # The committed event stays unannotated; log and keep the loop alive.
            logger.error(
                "notarization.patch_failed",
                event_id=ctx.event_id,
                error=str(exc),
                exc_info=True,
            )

    async def _submit(self, ctx: EventContext) -> NotarizationOutcome:
        try:
            async with asyncio.timeout(self._timeout):
                receipt = await self._notary.submit(ctx.memo)
        except TimeoutError:
            message = f"Notarization timed out after {self._timeout}s"
            logger.warning("notarization.failed", event_id=ctx.event_id, error=message)
            return NotarizationFailure(error_message=message)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning("notarization.failed", event_id=ctx.event_id, error=message)
            return NotarizationFailure(error_message=message)

        logger.info(
            "notarization.succeeded",
            event_id=ctx.event_id,
            action=ctx.memo.action.value,
            external_ref=receipt.external_ref,
        )
        return receipt

    async def _patch(self, event_id: int, outcome: NotarizationOutcome) -> None:
        async with self._store.session() as session:
            found = await EventRepository(session).patch_notarization(event_id, outcome)
        if not found:
            logger.info("notarization.event_gone", event_id=event_id)
