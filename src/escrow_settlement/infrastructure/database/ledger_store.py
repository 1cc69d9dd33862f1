"""Ledger Store — transactional access to the escrow and party balances.

Every mutation of the escrow, the parties, or the event log happens inside
``LedgerStore.transaction()``:

    async with store.transaction() as uow:
        uow.escrow.amount      # loaded with FOR UPDATE
        await uow.parties.set_balance(uow.buyer, ...)
        await uow.events.append(...)

Serialization works on two levels. An asyncio.Lock queues callers inside this
process, and the escrow row is read FOR UPDATE so other processes sharing the
database queue behind the row lock. A caller that cannot get the in-process
lock within ``lock_timeout`` fails with LedgerBusyError instead of waiting.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from escrow_settlement.domain.enums import EscrowState, PartyRole
from escrow_settlement.domain.exceptions import (
    LedgerBusyError,
    NotInitializedError,
    StorageUnavailableError,
)
from escrow_settlement.domain.models import (
    ESCROW_SINGLE_ID,
    LedgerSnapshot,
    PartyBalance,
)
from escrow_settlement.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
    PartyRepository,
)
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from escrow_settlement.infrastructure.database.orm_models import Escrow, Party

logger = get_logger(__name__)


def snapshot_of(escrow: Escrow) -> LedgerSnapshot:
    """Capture an immutable view of an escrow row and its parties."""
    return LedgerSnapshot(
        escrow_id=escrow.id,
        state=EscrowState(escrow.state),
        amount=escrow.amount,
        notarization_enabled=escrow.notarization_enabled,
        buyer=_party_balance(escrow.buyer),
        seller=_party_balance(escrow.seller),
    )


def _party_balance(party: Party) -> PartyBalance:
    return PartyBalance(
        id=party.id,
        role=PartyRole(party.role),
        name=party.name,
        balance=party.balance,
    )


class LedgerUnitOfWork:
    """Transactional view handed to the escrow engine.

    Holds the locked escrow row, both parties, and repositories bound to the
    transaction's session. Nothing written through it is visible to other
    sessions until the enclosing ``transaction()`` block commits.
    """

    def __init__(self, session: AsyncSession, escrow: Escrow) -> None:
        self.session = session
        self.escrow = escrow
        self.escrows = EscrowRepository(session)
        self.parties = PartyRepository(session)
        self.events = EventRepository(session)

    @property
    def buyer(self) -> Party:
        return self.escrow.buyer

    @property
    def seller(self) -> Party:
        return self.escrow.seller

    def snapshot(self) -> LedgerSnapshot:
        return snapshot_of(self.escrow)


class LedgerStore:
    """Owns the session factory and the escrow's logical lock."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        escrow_id: str = ESCROW_SINGLE_ID,
        lock_timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._escrow_id = escrow_id
        self._lock_timeout = lock_timeout
        self._lock = asyncio.Lock()

    @property
    def escrow_id(self) -> str:
        return self._escrow_id

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerUnitOfWork]:
        """Run one atomic unit of work against the escrow.

        Commits when the block exits normally, rolls back if it raises.

        Raises:
            LedgerBusyError: The lock was not acquired within lock_timeout.
            NotInitializedError: The escrow row does not exist.
            StorageUnavailableError: The database failed mid-transaction.
        """
        await self._acquire()
        try:
            async with self._session_factory() as session:
                try:
                    async with session.begin():
                        escrow = await EscrowRepository(session).get_by_id(
                            self._escrow_id, for_update=True
                        )
                        if escrow is None:
                            raise NotInitializedError(self._escrow_id)
                        yield LedgerUnitOfWork(session, escrow)
                except SQLAlchemyError as exc:
                    logger.error("ledger.storage_error", error=str(exc))
                    raise StorageUnavailableError(type(exc).__name__) from exc
        finally:
            self._lock.release()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session outside the escrow lock, for event reads and notarization patches.

        Commits on success, rolls back on error.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageUnavailableError(type(exc).__name__) from exc
            except Exception:
                await session.rollback()
                raise

    async def get(self) -> LedgerSnapshot:
        """Current escrow and party balances as one consistent snapshot."""
        async with self.session() as session:
            escrow = await EscrowRepository(session).get_by_id(self._escrow_id)
            if escrow is None:
                raise NotInitializedError(self._escrow_id)
            return snapshot_of(escrow)

    async def _acquire(self) -> None:
        if self._lock_timeout is None:
            await self._lock.acquire()
            return
        try:
            async with asyncio.timeout(self._lock_timeout):
                await self._lock.acquire()
        except TimeoutError:
            logger.warning("ledger.busy", escrow_id=self._escrow_id, waited=self._lock_timeout)
            raise LedgerBusyError(self._lock_timeout) from None
