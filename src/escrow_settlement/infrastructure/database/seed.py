"""Bootstrap the buyer, the seller, and the singleton escrow.

Runs once at startup, before the settlement facade serves anything. It is
idempotent: existing rows are found by handle / id and left untouched, so a
restart never rewrites balances or interrupts an escrow cycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from escrow_settlement.domain.enums import EscrowState, PartyRole
from escrow_settlement.domain.models import ESCROW_SINGLE_ID, LedgerSnapshot
from escrow_settlement.infrastructure.database.ledger_store import snapshot_of
from escrow_settlement.infrastructure.database.orm_models import Escrow, Party
from escrow_settlement.infrastructure.database.repositories import (
    EscrowRepository,
    PartyRepository,
)
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from escrow_settlement.config import Settings

logger = get_logger(__name__)


async def _get_or_create_party(
    repo: PartyRepository,
    role: PartyRole,
    name: str,
    handle: str,
    balance: int,
) -> Party:
    party = await repo.get_by_handle(handle)
    if party is None:
        party = await repo.create(Party(role=role.value, name=name, handle=handle, balance=balance))
        logger.info("seed.party_created", role=role.value, handle=handle, balance=balance)
    return party


async def ensure_seed(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    escrow_id: str = ESCROW_SINGLE_ID,
) -> LedgerSnapshot:
    """Create the parties and the escrow if missing, in one transaction."""
    async with session_factory() as session, session.begin():
        parties = PartyRepository(session)
        escrows = EscrowRepository(session)

        buyer = await _get_or_create_party(
            parties,
            PartyRole.BUYER,
            settings.seed_buyer_name,
            settings.seed_buyer_handle,
            settings.seed_buyer_balance,
        )
        seller = await _get_or_create_party(
            parties,
            PartyRole.SELLER,
            settings.seed_seller_name,
            settings.seed_seller_handle,
            settings.seed_seller_balance,
        )

        escrow = await escrows.get_by_id(escrow_id)
        if escrow is None:
            escrow = await escrows.create(
                Escrow(
                    id=escrow_id,
                    buyer=buyer,
                    seller=seller,
                    state=EscrowState.CREATED.value,
                    amount=0,
                    notarization_enabled=True,
                )
            )
            logger.info("seed.escrow_created", escrow_id=escrow_id)

        snapshot = snapshot_of(escrow)

    logger.info("seed.ready", escrow_id=escrow_id, state=snapshot.state.value)
    return snapshot
