"""Database infrastructure — engine, ORM models, repositories, and the ledger store."""

from escrow_settlement.infrastructure.database.engine import (
    close_db,
    create_db_engine,
    create_session_factory,
    init_db,
)
from escrow_settlement.infrastructure.database.ledger_store import (
    LedgerStore,
    LedgerUnitOfWork,
)
from escrow_settlement.infrastructure.database.orm_models import (
    Base,
    Escrow,
    Party,
    SettlementEvent,
)
from escrow_settlement.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
    PartyRepository,
)
from escrow_settlement.infrastructure.database.seed import ensure_seed

__all__ = [
    "Base",
    "Escrow",
    "Party",
    "SettlementEvent",
    "EscrowRepository",
    "EventRepository",
    "PartyRepository",
    "LedgerStore",
    "LedgerUnitOfWork",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "close_db",
    "ensure_seed",
]
