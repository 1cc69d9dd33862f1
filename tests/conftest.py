"""Shared test fixtures for the Escrow Settlement test suite.

Provides:
    - A seeded SQLite (aiosqlite) ledger in a temp file per test
    - A scriptable fake notarization service
    - The escrow engine, notarization pipeline and settlement facade wired together
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from escrow_settlement.config import Settings
from escrow_settlement.domain.exceptions import NotarizationError
from escrow_settlement.domain.models import NotarizationReceipt
from escrow_settlement.infrastructure.database import (
    LedgerStore,
    create_db_engine,
    create_session_factory,
    ensure_seed,
    init_db,
)
from escrow_settlement.services import EscrowEngine, NotarizationPipeline, SettlementFacade

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from escrow_settlement.domain.models import NotarizationMemo


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeNotary:
    """In-memory notarization service.

    ``fail`` makes every submission raise, ``delay`` slows each one down,
    and ``submitted`` records the memos in arrival order.
    """

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.submitted: list[NotarizationMemo] = []
        self.closed = False

    async def submit(self, memo: NotarizationMemo) -> NotarizationReceipt:
        self.submitted.append(memo)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise NotarizationError("notary rejected the memo")
        n = len(self.submitted)
        return NotarizationReceipt(external_ref=f"ref-{n}", ledger_anchor=f"anchor-{n}")

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, ignoring any local .env."""
    return Settings(
        _env_file=None,
        app_env="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        db_connect_attempts=1,
        ledger_lock_timeout_seconds=None,
        notary_timeout_seconds=2.0,
    )


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_db_engine(settings)
    await init_db(engine, settings)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def store(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> LedgerStore:
    """A LedgerStore over a freshly seeded ledger (buyer 200000, seller 0)."""
    await ensure_seed(session_factory, settings)
    return LedgerStore(session_factory)


# ---------------------------------------------------------------------------
# Service Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def notary() -> FakeNotary:
    return FakeNotary()


@pytest.fixture
def engine(settings: Settings) -> EscrowEngine:
    return EscrowEngine(seed=settings.seed_balances)


@pytest_asyncio.fixture
async def pipeline(store: LedgerStore, notary: FakeNotary) -> AsyncIterator[NotarizationPipeline]:
    pipe = NotarizationPipeline(store, notary, timeout=2.0, max_concurrency=4)
    yield pipe
    await pipe.close(grace_seconds=1.0)


@pytest.fixture
def facade(
    store: LedgerStore,
    engine: EscrowEngine,
    pipeline: NotarizationPipeline,
) -> SettlementFacade:
    return SettlementFacade(store, engine, pipeline)
