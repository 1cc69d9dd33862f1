"""End-to-end tests of the SettlementFacade over a seeded SQLite ledger.

Covers the settlement properties the facade guarantees:
    - conservation of total value outside account funding
    - mutual consent and no double release, also under concurrency
    - idempotent reset
    - notarization failures never affect the ledger
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeNotary
from escrow_settlement.domain.enums import Actor, EscrowState
from escrow_settlement.domain.exceptions import (
    InsufficientBalanceError,
    InvalidStateTransitionError,
    NotFundedError,
    SettlementError,
)
from escrow_settlement.infrastructure.database import LedgerStore
from escrow_settlement.services import EscrowEngine, NotarizationPipeline, SettlementFacade

SEED_TOTAL = 200_000


class TestScenario:
    @pytest.mark.asyncio
    async def test_fund_confirm_confirm(self, facade: SettlementFacade) -> None:
        funded = await facade.fund_escrow(50_000)
        assert funded.state is EscrowState.FUNDED
        assert funded.buyer.balance == 150_000
        assert funded.amount == 50_000

        p1 = await facade.confirm(Actor.P1)
        assert p1.state is EscrowState.P1_CONFIRMED

        released = await facade.confirm(Actor.P2)
        assert released.state is EscrowState.RELEASED
        assert released.buyer.balance == 150_000
        assert released.seller.balance == 50_000
        assert released.amount == 0

        events = await facade.list_events()
        assert [e.action for e in reversed(events)] == [
            "FUNDED",
            "P1_CONFIRMED",
            "P2_CONFIRMED",
            "RELEASED",
        ]

    @pytest.mark.asyncio
    async def test_insufficient_balance_changes_nothing(self, facade: SettlementFacade) -> None:
        before = await facade.get_state()
        with pytest.raises(InsufficientBalanceError):
            await facade.fund_escrow(250_000)
        assert await facade.get_state() == before
        assert await facade.list_events() == []

    @pytest.mark.asyncio
    async def test_confirm_unfunded(self, facade: SettlementFacade) -> None:
        with pytest.raises(NotFundedError) as exc_info:
            await facade.confirm("P1")
        assert exc_info.value.code == "NOT_FUNDED"


class TestConservation:
    @pytest.mark.asyncio
    async def test_total_value_constant(self, facade: SettlementFacade) -> None:
        steps = [
            lambda: facade.fund_escrow(12_345),
            lambda: facade.confirm(Actor.P2),
            lambda: facade.confirm(Actor.P2),  # rejected
            lambda: facade.confirm(Actor.P1),
            lambda: facade.fund_escrow(1),  # rejected, already released
            lambda: facade.reset_system(),
            lambda: facade.fund_escrow(200_000),
        ]
        for step in steps:
            try:
                await step()
            except SettlementError:
                pass
            assert (await facade.get_state()).total_value == SEED_TOTAL

    @pytest.mark.asyncio
    async def test_account_funding_adds_value(self, facade: SettlementFacade) -> None:
        snap = await facade.fund_account(Actor.P2, 500)
        assert snap.total_value == SEED_TOTAL + 500


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_is_idempotent(self, facade: SettlementFacade) -> None:
        await facade.fund_escrow(10)
        first = await facade.reset_system()
        second = await facade.reset_system()
        assert first == second
        assert first.state is EscrowState.CREATED
        assert first.notarization_enabled is True

        events = await facade.list_events()
        assert [e.action for e in events] == ["RESET"]


class TestEventListing:
    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, facade: SettlementFacade) -> None:
        for _ in range(3):
            await facade.fund_account(Actor.P1, 1)

        assert len(await facade.list_events(0)) == 1
        assert len(await facade.list_events(-5)) == 1
        assert len(await facade.list_events(2)) == 2
        assert len(await facade.list_events(10_000)) == 3

    @pytest.mark.asyncio
    async def test_clear_events(self, facade: SettlementFacade) -> None:
        await facade.fund_escrow(10)
        assert await facade.clear_events() == 1
        assert await facade.list_events() == []
        assert (await facade.get_state()).state is EscrowState.FUNDED


class TestNotarizationIsolation:
    @pytest.mark.asyncio
    async def test_failing_notary_does_not_touch_ledger(
        self, store: LedgerStore, engine: EscrowEngine
    ) -> None:
        pipeline = NotarizationPipeline(store, FakeNotary(fail=True))
        facade = SettlementFacade(store, engine, pipeline)

        await facade.fund_escrow(50_000)
        await facade.confirm(Actor.P1)
        released = await facade.confirm(Actor.P2)
        await pipeline.drain()

        assert await facade.get_state() == released
        events = await facade.list_events()
        assert len(events) == 4
        assert all(e.notarization_error == "notary rejected the memo" for e in events)

    @pytest.mark.asyncio
    async def test_successful_notarization(
        self,
        facade: SettlementFacade,
        pipeline: NotarizationPipeline,
        notary: FakeNotary,
    ) -> None:
        await facade.fund_escrow(50_000)
        await pipeline.drain()

        (evt,) = await facade.list_events()
        assert evt.external_ref == "ref-1"
        assert notary.submitted[0].amount == 50_000

    @pytest.mark.asyncio
    async def test_disabled_notarization(
        self,
        facade: SettlementFacade,
        pipeline: NotarizationPipeline,
        notary: FakeNotary,
    ) -> None:
        await facade.toggle_notarization(False)
        await facade.fund_escrow(1)
        await pipeline.drain()

        assert notary.submitted == []
        (evt,) = await facade.list_events()
        assert evt.external_ref is None
        assert evt.notarization_error is None


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_confirms_release_once(self, facade: SettlementFacade) -> None:
        await facade.fund_escrow(50_000)

        results = await asyncio.gather(
            facade.confirm(Actor.P1),
            facade.confirm(Actor.P2),
            facade.confirm(Actor.P1),
            facade.confirm(Actor.P2),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 2
        assert all(isinstance(f, InvalidStateTransitionError) for f in failures)

        snap = await facade.get_state()
        assert snap.state is EscrowState.RELEASED
        assert snap.seller.balance == 50_000

        actions = [e.action for e in await facade.list_events()]
        assert actions.count("RELEASED") == 1

    @pytest.mark.asyncio
    async def test_concurrent_funding_single_winner(self, facade: SettlementFacade) -> None:
        results = await asyncio.gather(
            *(facade.fund_escrow(60_000) for _ in range(5)),
            return_exceptions=True,
        )
        assert sum(not isinstance(r, Exception) for r in results) == 1

        snap = await facade.get_state()
        assert snap.buyer.balance == 140_000
        assert snap.total_value == SEED_TOTAL
