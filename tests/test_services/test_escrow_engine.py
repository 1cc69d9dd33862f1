"""Tests for the EscrowEngine rules, run inside real ledger transactions."""

from __future__ import annotations

import pytest

from escrow_settlement.domain.enums import Actor, EscrowState, EventAction
from escrow_settlement.domain.exceptions import (
    AlreadyReleasedError,
    AmountOutOfRangeError,
    InsufficientBalanceError,
    InvalidActorForStateError,
    InvalidAmountError,
    InvalidStateTransitionError,
    NotarizationLockedError,
    NotFundedError,
)
from escrow_settlement.domain.models import MAX_AMOUNT
from escrow_settlement.infrastructure.database import EventRepository, LedgerStore
from escrow_settlement.services.escrow_engine import EscrowEngine, validate_amount


async def _events(store: LedgerStore) -> list:
    async with store.session() as session:
        return await EventRepository(session).list_recent(store.escrow_id, limit=100)


class TestValidateAmount:
    @pytest.mark.parametrize("bad", [0, -1, True, 1.5, "10", None])
    def test_rejects_non_positive_or_non_int(self, bad: object) -> None:
        with pytest.raises(InvalidAmountError):
            validate_amount(bad)

    def test_rejects_above_ceiling(self) -> None:
        with pytest.raises(AmountOutOfRangeError):
            validate_amount(MAX_AMOUNT + 1)

    def test_accepts_ceiling(self) -> None:
        assert validate_amount(MAX_AMOUNT) == MAX_AMOUNT


class TestFundEscrow:
    @pytest.mark.asyncio
    async def test_moves_buyer_funds(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            outcome = await engine.fund_escrow(uow, 50_000)

        assert outcome.state.state is EscrowState.FUNDED
        assert outcome.state.amount == 50_000
        assert outcome.state.buyer.balance == 150_000
        assert len(outcome.events) == 1
        ctx = outcome.events[0]
        assert ctx.notarize is True
        assert ctx.memo.action is EventAction.FUNDED
        assert ctx.memo.amount == 50_000
        assert ctx.memo.buyer_id == outcome.state.buyer.id

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, store: LedgerStore, engine: EscrowEngine) -> None:
        with pytest.raises(InsufficientBalanceError):
            async with store.transaction() as uow:
                await engine.fund_escrow(uow, 200_001)

        snap = await store.get()
        assert snap.state is EscrowState.CREATED
        assert snap.buyer.balance == 200_000
        assert await _events(store) == []

    @pytest.mark.asyncio
    async def test_fund_twice(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 10)
        with pytest.raises(InvalidStateTransitionError):
            async with store.transaction() as uow:
                await engine.fund_escrow(uow, 10)

    @pytest.mark.asyncio
    async def test_whole_balance(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            outcome = await engine.fund_escrow(uow, 200_000)
        assert outcome.state.buyer.balance == 0
        assert outcome.state.amount == 200_000


class TestConfirm:
    @pytest.mark.asyncio
    async def test_not_funded(self, store: LedgerStore, engine: EscrowEngine) -> None:
        with pytest.raises(NotFundedError):
            async with store.transaction() as uow:
                await engine.confirm(uow, Actor.P1)
        assert await _events(store) == []

    @pytest.mark.asyncio
    async def test_first_confirmation_does_not_release(
        self, store: LedgerStore, engine: EscrowEngine
    ) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 50_000)
            outcome = await engine.confirm(uow, Actor.P2)

        assert outcome.state.state is EscrowState.P2_CONFIRMED
        assert outcome.state.seller.balance == 0
        assert [c.memo.action for c in outcome.events] == [EventAction.P2_CONFIRMED]

    @pytest.mark.asyncio
    async def test_double_confirmation(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 50_000)
            await engine.confirm(uow, Actor.P1)

        with pytest.raises(InvalidActorForStateError) as exc_info:
            async with store.transaction() as uow:
                await engine.confirm(uow, Actor.P1)
        assert exc_info.value.code == "INVALID_ACTOR_FOR_STATE"
        assert (await store.get()).state is EscrowState.P1_CONFIRMED

    @pytest.mark.asyncio
    async def test_second_confirmation_releases(
        self, store: LedgerStore, engine: EscrowEngine
    ) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 50_000)
            await engine.confirm(uow, "P1")
            outcome = await engine.confirm(uow, "P2")

        snap = outcome.state
        assert snap.state is EscrowState.RELEASED
        assert snap.amount == 0
        assert snap.buyer.balance == 150_000
        assert snap.seller.balance == 50_000
        assert [c.memo.action for c in outcome.events] == [
            EventAction.P2_CONFIRMED,
            EventAction.RELEASED,
        ]

        newest_first = await _events(store)
        release, consent = newest_first[0], newest_first[1]
        assert release.action == "RELEASED"
        assert consent.action == "P2_CONFIRMED"
        assert consent.note == "P2 confirmed escrow release"
        # Both snapshots show the post-release ledger
        for evt in (release, consent):
            assert evt.escrow_state == "RELEASED"
            assert evt.seller_balance == 50_000
            assert evt.escrow_amount == 0
            assert evt.amount == 50_000

    @pytest.mark.asyncio
    async def test_after_release(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 1)
            await engine.confirm(uow, Actor.P1)
            await engine.confirm(uow, Actor.P2)

        with pytest.raises(AlreadyReleasedError):
            async with store.transaction() as uow:
                await engine.confirm(uow, Actor.P1)


class TestToggleNotarization:
    @pytest.mark.asyncio
    async def test_toggle_in_created(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            outcome = await engine.toggle_notarization(uow, False)
        assert outcome.state.notarization_enabled is False
        assert outcome.events == []

    @pytest.mark.asyncio
    async def test_locked_during_cycle(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 10)
        with pytest.raises(NotarizationLockedError):
            async with store.transaction() as uow:
                await engine.toggle_notarization(uow, False)

    @pytest.mark.asyncio
    async def test_disabled_events_are_not_notarized(
        self, store: LedgerStore, engine: EscrowEngine
    ) -> None:
        async with store.transaction() as uow:
            await engine.toggle_notarization(uow, False)
            outcome = await engine.fund_escrow(uow, 10)
        assert outcome.events[0].notarize is False


class TestFundAccount:
    @pytest.mark.asyncio
    async def test_credits_target(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            outcome = await engine.fund_account(uow, Actor.P2, 1_000)
        assert outcome.state.seller.balance == 1_000
        assert outcome.events[0].memo.action is EventAction.ACCOUNT_FUNDED

    @pytest.mark.asyncio
    async def test_overflow(self, store: LedgerStore, engine: EscrowEngine) -> None:
        with pytest.raises(AmountOutOfRangeError):
            async with store.transaction() as uow:
                await engine.fund_account(uow, Actor.P1, MAX_AMOUNT)
        assert (await store.get()).buyer.balance == 200_000

    @pytest.mark.asyncio
    async def test_rejects_zero(self, store: LedgerStore, engine: EscrowEngine) -> None:
        with pytest.raises(InvalidAmountError):
            async with store.transaction() as uow:
                await engine.fund_account(uow, Actor.P1, 0)


class TestReset:
    @pytest.mark.asyncio
    async def test_restores_seed_and_clears_log(
        self, store: LedgerStore, engine: EscrowEngine
    ) -> None:
        async with store.transaction() as uow:
            await engine.toggle_notarization(uow, False)
            await engine.fund_escrow(uow, 70_000)
            await engine.confirm(uow, Actor.P1)

        async with store.transaction() as uow:
            outcome = await engine.reset_system(uow)

        snap = outcome.state
        assert snap.state is EscrowState.CREATED
        assert snap.amount == 0
        assert snap.notarization_enabled is True
        assert snap.buyer.balance == 200_000
        assert snap.seller.balance == 0

        events = await _events(store)
        assert [e.action for e in events] == ["RESET"]
        assert events[0].note == "System reset to initial state"

    @pytest.mark.asyncio
    async def test_clear_events(self, store: LedgerStore, engine: EscrowEngine) -> None:
        async with store.transaction() as uow:
            await engine.fund_escrow(uow, 10)
            await engine.confirm(uow, Actor.P1)

        async with store.transaction() as uow:
            cleared = await engine.clear_events(uow)

        assert cleared == 2
        assert await _events(store) == []
        assert (await store.get()).state is EscrowState.P1_CONFIRMED
