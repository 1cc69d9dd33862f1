"""Escrow Engine — the settlement rules applied inside one ledger transaction.

Each operation receives a LedgerUnitOfWork (escrow row already locked),
validates inputs and state, mutates balances, appends settlement events, and
returns a TransitionOutcome. It never commits: the caller's
``LedgerStore.transaction()`` block does, or rolls everything back if any
rule here raises.

Both REST routes and MCP tools reach this class through the
SettlementFacade, so the rules live in exactly one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from escrow_settlement.domain.clock import MonotonicClock
from escrow_settlement.domain.enums import Actor, EscrowState
from escrow_settlement.domain.events import (
    AccountFunded,
    EscrowFunded,
    EscrowReleased,
    PartyConfirmed,
    SystemReset,
)
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
from escrow_settlement.domain.models import (
    MAX_AMOUNT,
    EventContext,
    NotarizationMemo,
    SeedBalances,
    TransitionOutcome,
)
from escrow_settlement.domain.state_machine import EscrowStateMachine, confirm_event_for
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from escrow_settlement.domain.events import EventDetails
    from escrow_settlement.infrastructure.database.ledger_store import LedgerUnitOfWork
    from escrow_settlement.infrastructure.database.orm_models import Party

logger = get_logger(__name__)


def validate_amount(amount: object) -> int:
    """Return ``amount`` if it is a positive integer within the BIGINT range.

    Raises:
        InvalidAmountError: Not an int, a bool, or not strictly positive.
        AmountOutOfRangeError: Above MAX_AMOUNT.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    if amount > MAX_AMOUNT:
        raise AmountOutOfRangeError(amount, MAX_AMOUNT)
    return amount


class EscrowEngine:
    """Applies escrow transitions and balance effects to a unit of work."""

    def __init__(self, seed: SeedBalances | None = None, clock: MonotonicClock | None = None) -> None:
        self._seed = seed or SeedBalances()
        self._clock = clock or MonotonicClock()

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    async def fund_escrow(self, uow: LedgerUnitOfWork, amount: int) -> TransitionOutcome:
        """Move ``amount`` from the buyer into escrow. CREATED -> FUNDED."""
        amount = validate_amount(amount)
        escrow = uow.escrow

        new_state = self._fire_transition(escrow.state, "fund")

        buyer = uow.buyer
        if buyer.balance < amount:
            raise InsufficientBalanceError(required=amount, available=buyer.balance)

        await uow.parties.set_balance(buyer, buyer.balance - amount)
        await uow.escrows.update(escrow, state=new_state, amount=amount)

        ctx = await self._record(uow, EscrowFunded(amount=amount), actor=Actor.P1, amount=amount)

        logger.info("settlement.escrow_funded", escrow_id=escrow.id, amount=amount)
        return TransitionOutcome(state=uow.snapshot(), events=[ctx])

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    async def confirm(self, uow: LedgerUnitOfWork, actor: Actor | str) -> TransitionOutcome:
        """Record ``actor``'s consent; the second consent releases funds to the seller."""
        actor = Actor(actor)
        escrow = uow.escrow
        current = EscrowState(escrow.state)

        if current is EscrowState.CREATED:
            raise NotFundedError(actor.value)
        if current is EscrowState.RELEASED:
            raise AlreadyReleasedError(actor.value)

        try:
            new_state = self._fire_transition(escrow.state, confirm_event_for(actor))
        except InvalidStateTransitionError as err:
            raise InvalidActorForStateError(actor.value, current.value) from err

        escrowed = escrow.amount

        if new_state is not EscrowState.RELEASED:
            await uow.escrows.update(escrow, state=new_state)
            ctx = await self._record(uow, PartyConfirmed(actor=actor), actor=actor, amount=escrowed)
            logger.info(
                "settlement.party_confirmed",
                escrow_id=escrow.id,
                actor=actor.value,
                state=new_state.value,
            )
            return TransitionOutcome(state=uow.snapshot(), events=[ctx])

        # Release: both events are appended after the balances move, so both
        # snapshots show the post-release ledger.
        seller = uow.seller
        payout = _checked_sum(seller.balance, escrowed)
        await uow.parties.set_balance(seller, payout)
        await uow.escrows.update(escrow, state=EscrowState.RELEASED, amount=0)

        consent = await self._record(
            uow, PartyConfirmed(actor=actor, releases=True), actor=actor, amount=escrowed
        )
        release = await self._record(
            uow, EscrowReleased(released_amount=escrowed), actor=actor, amount=escrowed
        )

        logger.info(
            "settlement.escrow_released",
            escrow_id=escrow.id,
            released_by=actor.value,
            amount=escrowed,
        )
        return TransitionOutcome(state=uow.snapshot(), events=[consent, release])

    # ------------------------------------------------------------------
    # Configuration & simulated top-ups
    # ------------------------------------------------------------------

    async def toggle_notarization(self, uow: LedgerUnitOfWork, enabled: bool) -> TransitionOutcome:
        """Switch notarization on or off. Only allowed between escrow cycles."""
        escrow = uow.escrow
        if EscrowState(escrow.state) is not EscrowState.CREATED:
            raise NotarizationLockedError(escrow.state)

        await uow.escrows.update(escrow, notarization_enabled=bool(enabled))
        logger.info("settlement.notarization_toggled", escrow_id=escrow.id, enabled=bool(enabled))
        return TransitionOutcome(state=uow.snapshot())

    async def fund_account(
        self,
        uow: LedgerUnitOfWork,
        target: Actor | str,
        amount: int,
    ) -> TransitionOutcome:
        """Credit a party from outside the escrow (demo top-up)."""
        target = Actor(target)
        amount = validate_amount(amount)

        party = self._party_for(uow, target)
        await uow.parties.set_balance(party, _checked_sum(party.balance, amount))

        ctx = await self._record(
            uow, AccountFunded(target=target, amount=amount), actor=target, amount=amount
        )

        logger.info("settlement.account_funded", target=target.value, amount=amount)
        return TransitionOutcome(state=uow.snapshot(), events=[ctx])

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    async def reset_system(self, uow: LedgerUnitOfWork) -> TransitionOutcome:
        """Restore seed balances, empty the escrow, and start a fresh event log."""
        escrow = uow.escrow
        self._fire_transition(escrow.state, "restart")

        cleared = await uow.events.clear_all(escrow.id)
        await uow.parties.set_balance(uow.buyer, self._seed.buyer)
        await uow.parties.set_balance(uow.seller, self._seed.seller)
        await uow.escrows.update(
            escrow,
            state=EscrowState.CREATED,
            amount=0,
            notarization_enabled=True,
        )

        ctx = await self._record(uow, SystemReset(), actor=None, amount=0)

        logger.info("settlement.system_reset", escrow_id=escrow.id, events_cleared=cleared)
        return TransitionOutcome(state=uow.snapshot(), events=[ctx])

    async def clear_events(self, uow: LedgerUnitOfWork) -> int:
        """Empty the event log without touching balances or state."""
        cleared = await uow.events.clear_all(uow.escrow.id)
        logger.info("settlement.events_cleared", escrow_id=uow.escrow.id, count=cleared)
        return cleared

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _record(
        self,
        uow: LedgerUnitOfWork,
        details: EventDetails,
        actor: Actor | None,
        amount: int,
    ) -> EventContext:
        escrow = uow.escrow
        evt = await uow.events.append(
            escrow,
            details,
            actor=actor,
            amount=amount,
            created_at=self._clock.now(),
        )
        memo = NotarizationMemo(
            escrow_id=escrow.id,
            action=details.action,
            amount=amount,
            buyer_id=escrow.buyer_id,
            seller_id=escrow.seller_id,
            timestamp=evt.created_at,
        )
        return EventContext(event_id=evt.id, notarize=escrow.notarization_enabled, memo=memo)

    @staticmethod
    def _party_for(uow: LedgerUnitOfWork, actor: Actor) -> Party:
        return uow.buyer if actor is Actor.P1 else uow.seller

    @staticmethod
    def _fire_transition(current_state: str, event_name: str) -> EscrowState:
        """Fire a state machine event and return the resulting state.

        Raises InvalidStateTransitionError if the transition is illegal.
        """
        sm = EscrowStateMachine(current_state=current_state)
        try:
            getattr(sm, event_name)()
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(current_state, event_name) from err
        return EscrowState(sm.status)


def _checked_sum(balance: int, amount: int) -> int:
    total = balance + amount
    if total > MAX_AMOUNT:
        raise AmountOutOfRangeError(total, MAX_AMOUNT)
    return total
