"""Tagged event details, one variant per settlement action.

Each variant carries only the fields relevant to its action plus a
human-readable note. They are stored in the settlement_events.details JSON
column and rebuilt with ``details_from_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from escrow_settlement.domain.enums import Actor, EventAction


@dataclass(frozen=True)
class EscrowFunded:
    """The buyer moved ``amount`` into escrow."""

    action: ClassVar[EventAction] = EventAction.FUNDED

    amount: int

    @property
    def note(self) -> str:
        return f"Buyer funded escrow with {self.amount}"

    def to_dict(self) -> dict:
        return {"amount": self.amount}


@dataclass(frozen=True)
class PartyConfirmed:
    """A party recorded its consent. ``releases`` marks the second confirmation."""

    actor: Actor
    releases: bool = False

    @property
    def action(self) -> EventAction:
        return EventAction.P1_CONFIRMED if self.actor is Actor.P1 else EventAction.P2_CONFIRMED

    @property
    def note(self) -> str:
        if self.releases:
            return f"{self.actor} confirmed escrow release"
        return f"{self.actor} confirmed escrow"

    def to_dict(self) -> dict:
        return {"actor": self.actor.value, "releases": self.releases}


@dataclass(frozen=True)
class EscrowReleased:
    """Escrowed funds were paid out to the seller."""

    action: ClassVar[EventAction] = EventAction.RELEASED

    released_amount: int

    @property
    def note(self) -> str:
        return f"Released {self.released_amount} to seller"

    def to_dict(self) -> dict:
        return {"released_amount": self.released_amount}


@dataclass(frozen=True)
class SystemReset:
    action: ClassVar[EventAction] = EventAction.RESET

    @property
    def note(self) -> str:
        return "System reset to initial state"

    def to_dict(self) -> dict:
        return {}


@dataclass(frozen=True)
class AccountFunded:
    """Simulated top-up of a party balance from outside the escrow."""

    action: ClassVar[EventAction] = EventAction.ACCOUNT_FUNDED

    target: Actor
    amount: int

    @property
    def note(self) -> str:
        return f"Funded {self.target} account with {self.amount}"

    def to_dict(self) -> dict:
        return {"target": self.target.value, "amount": self.amount}


EventDetails = EscrowFunded | PartyConfirmed | EscrowReleased | SystemReset | AccountFunded


def details_from_dict(action: str, data: dict | None) -> EventDetails:
    """Rebuild the tagged variant stored for an event.

    Raises:
        ValueError: If the action is unknown.
    """
    data = data or {}
    match EventAction(action):
        case EventAction.FUNDED:
            return EscrowFunded(amount=int(data["amount"]))
        case EventAction.P1_CONFIRMED | EventAction.P2_CONFIRMED:
            return PartyConfirmed(
                actor=Actor(data["actor"]),
                releases=bool(data.get("releases", False)),
            )
        case EventAction.RELEASED:
            return EscrowReleased(released_amount=int(data["released_amount"]))
        case EventAction.RESET:
            return SystemReset()
        case EventAction.ACCOUNT_FUNDED:
            return AccountFunded(target=Actor(data["target"]), amount=int(data["amount"]))
    raise ValueError(f"Unknown event action: {action!r}")
