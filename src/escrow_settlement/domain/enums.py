"""Domain enumerations for the escrow settlement engine.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class EscrowState(enum.StrEnum):
    """Lifecycle states of the escrow.

    State transitions are enforced by the EscrowStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    CREATED = "CREATED"
    FUNDED = "FUNDED"
    P1_CONFIRMED = "P1_CONFIRMED"
    P2_CONFIRMED = "P2_CONFIRMED"
    RELEASED = "RELEASED"

    @property
    def holds_funds(self) -> bool:
        """Whether the escrow amount must be positive in this state."""
        return self in (
            EscrowState.FUNDED,
            EscrowState.P1_CONFIRMED,
            EscrowState.P2_CONFIRMED,
        )


class PartyRole(enum.StrEnum):
    """Which side of the escrow a party sits on."""

    BUYER = "BUYER"
    SELLER = "SELLER"


class Actor(enum.StrEnum):
    """Caller-facing party handles: P1 is the buyer, P2 the seller."""

    P1 = "P1"
    P2 = "P2"

    @property
    def role(self) -> PartyRole:
        return PartyRole.BUYER if self is Actor.P1 else PartyRole.SELLER


class EventAction(enum.StrEnum):
    """Types of settlement events recorded in the settlement_events table.

    Every committed transition appends one event, except a release which
    appends two (the consent event, then the release event).
    """

    FUNDED = "FUNDED"
    P1_CONFIRMED = "P1_CONFIRMED"
    P2_CONFIRMED = "P2_CONFIRMED"
    RELEASED = "RELEASED"
    RESET = "RESET"
    ACCOUNT_FUNDED = "ACCOUNT_FUNDED"


class NotaryMode(enum.StrEnum):
    """Notarization backends selectable from configuration."""

    SIMULATED = "simulated"
    HTTP = "http"
    DISABLED = "disabled"
