"""Escrow State Machine Guard.

Uses python-statemachine to enforce legal state transitions at the domain level.
No matter what the API or an MCP tool asks for, an illegal transition
(e.g., CREATED -> RELEASED) will raise TransitionNotAllowed.

The state machine is instantiated per operation at the escrow's current state
and validates the transition before the ORM row is updated. Balance effects
live in services/escrow_engine.py.

Transition table:
    CREATED       -> FUNDED           (fund)
    FUNDED        -> P1_CONFIRMED     (p1_confirms)
    FUNDED        -> P2_CONFIRMED     (p2_confirms)
    P2_CONFIRMED  -> RELEASED         (p1_confirms)
    P1_CONFIRMED  -> RELEASED         (p2_confirms)
    *             -> CREATED          (restart)

RELEASED has no outgoing transition other than restart, so it is terminal for
a funding cycle but not declared final.
"""

from __future__ import annotations

from statemachine import State, StateMachine

from escrow_settlement.domain.enums import Actor


class EscrowStateMachine(StateMachine):
    """State machine that guards the escrow lifecycle.

    Usage:
        sm = EscrowStateMachine(current_state="FUNDED")
        sm.p1_confirms()  # transitions to P1_CONFIRMED
        sm.status         # "P1_CONFIRMED"
    """

    # --- States ---
    CREATED = State("CREATED", initial=True)
    FUNDED = State("FUNDED")
    P1_CONFIRMED = State("P1_CONFIRMED")
    P2_CONFIRMED = State("P2_CONFIRMED")
    RELEASED = State("RELEASED")

    # --- Events / Transitions ---

    # Funding
    fund = CREATED.to(FUNDED)

    # Confirmations (the second confirmer releases)
    p1_confirms = FUNDED.to(P1_CONFIRMED) | P2_CONFIRMED.to(RELEASED)
    p2_confirms = FUNDED.to(P2_CONFIRMED) | P1_CONFIRMED.to(RELEASED)

    # Restart (system reset) is always legal
    restart = (
        CREATED.to.itself()
        | FUNDED.to(CREATED)
        | P1_CONFIRMED.to(CREATED)
        | P2_CONFIRMED.to(CREATED)
        | RELEASED.to(CREATED)
    )

    def __init__(self, current_state: str = "CREATED") -> None:
        """Initialize the state machine at a given state.

        Args:
            current_state: The current EscrowState value (e.g., "FUNDED").
                           Must match one of the State value strings exactly.
        """
        valid_values = {s.value for s in self.states}
        if current_state not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown state '{current_state}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_state)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches EscrowState enum)."""
        return str(self.current_state_value)


def confirm_event_for(actor: Actor) -> str:
    """Name of the state machine event fired when ``actor`` confirms."""
    return "p1_confirms" if actor is Actor.P1 else "p2_confirms"
