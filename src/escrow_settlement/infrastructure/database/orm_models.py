"""SQLAlchemy 2.0 ORM models for the escrow settlement engine.

Three tables:
    1. parties            — The buyer and seller with their simulated balances.
    2. escrows            — The singleton escrow record (id ESCROW_SINGLE).
    3. settlement_events  — Append-only audit log of every committed transition.

Design decisions:
    - BIGINT for money in the smallest currency unit (no floating point).
    - CHECK constraints on state, non-negative balances, and the
      amount-vs-state invariant so the database rejects impossible rows.
    - Integer event ids that are never reused (AUTOINCREMENT on SQLite),
      so a late notarization patch cannot hit an event appended after a clear.
    - settlement_events is append-only: the only UPDATE is the notarization
      patch, the only DELETE is the bulk clear.
    - Portable column types so the same models run on PostgreSQL and SQLite.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from escrow_settlement.domain.enums import Actor, EscrowState, EventAction, PartyRole
from escrow_settlement.domain.events import EventDetails, details_from_dict
from escrow_settlement.domain.models import (
    NotarizationFailure,
    NotarizationOutcome,
    NotarizationReceipt,
)

# BIGINT everywhere except SQLite, which only autoincrements INTEGER keys.
EventId = BigInteger().with_variant(Integer(), "sqlite")


def _sql_in(values: type) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# Helper: auto-set updated_at on flush
# ---------------------------------------------------------------------------
def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. parties
# ---------------------------------------------------------------------------
class Party(Base):
    """The buyer or the seller. Created once by the seed, never deleted."""

    __tablename__ = "parties"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    role: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        unique=True,
        comment="BUYER or SELLER",
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    handle: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Stable external handle used by the seed to find the row",
    )
    balance: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Simulated balance in the smallest currency unit",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(f"role IN ({_sql_in(PartyRole)})", name="ck_party_valid_role"),
        CheckConstraint("balance >= 0", name="ck_party_non_negative_balance"),
    )

    def __repr__(self) -> str:
        return f"<Party id={self.id} role={self.role} balance={self.balance}>"


# ---------------------------------------------------------------------------
# 2. escrows
# ---------------------------------------------------------------------------
class Escrow(Base):
    """The singleton escrow mediating the buyer -> seller transfer."""

    __tablename__ = "escrows"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)

    buyer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("parties.id"),
        nullable=False,
    )
    seller_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("parties.id"),
        nullable=False,
    )

    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EscrowState.CREATED.value,
        comment="Current lifecycle state (guarded by EscrowStateMachine)",
    )
    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Funds currently held in escrow",
    )
    notarization_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether committed events are submitted for notarization",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    # --- Relationships ---
    # selectin keeps the escrow SELECT free of joins so FOR UPDATE applies to it alone.
    buyer: Mapped[Party] = relationship("Party", foreign_keys=[buyer_id], lazy="selectin")
    seller: Mapped[Party] = relationship("Party", foreign_keys=[seller_id], lazy="selectin")

    __table_args__ = (
        CheckConstraint(f"state IN ({_sql_in(EscrowState)})", name="ck_escrow_valid_state"),
        CheckConstraint("amount >= 0", name="ck_escrow_non_negative_amount"),
        CheckConstraint(
            "(state IN ('CREATED', 'RELEASED') AND amount = 0) OR "
            "(state IN ('FUNDED', 'P1_CONFIRMED', 'P2_CONFIRMED') AND amount > 0)",
            name="ck_escrow_amount_matches_state",
        ),
    )

    def __repr__(self) -> str:
        return f"<Escrow id={self.id} state={self.state} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 3. settlement_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class SettlementEvent(Base):
    """Immutable record of one committed transition.

    The snapshot columns are written once at commit time. The notarization
    columns are the only ones ever updated, by the notarization pipeline.
    """

    __tablename__ = "settlement_events"

    id: Mapped[int] = mapped_column(EventId, primary_key=True, autoincrement=True)

    escrow_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("escrows.id"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    actor: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
        comment="P1, P2, or null for system actions",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Monotonic commit-time timestamp",
    )

    # --- Snapshot (post-transition) ---
    escrow_state: Mapped[str] = mapped_column(String(20), nullable=False)
    buyer_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    seller_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    escrow_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Amount this event concerns (funded, confirmed, released, injected)",
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    details_json: Mapped[dict] = mapped_column(
        "details",
        JSON,
        nullable=False,
        default=dict,
        comment="Action-specific fields of the tagged event variant",
    )

    # --- Notarization (patched once, last write wins) ---
    external_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    ledger_anchor: Mapped[str | None] = mapped_column(String(128), nullable=True)
    notarization_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    notarized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(f"action IN ({_sql_in(EventAction)})", name="ck_event_valid_action"),
        CheckConstraint(
            f"actor IS NULL OR actor IN ({_sql_in(Actor)})",
            name="ck_event_valid_actor",
        ),
        Index("idx_event_escrow", "escrow_id"),
        Index("idx_event_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    @property
    def details(self) -> EventDetails:
        return details_from_dict(self.action, self.details_json)

    @property
    def notarization(self) -> NotarizationOutcome | None:
        """The recorded notarization outcome, or None while pending/disabled."""
        if self.external_ref is not None:
            return NotarizationReceipt(
                external_ref=self.external_ref,
                ledger_anchor=self.ledger_anchor or "",
            )
        if self.notarization_error is not None:
            return NotarizationFailure(error_message=self.notarization_error)
        return None

    def __repr__(self) -> str:
        return f"<SettlementEvent id={self.id} action={self.action} state={self.escrow_state}>"


# ---------------------------------------------------------------------------
# Register the auto-update listener for updated_at
# ---------------------------------------------------------------------------
event.listen(Party, "before_update", _set_updated_at)
event.listen(Escrow, "before_update", _set_updated_at)
