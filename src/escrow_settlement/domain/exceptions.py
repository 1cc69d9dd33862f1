"""Domain exceptions for the escrow settlement engine.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
"""


class SettlementError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "SETTLEMENT_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Validation Errors ---


class InvalidAmountError(SettlementError):
    """Raised when an amount is not a strictly positive integer."""

    def __init__(self, amount: object) -> None:
        super().__init__(
            message=f"Amount must be a positive integer, got {amount!r}",
            code="INVALID_AMOUNT",
        )
        self.amount = amount


# --- State Machine Errors ---


class InvalidStateTransitionError(SettlementError):
    """Raised when an attempted transition is not allowed from the current state.

    Example: fund_escrow while the escrow is already FUNDED.
    """

    def __init__(
        self,
        current_state: str,
        attempted: str,
        message: str | None = None,
        code: str = "INVALID_STATE_TRANSITION",
    ) -> None:
        super().__init__(
            message=message or f"Invalid state transition: {attempted} from {current_state}",
            code=code,
        )
        self.current_state = current_state
        self.attempted = attempted


class NotFundedError(InvalidStateTransitionError):
    """Raised when a party confirms before the escrow has been funded."""

    def __init__(self, actor: str) -> None:
        super().__init__(
            current_state="CREATED",
            attempted=f"confirm({actor})",
            message="Escrow must be funded before confirmations.",
            code="NOT_FUNDED",
        )


class AlreadyReleasedError(InvalidStateTransitionError):
    """Raised when a party confirms after the funds were released."""

    def __init__(self, actor: str) -> None:
        super().__init__(
            current_state="RELEASED",
            attempted=f"confirm({actor})",
            message="Escrow already released.",
            code="ALREADY_RELEASED",
        )


class InvalidActorForStateError(InvalidStateTransitionError):
    """Raised when a party confirms twice, e.g. P1 while already P1_CONFIRMED."""

    def __init__(self, actor: str, current_state: str) -> None:
        other = "P2" if actor == "P1" else "P1"
        super().__init__(
            current_state=current_state,
            attempted=f"confirm({actor})",
            message=(
                f"{actor} can confirm only when escrow is FUNDED or {other} "
                f"already confirmed (current state: {current_state})."
            ),
            code="INVALID_ACTOR_FOR_STATE",
        )
        self.actor = actor


class NotarizationLockedError(InvalidStateTransitionError):
    """Raised when notarization is toggled during an active escrow cycle."""

    def __init__(self, current_state: str) -> None:
        super().__init__(
            current_state=current_state,
            attempted="toggle_notarization",
            message="Cannot toggle notarization during an active escrow transaction.",
            code="NOTARIZATION_LOCKED",
        )


# --- Balance Errors ---


class InsufficientBalanceError(SettlementError):
    """Raised when the buyer cannot cover the requested escrow amount."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient buyer balance: required {required}, available {available}",
            code="INSUFFICIENT_BALANCE",
        )
        self.required = required
        self.available = available


class AmountOutOfRangeError(SettlementError):
    """Raised when an amount or resulting balance exceeds the integer ceiling."""

    def __init__(self, value: int, ceiling: int) -> None:
        super().__init__(
            message=f"Amount {value} exceeds the supported maximum of {ceiling}",
            code="AMOUNT_OUT_OF_RANGE",
        )
        self.value = value
        self.ceiling = ceiling


# --- Concurrency Errors ---


class LedgerBusyError(SettlementError):
    """Raised when the escrow lock could not be acquired in time. Safe to retry."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message=f"Escrow is busy with another transaction (waited {timeout_seconds}s)",
            code="LEDGER_BUSY",
        )
        self.timeout_seconds = timeout_seconds


class DuplicateOperationError(SettlementError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )


# --- Infrastructure Errors ---


class InfrastructureError(SettlementError):
    """Fatal storage/bootstrap problem. Surfaced to callers as an internal error."""


class NotInitializedError(InfrastructureError):
    """Raised when the escrow row is missing (seeding never ran or failed)."""

    def __init__(self, escrow_id: str) -> None:
        super().__init__(
            message=f"Escrow not initialized: {escrow_id}",
            code="NOT_INITIALIZED",
        )
        self.escrow_id = escrow_id


class StorageUnavailableError(InfrastructureError):
    """Raised when the database rejects or cannot serve a ledger operation."""

    def __init__(self, detail: str) -> None:
        super().__init__(message=f"Ledger storage unavailable: {detail}", code="STORAGE_UNAVAILABLE")


# --- Notarization Errors ---


class NotarizationError(SettlementError):
    """Raised by notary clients. Never escapes the notarization pipeline."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message=message, code="NOTARIZATION_ERROR")
        self.status_code = status_code
