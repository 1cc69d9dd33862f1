"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware — lets the settlement dashboard call the API from a browser
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from escrow_settlement.domain.exceptions import (
    AmountOutOfRangeError,
    DuplicateOperationError,
    InfrastructureError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidStateTransitionError,
    LedgerBusyError,
    SettlementError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "message": message})


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Use client-provided ID or generate one
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        # Bind to structlog context for all log entries in this request
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except InvalidStateTransitionError as exc:
            logger.warning(
                "state_machine.invalid_transition",
                code=exc.code,
                current=exc.current_state,
                attempted=exc.attempted,
            )
            return _error(409, exc.code, exc.message)
        except (InvalidAmountError, InsufficientBalanceError, AmountOutOfRangeError) as exc:
            logger.warning("settlement.rejected", code=exc.code, error=exc.message)
            return _error(400, exc.code, exc.message)
        except LedgerBusyError as exc:
            logger.warning("ledger.busy_rejected", error=exc.message)
            return _error(409, exc.code, exc.message)
        except DuplicateOperationError as exc:
            logger.warning("idempotency.duplicate", error=exc.message)
            return _error(409, exc.code, exc.message)
        except InfrastructureError as exc:
            # Details stay in the log; callers get an opaque internal error.
            logger.error("infrastructure.error", code=exc.code, error=exc.message)
            return _error(500, "INTERNAL_ERROR", "An internal error occurred")
        except SettlementError as exc:
            logger.error("domain.error", error=exc.message, code=exc.code)
            return _error(400, exc.code, exc.message)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return _error(500, "INTERNAL_ERROR", "An unexpected error occurred")


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI, allowed_origins: list[str] | None = None) -> None:
    """Register all middleware on the FastAPI application.

    Order matters — middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    # CORS (runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling (runs second)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID (runs last = outermost)
    app.add_middleware(RequestIDMiddleware)
