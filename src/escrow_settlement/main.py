"""FastAPI application entry point for the Escrow Settlement engine.

Lifecycle:
    1. Startup: Initialize logging, database (with retry), tables, seed rows,
       then build the ledger store, escrow engine, notary client,
       notarization pipeline and settlement facade. Redis is optional.
    2. Running: Serve REST API + MCP tools on a single Uvicorn process.
    3. Shutdown: Drain notarization, close the notary client, the database
       and Redis gracefully.

The MCP server is mounted at /mcp so AI agents can discover tools
alongside the REST API at /api/v1/*.

Run with:
    uv run uvicorn escrow_settlement.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from escrow_settlement.config import get_settings
from escrow_settlement.domain.models import ESCROW_SINGLE_ID
from escrow_settlement.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
        service=settings.app_service_name,
        escrow_id=ESCROW_SINGLE_ID,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
        notary_mode=settings.notary_mode.value,
    )

    # 2. Initialize database and seed the ledger
    from escrow_settlement.infrastructure.database import (
        LedgerStore,
        close_db,
        create_db_engine,
        create_session_factory,
        ensure_seed,
        init_db,
    )

    engine = create_db_engine(settings)
    await init_db(engine, settings)
    session_factory = create_session_factory(engine)
    await ensure_seed(session_factory, settings)

    # 3. Build the settlement core
    from escrow_settlement.mcp_server.tools import bind_facade
    from escrow_settlement.notary import NotaryFactory
    from escrow_settlement.services import (
        EscrowEngine,
        NotarizationPipeline,
        SettlementFacade,
    )

    store = LedgerStore(session_factory, lock_timeout=settings.ledger_lock_timeout_seconds)
    notary = NotaryFactory.create(settings)
    pipeline = NotarizationPipeline(
        store,
        notary,
        timeout=settings.notary_timeout_seconds,
        max_concurrency=settings.notary_max_concurrency,
    )
    facade = SettlementFacade(
        store,
        EscrowEngine(seed=settings.seed_balances),
        pipeline,
        default_event_limit=settings.events_default_limit,
        max_event_limit=settings.events_max_limit,
    )
    app.state.engine = engine
    app.state.facade = facade
    bind_facade(facade)

    # 4. Initialize Redis
    from escrow_settlement.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis(settings.redis_url)
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    bind_facade(None)
    app.state.facade = None
    await pipeline.close(grace_seconds=settings.notary_shutdown_grace_seconds)
    await notary.aclose()
    await close_db(engine)
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Escrow Settlement",
        description=(
            "Two-party escrow settlement with mutual release "
            "and asynchronous notarization."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from escrow_settlement.api.middleware import setup_middleware

    origins = [settings.frontend_origin] if settings.frontend_origin else None
    setup_middleware(app, allowed_origins=origins)

    # --- REST API Routes ---
    from escrow_settlement.api.routes.health import router as health_router
    from escrow_settlement.api.routes.settlement import router as settlement_router

    app.include_router(health_router)
    app.include_router(settlement_router)

    # --- MCP Server (mounted as sub-application) ---
    from escrow_settlement.mcp_server.tools import mcp

    mcp_app = mcp.sse_app()
    app.mount("/mcp", mcp_app)

    return app


# The app instance used by Uvicorn
app = create_app()
