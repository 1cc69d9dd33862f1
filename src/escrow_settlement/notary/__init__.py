"""Notarization service clients and factory.

Three clients:
    - HttpNotaryClient:          Remote append-only ledger over HTTP (httpx)
    - SimulatedNotaryClient:     Local fake anchors for demos and tests
    - UnconfiguredNotaryClient:  Fails every submission with a config error

The NotaryFactory picks the client from Settings.notary_mode.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from escrow_settlement.domain.enums import NotaryMode
from escrow_settlement.domain.notary_protocol import NotarizationService
from escrow_settlement.logging_config import get_logger
from escrow_settlement.notary.http_client import HttpNotaryClient
from escrow_settlement.notary.simulated import (
    SimulatedNotaryClient,
    UnconfiguredNotaryClient,
)

if TYPE_CHECKING:
    from escrow_settlement.config import Settings

logger = get_logger(__name__)


class NotaryFactory:
    """Factory that creates the notary client configured for this deployment.

    Usage:
        notary = NotaryFactory.create(get_settings())
        receipt = await notary.submit(memo)
    """

    @classmethod
    def create(cls, settings: Settings) -> NotarizationService:
        mode = NotaryMode(settings.notary_mode)

        if mode is NotaryMode.SIMULATED:
            return SimulatedNotaryClient()

        if mode is NotaryMode.DISABLED:
            return UnconfiguredNotaryClient("Notarization is disabled in configuration")

        if not settings.notary_url:
            logger.warning("notary.url_missing", mode=mode.value)
            return UnconfiguredNotaryClient("NOTARY_URL is not configured")

        return HttpNotaryClient(
            url=settings.notary_url,
            api_key=settings.notary_api_key,
            timeout=settings.notary_timeout_seconds,
        )


__all__ = [
    "HttpNotaryClient",
    "NotarizationService",
    "NotaryFactory",
    "SimulatedNotaryClient",
    "UnconfiguredNotaryClient",
]
