"""Offline notary clients.

SimulatedNotaryClient fabricates anchors locally so demos and tests get a
realistic-looking audit trail without a network. UnconfiguredNotaryClient
is used when HTTP mode is selected without a URL: every submission fails, so
events are annotated with the misconfiguration instead of silently skipped.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from typing import TYPE_CHECKING

from escrow_settlement.domain.exceptions import NotarizationError
from escrow_settlement.domain.models import NotarizationReceipt
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from escrow_settlement.domain.models import NotarizationMemo

logger = get_logger(__name__)


class SimulatedNotaryClient:
    """Deterministic anchor (sha256 of the memo) plus a random reference."""

    async def submit(self, memo: NotarizationMemo) -> NotarizationReceipt:
        canonical = json.dumps(memo.to_dict(), sort_keys=True, separators=(",", ":"))
        anchor = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        external_ref = "sim_" + uuid.uuid4().hex
        logger.info(
            "notary.simulated.anchored",
            action=memo.action.value,
            external_ref=external_ref,
            simulated=True,
        )
        return NotarizationReceipt(external_ref=external_ref, ledger_anchor=anchor)

    async def aclose(self) -> None:
        return None


class UnconfiguredNotaryClient:
    """Always fails with the configuration problem it was built with."""

    def __init__(self, reason: str = "Notary is not configured") -> None:
        self._reason = reason

    async def submit(self, memo: NotarizationMemo) -> NotarizationReceipt:
        raise NotarizationError(self._reason)

    async def aclose(self) -> None:
        return None
