"""Notarization Service Protocol.

Defines the interface that every notary client must implement.
This is a Protocol (structural subtyping) so concrete clients don't need
to inherit from a base class — they just need to match the shape.

The domain layer has ZERO imports from httpx or any external service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from escrow_settlement.domain.models import NotarizationMemo, NotarizationReceipt


@runtime_checkable
class NotarizationService(Protocol):
    """Protocol that all notary implementations must satisfy.

    Concrete implementations:
        - notary/http_client.py  (HttpNotaryClient, remote ledger over HTTP)
        - notary/simulated.py    (SimulatedNotaryClient, UnconfiguredNotaryClient)
    """

    async def submit(self, memo: NotarizationMemo) -> NotarizationReceipt:
        """Anchor a settlement memo on the external ledger.

        Raises:
            NotarizationError: If the service rejects or cannot take the memo.
        """
        ...

    async def aclose(self) -> None:
        """Release any network resources held by the client."""
        ...
