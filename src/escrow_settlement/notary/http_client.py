"""HttpNotaryClient — anchors settlement memos on a remote append-only ledger.

Wire contract:
    POST {notary_url}
    Authorization: Bearer {notary_api_key}     (when configured)
    {"escrowId": ..., "action": ..., "amount": ..., "buyerId": ...,
     "sellerId": ..., "timestamp": ...}

    200/201 -> {"externalRef": "...", "ledgerAnchor": "..."}

Anything else (non-2xx, malformed JSON, missing fields, transport errors)
raises NotarizationError. There is no retry here: the pipeline records the
failure on the event and moves on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from escrow_settlement.domain.exceptions import NotarizationError
from escrow_settlement.domain.models import NotarizationReceipt
from escrow_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from escrow_settlement.domain.models import NotarizationMemo

logger = get_logger(__name__)


class HttpNotaryClient:
    """Notarization service client over HTTP/JSON."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("HttpNotaryClient requires a notary URL")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._url = url
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def submit(self, memo: NotarizationMemo) -> NotarizationReceipt:
        try:
            response = await self._client.post(self._url, json=memo.to_dict())
        except httpx.HTTPError as exc:
            raise NotarizationError(f"Notary unreachable: {exc!r}") from exc

        if response.status_code >= 400:
            raise NotarizationError(
                f"Notary rejected memo with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
            receipt = NotarizationReceipt(
                external_ref=str(body["externalRef"]),
                ledger_anchor=str(body["ledgerAnchor"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise NotarizationError(
                f"Malformed notary response: {response.text[:200]}",
                status_code=response.status_code,
            ) from exc

        logger.debug(
            "notary.http.anchored",
            action=memo.action.value,
            external_ref=receipt.external_ref,
        )
        return receipt

    async def aclose(self) -> None:
        await self._client.aclose()
