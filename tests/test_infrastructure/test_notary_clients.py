"""Unit tests for the notary clients and the NotaryFactory."""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime

import httpx
import pytest

from escrow_settlement.config import Settings
from escrow_settlement.domain.enums import EventAction
from escrow_settlement.domain.exceptions import NotarizationError
from escrow_settlement.domain.models import NotarizationMemo
from escrow_settlement.notary import (
    HttpNotaryClient,
    NotarizationService,
    NotaryFactory,
    SimulatedNotaryClient,
    UnconfiguredNotaryClient,
)

NOTARY_URL = "https://notary.test/memos"


@pytest.fixture
def memo() -> NotarizationMemo:
    return NotarizationMemo(
        escrow_id="ESCROW_SINGLE",
        action=EventAction.FUNDED,
        amount=50_000,
        buyer_id="buyer-1",
        seller_id="seller-1",
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
    )


def _client(handler, api_key: str = "") -> HttpNotaryClient:  # noqa: ANN001
    return HttpNotaryClient(NOTARY_URL, api_key=api_key, transport=httpx.MockTransport(handler))


class TestHttpNotaryClient:
    @pytest.mark.asyncio
    async def test_success(self, memo: NotarizationMemo) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"externalRef": "tx-1", "ledgerAnchor": "anc-1"})

        client = _client(handler, api_key="secret")
        receipt = await client.submit(memo)
        await client.aclose()

        assert receipt.external_ref == "tx-1"
        assert receipt.ledger_anchor == "anc-1"
        assert seen[0].method == "POST"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        assert json.loads(seen[0].content) == memo.to_dict()

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self, memo: NotarizationMemo) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert "Authorization" not in request.headers
            return httpx.Response(200, json={"externalRef": "x", "ledgerAnchor": "y"})

        client = _client(handler)
        await client.submit(memo)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rejection_raises(self, memo: NotarizationMemo) -> None:
        client = _client(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(NotarizationError) as exc_info:
            await client.submit(memo)
        await client.aclose()
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self, memo: NotarizationMemo) -> None:
        client = _client(lambda request: httpx.Response(200, json={"unexpected": True}))
        with pytest.raises(NotarizationError, match="Malformed"):
            await client.submit(memo)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, memo: NotarizationMemo) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        with pytest.raises(NotarizationError, match="unreachable"):
            await client.submit(memo)
        await client.aclose()

    def test_requires_url(self) -> None:
        with pytest.raises(ValueError):
            HttpNotaryClient("")


class TestOfflineClients:
    @pytest.mark.asyncio
    async def test_simulated_anchor_is_memo_digest(self, memo: NotarizationMemo) -> None:
        receipt = await SimulatedNotaryClient().submit(memo)
        canonical = json.dumps(memo.to_dict(), sort_keys=True, separators=(",", ":"))
        assert receipt.ledger_anchor == hashlib.sha256(canonical.encode()).hexdigest()
        assert receipt.external_ref.startswith("sim_")

    @pytest.mark.asyncio
    async def test_unconfigured_always_fails(self, memo: NotarizationMemo) -> None:
        with pytest.raises(NotarizationError, match="not configured"):
            await UnconfiguredNotaryClient().submit(memo)


class TestNotaryFactory:
    def test_simulated(self) -> None:
        notary = NotaryFactory.create(Settings(_env_file=None, notary_mode="simulated"))
        assert isinstance(notary, SimulatedNotaryClient)
        assert isinstance(notary, NotarizationService)

    def test_disabled(self) -> None:
        notary = NotaryFactory.create(Settings(_env_file=None, notary_mode="disabled"))
        assert isinstance(notary, UnconfiguredNotaryClient)

    def test_http_without_url_is_unconfigured(self) -> None:
        notary = NotaryFactory.create(Settings(_env_file=None, notary_mode="http", notary_url=""))
        assert isinstance(notary, UnconfiguredNotaryClient)

    @pytest.mark.asyncio
    async def test_http(self) -> None:
        notary = NotaryFactory.create(
            Settings(_env_file=None, notary_mode="http", notary_url=NOTARY_URL)
        )
        assert isinstance(notary, HttpNotaryClient)
        await notary.aclose()
