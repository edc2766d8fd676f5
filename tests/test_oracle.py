"""Tests for the remote oracle client."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from nostr_wot.core.exceptions import OracleError, OracleTimeoutError, ValidationException
from nostr_wot.local import DistanceResult
from nostr_wot.oracle import OracleClient


ME = "a" * 64
T = "b" * 64


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client():
    return OracleClient(my_pubkey=ME, oracle="https://oracle.test/")


@pytest.fixture
def mock_http():
    """Patch aiohttp.ClientSession; returns a configurator for one response."""

    def _configure(status: int = 200, payload=None, text: str = "", error: BaseException | None = None):
        response = MagicMock()
        response.status = status
        response.json = AsyncMock(return_value=payload)
        response.text = AsyncMock(return_value=text)

        get_ctx = MagicMock()
        get_ctx.__aenter__ = AsyncMock(return_value=response)
        get_ctx.__aexit__ = AsyncMock(return_value=False)

        session = MagicMock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        if error is not None:
            session.get = MagicMock(side_effect=error)
        else:
            session.get = MagicMock(return_value=get_ctx)
        return session

    patcher = patch("aiohttp.ClientSession")
    mock_cls = patcher.start()

    def configure(**kwargs):
        session = _configure(**kwargs)
        mock_cls.return_value = session
        return session

    yield configure
    patcher.stop()


# =============================================================================
# HTTP layer
# =============================================================================


class TestRequest:
    @pytest.mark.asyncio
    async def test_builds_url_and_params(self, client, mock_http):
        session = mock_http(payload={"distance": 2})

        assert await client.get_distance(T, max_hops=4) == 2

        args, kwargs = session.get.call_args
        assert args[0] == f"https://oracle.test/api/distance/{ME}/{T}"
        assert kwargs["params"] == {"maxHops": "4"}

    @pytest.mark.asyncio
    async def test_not_found_is_none(self, client, mock_http):
        mock_http(status=404)
        assert await client.get_distance(T) is None
        assert await client.get_details(T) is None

    @pytest.mark.asyncio
    async def test_http_error(self, client, mock_http):
        mock_http(status=500, text="boom")

        with pytest.raises(OracleError) as exc_info:
            await client.get_distance(T)

        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_connection_error(self, client, mock_http):
        mock_http(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(OracleError) as exc_info:
            await client.get_distance(T)

        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_timeout(self, client, mock_http):
        mock_http(error=asyncio.TimeoutError())

        with pytest.raises(OracleTimeoutError):
            await client.get_distance(T)


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    def test_validates_pubkey(self):
        with pytest.raises(ValidationException):
            OracleClient(my_pubkey="bad")

    @pytest.mark.asyncio
    async def test_null_distance(self, client):
        with patch.object(client, "_request", AsyncMock(return_value={"distance": None})):
            assert await client.get_distance(T) is None

    @pytest.mark.asyncio
    async def test_distance_between_validates(self, client):
        with pytest.raises(ValidationException) as exc_info:
            await client.get_distance_between(ME, "bad")
        assert exc_info.value.field == "to"

    @pytest.mark.asyncio
    async def test_details(self, client):
        payload = {"hops": 2, "paths": 3, "bridges": ["x", "y"], "mutual": True}
        with patch.object(client, "_request", AsyncMock(return_value=payload)) as request:
            result = await client.get_details(T.upper())

        assert result == DistanceResult(hops=2, paths=3, bridges=["x", "y"], mutual=True)
        request.assert_awaited_once_with(f"/details/{ME}/{T}", {"maxHops": "3"})

    @pytest.mark.asyncio
    async def test_zero_max_hops_is_sent(self, client):
        with patch.object(client, "_request", AsyncMock(return_value={"distance": None, "hops": None})) as request:
            await client.get_distance(T, max_hops=0)
            await client.get_details(T, max_hops=0)

        assert [c.args[1] for c in request.await_args_list] == [{"maxHops": "0"}, {"maxHops": "0"}]

    @pytest.mark.asyncio
    async def test_trust_score(self, client):
        payload = {"hops": 1, "paths": 1, "bridges": [], "mutual": False}
        with patch.object(client, "_request", AsyncMock(return_value=payload)):
            assert await client.get_trust_score(T) == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_trust_score_not_connected(self, client):
        with patch.object(client, "_request", AsyncMock(return_value={"hops": None})):
            assert await client.get_trust_score(T) == 0.0


class TestBatchCheck:
    @pytest.mark.asyncio
    async def test_chunks_requests(self, client):
        targets = [f"{i:064x}" for i in range(1, 61)]

        async def fake_request(endpoint, params):
            requested = params["targets"].split(",")
            return {"results": [{"pubkey": pk, "distance": 1, "paths": 1, "mutual": False} for pk in requested]}

        with patch.object(client, "_request", side_effect=fake_request) as request:
            results = await client.batch_check(targets)

        assert request.await_count == 2
        assert len(request.await_args_list[0][0][1]["targets"].split(",")) == 50
        assert len(results) == 60
        assert all(r.in_wot and r.score == pytest.approx(0.5) for r in results.values())

    @pytest.mark.asyncio
    async def test_missing_entries_filled(self, client):
        with patch.object(client, "_request", AsyncMock(return_value={"results": []})):
            results = await client.batch_check([T])

        assert results[T].distance is None
        assert results[T].in_wot is False

    @pytest.mark.asyncio
    async def test_zero_max_hops_is_sent(self, client):
        with patch.object(client, "_request", AsyncMock(return_value={"results": []})) as request:
            await client.batch_check([T], max_hops=0)

        assert request.await_args.args[1]["maxHops"] == "0"

    @pytest.mark.asyncio
    async def test_connection_failure_absorbed(self, client):
        with patch.object(client, "_request", AsyncMock(side_effect=OracleError("down"))):
            results = await client.batch_check([T])

        assert results[T].score == 0.0

    @pytest.mark.asyncio
    async def test_http_failure_propagates(self, client):
        with patch.object(client, "_request", AsyncMock(side_effect=OracleError("bad", status=500))):
            with pytest.raises(OracleError):
                await client.batch_check([T])

    @pytest.mark.asyncio
    async def test_empty_targets(self, client):
        with pytest.raises(ValidationException):
            await client.batch_check([])
