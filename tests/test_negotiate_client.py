"""Tests for the hub session negotiation client."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from live_trains.data.config import LiveTrainsConfig
from live_trains.data.negotiate_client import NegotiateClient, negotiate_session, portal_headers


@pytest.fixture
def config() -> LiveTrainsConfig:
    """Create a test config."""
    return LiveTrainsConfig(
        negotiate_url="https://portal.example.com/signalr/negotiate",
        antiforgery_cookie=None,
    )


def _json_response(data: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = data
    return response


@pytest.mark.asyncio
async def test_negotiate_runs_both_steps(config: LiveTrainsConfig):
    """The second request goes to the negotiate path with the bearer token."""
    first = _json_response(
        {
            "url": "https://stream.example.com/client/?hub=alltrainshub",
            "accessToken": "access-123",
        }
    )
    second = _json_response(
        {"connectionId": "cid", "connectionToken": "conn-456", "negotiateVersion": 1}
    )

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(side_effect=[first, second])
        mock_client_class.return_value = mock_client

        async with NegotiateClient(config) as client:
            session = await client.negotiate()

    assert session.access_token == "access-123"
    assert session.connection_token == "conn-456"
    assert session.websocket_url == (
        "wss://stream.example.com/client/?hub=alltrainshub"
        "&id=conn-456&access_token=access-123"
    )

    first_call, second_call = mock_client.post.call_args_list
    assert first_call.args[0] == "https://portal.example.com/signalr/negotiate"
    assert second_call.args[0] == "https://stream.example.com/client/negotiate?hub=alltrainshub"
    assert second_call.kwargs["headers"]["Authorization"] == "Bearer access-123"


@pytest.mark.asyncio
async def test_negotiate_rejects_incomplete_response(config: LiveTrainsConfig):
    """A first response without a URL should fail validation."""
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(return_value=_json_response({"accessToken": "x"}))
        mock_client_class.return_value = mock_client

        with pytest.raises(ValueError):
            await negotiate_session(config)


@pytest.mark.asyncio
async def test_negotiate_requires_context(config: LiveTrainsConfig):
    """Client should raise if used outside async with."""
    client = NegotiateClient(config)
    with pytest.raises(RuntimeError, match="not initialized"):
        await client.negotiate()


def test_portal_headers_include_cookie_when_configured():
    config = LiveTrainsConfig(antiforgery_cookie=".AspNetCore.Antiforgery=abc")
    headers = portal_headers(config)
    assert headers["Cookie"] == ".AspNetCore.Antiforgery=abc"
    assert headers["Origin"] == config.portal_origin
    assert headers["Referer"] == config.map_page_url


def test_portal_headers_without_cookie(config: LiveTrainsConfig):
    assert "Cookie" not in portal_headers(config)
