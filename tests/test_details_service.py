"""Tests for ShowTrack parsing and the train details service."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from live_trains.data.cache import TokenCache
from live_trains.data.config import LiveTrainsConfig
from live_trains.services.details_service import (
    TrainDetailsService,
    parse_track_info,
    parse_train_details,
)


def create_show_track_document() -> dict:
    """Create a sample ShowTrack response for testing."""
    return {
        "a": [
            {
                "t": {
                    "a": "Warszawa Centralna - Kraków Główny",
                    "b": "5311",
                    "c": "IC",
                    "d": "Warszawa Centralna",
                    "f": "Kraków Główny",
                    "j": "https://portal.example.com/track/5311",
                    "k": "EIC",
                },
                "s": [
                    {
                        "a": "Warszawa Centralna",
                        "b": "pl",
                        "f": "2026-03-01T12:00:00",
                        "h": 3,
                        "j": "IV",
                        "k": 52.2289,
                        "l": 21.0035,
                        "m": ["Wagon 8 closed"],
                    },
                    {
                        "a": "Kraków Główny",
                        "c": "2026-03-01T14:25:00",
                        "d": "2026-03-01T14:31:00",
                        "e": 6,
                        "n": ["Platform change"],
                    },
                ],
                "r": {
                    "s": {
                        "rt": [],
                        "ct": [
                            {"s": 52.2289, "d": 21.0035, "o": 0},
                            [{"s": 51.5, "d": 20.5, "o": 2}, {"s": 51.0, "d": 20.2, "o": 4}],
                            {"x": "not a point"},
                        ],
                        "dt": [{"s": 1.0, "d": 1.0}],
                    }
                },
            }
        ]
    }


def test_parse_track_info():
    track = parse_track_info(create_show_track_document())

    assert track.start_station_name == "Warszawa Centralna"
    assert track.end_station_name == "Kraków Główny"
    assert [s.name for s in track.stations] == ["Warszawa Centralna", "Kraków Główny"]

    # First non-empty array wins (ct), nested points are flattened
    assert [(c.latitude, c.longitude, c.delay) for c in track.coordinates] == [
        (52.2289, 21.0035, 0),
        (51.5, 20.5, 2),
        (51.0, 20.2, 4),
    ]

    first = track.stations[0]
    assert first.platform == "IV"
    assert first.latitude == 52.2289
    assert first.messages == ["Wagon 8 closed"]
    assert track.stations[1].latitude is None
    assert track.stations[1].notices == ["Platform change"]


def test_parse_track_info_falls_back_to_station_names():
    document = create_show_track_document()
    del document["a"][0]["t"]

    track = parse_track_info(document)
    assert track.start_station_name == "Warszawa Centralna"
    assert track.end_station_name == "Kraków Główny"


def test_parse_track_info_tolerates_unexpected_shapes():
    assert parse_track_info({}).stations == []
    assert parse_track_info({"a": "nope"}).coordinates == []
    assert parse_track_info(None).start_station_name == ""


def test_parse_train_details():
    details = parse_train_details(create_show_track_document(), "5311", 5551)

    assert details.number == "5311"
    assert details.train_id == 5551
    assert details.route_name == "Warszawa Centralna - Kraków Główny"
    assert details.route_number == "5311"
    assert details.carrier == "IC"
    assert details.type == "EIC"
    assert details.tracking_url == "https://portal.example.com/track/5311"

    # Departure preferred at the first station, arrival at the last
    assert details.start_time == "2026-03-01T12:00:00"
    assert details.start_delay == 3
    assert details.end_time == "2026-03-01T14:25:00"
    assert details.end_delay == 6


@pytest.fixture
def config() -> LiveTrainsConfig:
    return LiveTrainsConfig(
        map_page_url="https://portal.example.com/mapa",
        show_track_url="https://portal.example.com/mapa/ShowTrack",
    )


def _page_response(pid: str) -> MagicMock:
    response = MagicMock()
    response.text = f"<script>var PID = '{pid}';</script>"
    return response


def _json_response(data: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = data
    return response


def _status_error_response(status_code: int) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        f"HTTP {status_code}", request=MagicMock(), response=response
    )
    return response


@pytest.mark.asyncio
async def test_unknown_train_returns_empty_without_request(config: LiveTrainsConfig):
    service = TrainDetailsService(config, lambda number: None)

    with patch("httpx.AsyncClient") as mock_client_class:
        details = await service.get_train_details("9999")
        track = await service.get_train_track("9999")

    assert details.number == "9999"
    assert details.stations == []
    assert track.coordinates == []
    mock_client_class.assert_not_called()


@pytest.mark.asyncio
async def test_get_train_details_caches_pid(config: LiveTrainsConfig):
    service = TrainDetailsService(config, {"5311": 5551}.get)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(return_value=_page_response("pid-1"))
        mock_client.post = AsyncMock(return_value=_json_response(create_show_track_document()))
        mock_client_class.return_value = mock_client

        first = await service.get_train_details("5311")
        second = await service.get_train_track("5311")

    assert first.route_name == "Warszawa Centralna - Kraków Główny"
    assert len(second.coordinates) == 3
    # PID scraped once, reused for the second lookup
    assert mock_client.get.await_count == 1
    assert mock_client.post.await_args.kwargs["json"] == {"AM": 0, "IS": 5551, "PID": "pid-1"}


@pytest.mark.asyncio
async def test_rejected_pid_is_refreshed_once(config: LiveTrainsConfig):
    pid_cache: TokenCache[str] = TokenCache(ttl=3600)
    pid_cache.set("stale")
    service = TrainDetailsService(config, {"5311": 5551}.get, pid_cache=pid_cache)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(return_value=_page_response("fresh"))
        mock_client.post = AsyncMock(
            side_effect=[
                _status_error_response(403),
                _json_response(create_show_track_document()),
            ]
        )
        mock_client_class.return_value = mock_client

        track = await service.get_train_track("5311")

    assert track.start_station_name == "Warszawa Centralna"
    assert pid_cache.get() == "fresh"
    pids = [call.kwargs["json"]["PID"] for call in mock_client.post.await_args_list]
    assert pids == ["stale", "fresh"]


@pytest.mark.asyncio
async def test_server_error_returns_partial_details(config: LiveTrainsConfig):
    pid_cache: TokenCache[str] = TokenCache(ttl=3600)
    pid_cache.set("pid-1")
    service = TrainDetailsService(config, {"5311": 5551}.get, pid_cache=pid_cache)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        mock_client.post = AsyncMock(return_value=_status_error_response(500))
        mock_client_class.return_value = mock_client

        details = await service.get_train_details("5311")

    assert details.number == "5311"
    assert details.train_id == 5551
    assert details.stations == []
    # A server error does not invalidate the PID
    assert pid_cache.get() == "pid-1"
    assert mock_client.post.await_count == 1


@pytest.mark.asyncio
async def test_missing_pid_skips_show_track(config: LiveTrainsConfig):
    service = TrainDetailsService(config, {"5311": 5551}.get)

    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client = AsyncMock()
        page = MagicMock()
        page.text = "<html>maintenance</html>"
        mock_client.get = AsyncMock(return_value=page)
        mock_client_class.return_value = mock_client

        track = await service.get_train_track("5311")

    assert track.stations == []
    mock_client.post.assert_not_awaited()
