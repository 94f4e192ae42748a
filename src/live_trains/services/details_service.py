"""Per-train route, station and track lookups via the ShowTrack API.

The API needs the train's internal id (learned from the live feed) and a PID
token scraped from the map page. The PID is cached for an hour and refreshed
when missing or rejected. All errors are caught and logged - lookups return
empty or partial results on failure.
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from live_trains.data.cache import TokenCache
from live_trains.data.config import LiveTrainsConfig
from live_trains.data.portal_client import PortalClient
from live_trains.models.trains import TrackCoordinate, TrainDetails, TrainStation, TrainTrackInfo

logger = logging.getLogger(__name__)

# Track point arrays under a[0].r.s, in order of preference
TRACK_POINT_KEYS = ("rt", "ct", "rct", "dt")

# Status codes meaning the PID is no longer accepted
PID_REJECTED_STATUS = {401, 403}


def _text(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    return value if isinstance(value, str) else ""


def _number(obj: dict[str, Any], key: str) -> float:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0
    return float(value)


def _text_list(obj: dict[str, Any], key: str) -> list[str]:
    values = obj.get(key)
    if not isinstance(values, list):
        return []
    return [value if isinstance(value, str) else "" for value in values]


def _first_train_entry(document: Any) -> dict[str, Any]:
    """Return a[0] of a ShowTrack document, or an empty dict."""
    if not isinstance(document, dict):
        return {}
    entries = document.get("a")
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return {}
    return entries[0]


def _parse_station(station: dict[str, Any]) -> TrainStation:
    """Parse one entry of a[0].s."""
    latitude = station.get("k")
    longitude = station.get("l")
    return TrainStation(
        name=_text(station, "a"),
        language=_text(station, "b"),
        scheduled_arrival=_text(station, "c"),
        actual_arrival=_text(station, "d"),
        arrival_delay=_number(station, "e"),
        scheduled_departure=_text(station, "f"),
        actual_departure=_text(station, "g"),
        departure_delay=_number(station, "h"),
        transport_type=_text(station, "i"),
        platform=_text(station, "j"),
        latitude=_number(station, "k") if latitude is not None else None,
        longitude=_number(station, "l") if longitude is not None else None,
        messages=_text_list(station, "m"),
        notices=_text_list(station, "n"),
        warnings=_text_list(station, "o"),
        additional_info=_text_list(station, "p"),
    )


def _parse_track_point(point: Any) -> TrackCoordinate | None:
    if not isinstance(point, dict) or "s" not in point or "d" not in point:
        return None
    return TrackCoordinate(
        latitude=_number(point, "s"),
        longitude=_number(point, "d"),
        delay=_number(point, "o"),
    )


def parse_track_info(document: Any) -> TrainTrackInfo:
    """Extract stations and track geometry from a ShowTrack document.

    Start and end station names come from a[0].t, falling back to the first
    and last station in a[0].s. Track points come from the first non-empty
    array among a[0].r.s.{rt, ct, rct, dt}; points may be nested one level.
    """
    track = TrainTrackInfo()
    entry = _first_train_entry(document)

    header = entry.get("t")
    if isinstance(header, dict):
        track.start_station_name = _text(header, "d")
        track.end_station_name = _text(header, "f")

    stations = entry.get("s")
    if isinstance(stations, list):
        track.stations = [_parse_station(s) for s in stations if isinstance(s, dict)]
        logger.debug(f"Extracted {len(track.stations)} stations")
        if track.stations:
            track.start_station_name = track.start_station_name or track.stations[0].name
            track.end_station_name = track.end_station_name or track.stations[-1].name

    route = entry.get("r")
    segments = route.get("s") if isinstance(route, dict) else None
    points: list = []
    if isinstance(segments, dict):
        for key in TRACK_POINT_KEYS:
            candidate = segments.get(key)
            if isinstance(candidate, list) and candidate:
                points = candidate
                break

    for point in points:
        for item in point if isinstance(point, list) else [point]:
            coordinate = _parse_track_point(item)
            if coordinate is not None:
                track.coordinates.append(coordinate)

    if not points:
        logger.debug("No track coordinates found in any of rt, ct, rct, dt")
    return track


def parse_train_details(document: Any, number: str, train_id: int) -> TrainDetails:
    """Build TrainDetails from a ShowTrack document."""
    track = parse_track_info(document)
    details = TrainDetails(
        number=number,
        train_id=train_id,
        start_station_name=track.start_station_name,
        end_station_name=track.end_station_name,
        stations=track.stations,
    )

    if track.stations:
        first = track.stations[0]
        last = track.stations[-1]
        details.start_time = first.scheduled_departure or first.scheduled_arrival
        details.start_delay = first.departure_delay or first.arrival_delay
        details.end_time = last.scheduled_arrival or last.scheduled_departure
        details.end_delay = last.arrival_delay or last.departure_delay

    header = _first_train_entry(document).get("t")
    if isinstance(header, dict):
        details.route_name = _text(header, "a")
        details.route_number = _text(header, "b")
        details.carrier = _text(header, "c")
        details.tracking_url = _text(header, "j")
        details.type = _text(header, "k")

    return details


class TrainDetailsService:
    """Looks up track and detail data for trains seen on the live feed."""

    def __init__(
        self,
        config: LiveTrainsConfig,
        train_id_lookup: Callable[[str], int | None],
        pid_cache: TokenCache[str] | None = None,
    ):
        """Initialize the service.

        Args:
            config: Configuration with portal URLs.
            train_id_lookup: Maps a train number to its internal id.
            pid_cache: Cache for the page PID (default: one-hour TTL from config).
        """
        self._config = config
        self._train_id_lookup = train_id_lookup
        self._pid_cache = pid_cache or TokenCache[str](ttl=config.pid_cache_ttl_seconds)

    async def get_train_track(self, number: str) -> TrainTrackInfo:
        """Get stations and track geometry for a train.

        Returns:
            TrainTrackInfo, empty if the train is unknown or the lookup fails.
        """
        train_id = self._train_id_lookup(number)
        if train_id is None:
            logger.debug(f"Train ID not found for number: {number}")
            return TrainTrackInfo()

        document = await self._fetch_show_track(train_id)
        if document is None:
            return TrainTrackInfo()

        try:
            return parse_track_info(document)
        except Exception as e:
            logger.warning(f"Error extracting track for train {number}: {e}")
            return TrainTrackInfo()

    async def get_train_details(self, number: str) -> TrainDetails:
        """Get route, carrier, timing and stations for a train.

        Returns:
            TrainDetails; only the number (and id, if known) is set when the
            lookup fails.
        """
        train_id = self._train_id_lookup(number)
        if train_id is None:
            logger.debug(f"Train ID not found for number: {number}")
            return TrainDetails(number=number)

        document = await self._fetch_show_track(train_id)
        if document is None:
            return TrainDetails(number=number, train_id=train_id)

        try:
            return parse_train_details(document, number, train_id)
        except Exception as e:
            logger.warning(f"Error extracting details for train {number}: {e}")
            return TrainDetails(number=number, train_id=train_id)

    async def _fetch_show_track(self, train_id: int) -> dict[str, Any] | None:
        """Fetch ShowTrack, refreshing the PID once if it was rejected."""
        try:
            async with PortalClient(self._config) as client:
                pid = await self._resolve_pid(client)
                if pid is None:
                    return None
                try:
                    return await client.fetch_show_track(train_id, pid)
                except httpx.HTTPStatusError as e:
                    if e.response.status_code not in PID_REJECTED_STATUS:
                        raise
                    logger.info("PID rejected by ShowTrack, refreshing")
                    self._pid_cache.invalidate()
                    pid = await self._resolve_pid(client)
                    if pid is None:
                        return None
                    return await client.fetch_show_track(train_id, pid)
        except Exception as e:
            logger.warning(f"Failed to fetch track for train id {train_id}: {e}")
            return None

    async def _resolve_pid(self, client: PortalClient) -> str | None:
        """Get the cached PID or scrape a fresh one."""
        cached = self._pid_cache.get()
        if cached is not None:
            return cached

        # Acquire lock to prevent concurrent page fetches
        async with self._pid_cache.lock:
            cached = self._pid_cache.get()
            if cached is not None:
                return cached

            pid = await client.fetch_page_pid()
            if pid is not None:
                self._pid_cache.set(pid)
                logger.debug("Fetched new map page PID")
            return pid
