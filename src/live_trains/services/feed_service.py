"""Shared live feed and detail lookups for the MCP tools.

The feed is created and started on first use and keeps streaming in the
background for the life of the server. Every query reads its latest state.
"""

import logging

from live_trains.data.config import LiveTrainsConfig, get_live_trains_config
from live_trains.feed.orchestrator import LiveTrainFeed
from live_trains.models.responses import (
    GetLiveTrainsResponse,
    GetTrainDetailsResponse,
    GetTrainSpeedResponse,
    GetTrainTrackResponse,
    SetGpsFilterResponse,
)
from live_trains.services.details_service import TrainDetailsService

logger = logging.getLogger(__name__)

# Module-level state (lazy-initialized)
_feed: LiveTrainFeed | None = None
_details_service: TrainDetailsService | None = None
_config: LiveTrainsConfig | None = None


def _get_config() -> LiveTrainsConfig:
    """Get or create the config singleton."""
    global _config
    if _config is None:
        _config = get_live_trains_config()
    return _config


def get_feed() -> LiveTrainFeed:
    """Get or create the live feed, starting it if it is not running."""
    global _feed
    if _feed is None:
        _feed = LiveTrainFeed(_get_config())
    if not _feed.is_running:
        _feed.start()
    return _feed


def _get_details_service() -> TrainDetailsService:
    """Get or create the details service bound to the live feed."""
    global _details_service
    if _details_service is None:
        feed = get_feed()
        _details_service = TrainDetailsService(_get_config(), feed.train_id_for)
    return _details_service


async def get_live_trains(
    carrier: str | None = None,
    train_type: str | None = None,
    gps_only: bool = False,
    limit: int = 100,
) -> GetLiveTrainsResponse:
    """Get the latest deduplicated train positions.

    Args:
        carrier: Only trains of this carrier code (case-insensitive).
        train_type: Only trains of this type code (case-insensitive).
        gps_only: Only GPS-tracked trains.
        limit: Maximum number of trains to return.

    Returns:
        GetLiveTrainsResponse; empty until the feed delivers its first batch.
    """
    feed = get_feed()
    positions = feed.latest_positions
    total = len(positions)

    if carrier:
        positions = [p for p in positions if p.carrier.lower() == carrier.lower()]
    if train_type:
        positions = [p for p in positions if p.type.lower() == train_type.lower()]
    if gps_only:
        positions = [p for p in positions if p.has_gps]

    positions = positions[:limit]
    return GetLiveTrainsResponse(
        trains=positions,
        count=len(positions),
        total_trains=total,
        gps_filter_enabled=feed.gps_filter_enabled,
        feed_state=feed.state.value,
        feed_available=total > 0,
    )


async def get_train_speed(number: str) -> GetTrainSpeedResponse:
    """Get the smoothed speed estimate for a train."""
    feed = get_feed()
    speed, category = feed.current_speed_for(number)
    return GetTrainSpeedResponse(
        number=number,
        train_id=feed.train_id_for(number),
        speed_kmh=round(speed, 1),
        speed_category=category,
        fix_count=feed.fix_count_for(number),
    )


async def set_gps_filter(enabled: bool) -> SetGpsFilterResponse:
    """Switch duplicate resolution between GPS and schedule-based entries."""
    feed = get_feed()
    feed.set_filter_mode(enabled)
    return SetGpsFilterResponse(
        gps_filter_enabled=feed.gps_filter_enabled,
        count=len(feed.latest_positions),
    )


async def get_train_details(number: str) -> GetTrainDetailsResponse:
    """Look up route, carrier, timing and stations for a train."""
    details = await _get_details_service().get_train_details(number)
    return GetTrainDetailsResponse(details=details, found=bool(details.stations or details.route_name))


async def get_train_track(number: str) -> GetTrainTrackResponse:
    """Look up the track geometry and stations for a train."""
    track = await _get_details_service().get_train_track(number)
    return GetTrainTrackResponse(
        number=number,
        track=track,
        found=bool(track.coordinates or track.stations),
    )


async def reset_service() -> None:
    """Stop the feed and reset all state.

    Useful for testing.
    """
    global _feed, _details_service, _config
    if _feed is not None:
        await _feed.aclose()
    _feed = None
    _details_service = None
    _config = None
    # Clear the lru_cache on get_live_trains_config so it re-reads .env/environment
    # (hasattr check handles case where function is mocked in tests)
    if hasattr(get_live_trains_config, "cache_clear"):
        get_live_trains_config.cache_clear()
