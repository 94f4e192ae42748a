from live_trains.app import mcp
from live_trains.models.responses import (
    GetLiveTrainsResponse,
    GetTrainDetailsResponse,
    GetTrainSpeedResponse,
    GetTrainTrackResponse,
    SetGpsFilterResponse,
)
from live_trains.services import feed_service


@mcp.tool()
async def get_live_trains(
    carrier: str | None = None,
    train_type: str | None = None,
    gps_only: bool = False,
    limit: int = 100,
) -> GetLiveTrainsResponse:
    """Get current positions of passenger trains in Poland.

    Positions come from the live map feed, one entry per train number. Each
    train carries its smoothed speed (km/h) and speed category (Slow,
    Moderate, Fast, High-Speed or Unknown).

    The feed connects on first use, so the first call may return no trains;
    feed_available tells whether a batch has arrived yet.

    Args:
        carrier: Optional carrier code to filter by (e.g., "IC", "KM").
        train_type: Optional train type code to filter by (e.g., "EIC").
        gps_only: If True, return only GPS-tracked trains.
        limit: Maximum number of trains to return (1-1000, default: 100).

    Returns:
        GetLiveTrainsResponse with train positions and feed status.
    """
    # Validate and clamp limit to 1-1000
    limit = max(1, min(1000, limit))

    return await feed_service.get_live_trains(
        carrier=carrier,
        train_type=train_type,
        gps_only=gps_only,
        limit=limit,
    )


@mcp.tool()
async def get_train_speed(number: str) -> GetTrainSpeedResponse:
    """Get the current speed estimate for a train.

    The estimate is weighted toward the most recent GPS fixes over the last
    ten minutes. Implausible jumps (over 300 km/h) are ignored.

    Args:
        number: Train number as shown on the map (e.g., "5311").

    Returns:
        GetTrainSpeedResponse with speed, category and number of fixes.
    """
    return await feed_service.get_train_speed(number)


@mcp.tool()
async def set_gps_filter(enabled: bool) -> SetGpsFilterResponse:
    """Choose which entry to keep when a train is reported twice.

    Trains can appear both with a live GPS position and with a schedule-based
    position. When enabled, the GPS entry is kept; otherwise the
    schedule-based one is.

    Args:
        enabled: True to prefer GPS-tracked positions.

    Returns:
        SetGpsFilterResponse with the new setting.
    """
    return await feed_service.set_gps_filter(enabled)


@mcp.tool()
async def get_train_details(number: str) -> GetTrainDetailsResponse:
    """Get route, carrier, timing and station list for a train.

    The train must have been seen on the live feed. When found is False the
    train is unknown or the portal could not be reached.

    Args:
        number: Train number as shown on the map (e.g., "5311").

    Returns:
        GetTrainDetailsResponse with details and stations.
    """
    return await feed_service.get_train_details(number)


@mcp.tool()
async def get_train_track(number: str) -> GetTrainTrackResponse:
    """Get the track geometry of a train's route with per-point delays.

    Args:
        number: Train number as shown on the map (e.g., "5311").

    Returns:
        GetTrainTrackResponse with coordinates, stations and end points.
    """
    return await feed_service.get_train_track(number)
