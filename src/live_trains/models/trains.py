"""Models for live train positions and track details.

Positions come from the realtime hub feed; stations, track points and train
details come from the ShowTrack API. Only the fields we use are modelled.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class SpeedCategory(str, Enum):
    """Speed bucket derived from the smoothed speed estimate.

    Thresholds (km/h): <50 slow, <100 moderate, <160 fast, otherwise high-speed.
    """

    SLOW = "Slow"
    MODERATE = "Moderate"
    FAST = "Fast"
    HIGH_SPEED = "High-Speed"
    UNKNOWN = "Unknown"


class TrainPosition(BaseModel):
    """Current known state of one train in the feed."""

    latitude: float
    longitude: float
    number: str
    type: str
    carrier: str = ""
    train_id: int = Field(default=0, description="Internal id used for ShowTrack lookups")
    has_gps: bool = False
    gps_timestamp: str | None = Field(default=None, description="Opaque GPS fix time from upstream")
    average_speed_kmh: float = 0.0
    speed_category: SpeedCategory = SpeedCategory.UNKNOWN
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class PositionFix:
    """One timestamped observation of a train."""

    latitude: float
    longitude: float
    timestamp: datetime
    speed_kmh: float | None = None  # instantaneous speed against the previous fix


@dataclass
class TrainPositionHistory:
    """Recent fixes of one train plus the last computed speed."""

    fixes: list[PositionFix] = field(default_factory=list)
    current_speed_kmh: float = 0.0
    speed_category: SpeedCategory = SpeedCategory.UNKNOWN


class TrainStation(BaseModel):
    """A stop on a train's route as reported by ShowTrack."""

    name: str = ""
    language: str = ""
    scheduled_arrival: str = ""
    actual_arrival: str = ""
    arrival_delay: float = 0
    scheduled_departure: str = ""
    actual_departure: str = ""
    departure_delay: float = 0
    transport_type: str = ""
    platform: str = ""
    latitude: float | None = None
    longitude: float | None = None
    messages: list[str] = []
    notices: list[str] = []
    warnings: list[str] = []
    additional_info: list[str] = []


class TrackCoordinate(BaseModel):
    """One point of a train's route geometry."""

    latitude: float
    longitude: float
    delay: float = Field(default=0, description="Delay in minutes at this point")


class TrainTrackInfo(BaseModel):
    """Route geometry and stations for one train."""

    coordinates: list[TrackCoordinate] = []
    start_station_name: str = ""
    end_station_name: str = ""
    stations: list[TrainStation] = []


class TrainDetails(BaseModel):
    """Descriptive details of one train."""

    number: str
    type: str = ""
    carrier: str = ""
    start_station_name: str = ""
    end_station_name: str = ""
    route_name: str = ""
    route_number: str = ""
    tracking_url: str = ""
    train_id: int = 0
    stations: list[TrainStation] = []
    start_time: str = ""
    end_time: str = ""
    start_delay: float = 0
    end_delay: float = 0
