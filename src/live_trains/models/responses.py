from pydantic import BaseModel, Field

from live_trains.models.trains import SpeedCategory, TrainDetails, TrainPosition, TrainTrackInfo


class GetLiveTrainsResponse(BaseModel):
    trains: list[TrainPosition]
    count: int = Field(description="Number of trains returned")
    total_trains: int = Field(description="Trains in the latest batch after deduplication")
    gps_filter_enabled: bool = Field(
        description="True if GPS-tracked entries are preferred over schedule-based ones"
    )
    feed_state: str = Field(description="idle, negotiating, connected, streaming or closed")
    feed_available: bool = Field(description="False until the first batch has been received")


class GetTrainSpeedResponse(BaseModel):
    number: str
    train_id: int | None = Field(default=None, description="Internal id, if seen on the feed")
    speed_kmh: float = Field(description="Smoothed speed estimate in km/h")
    speed_category: SpeedCategory
    fix_count: int = Field(description="Recent GPS fixes the estimate is based on")


class SetGpsFilterResponse(BaseModel):
    gps_filter_enabled: bool
    count: int = Field(description="Trains in the republished batch")


class GetTrainDetailsResponse(BaseModel):
    details: TrainDetails
    found: bool = Field(description="False if the train is unknown or the lookup failed")


class GetTrainTrackResponse(BaseModel):
    number: str
    track: TrainTrackInfo
    found: bool = Field(description="False if the train is unknown or the lookup failed")
