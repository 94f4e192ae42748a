from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LiveTrainsConfig(BaseSettings):
    """Configuration for the live train feed and the track detail API.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIVE_TRAINS_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Portal endpoints
    portal_origin: str = "https://mapa.portalpasazera.pl"
    map_page_url: str = "https://mapa.portalpasazera.pl/"
    negotiate_url: str = "https://mapa.portalpasazera.pl/alltrainshub/negotiate?negotiateVersion=1"
    show_track_url: str = "https://mapa.portalpasazera.pl/pl/Mapa/ShowTrack"
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:140.0) Gecko/20100101 Firefox/140.0",
        alias="LIVE_TRAINS_USER_AGENT",
    )
    antiforgery_cookie: str | None = Field(default=None, alias="LIVE_TRAINS_COOKIE")

    # Timeouts (seconds)
    http_timeout_seconds: float = Field(default=30.0, alias="LIVE_TRAINS_HTTP_TIMEOUT")
    handshake_timeout_seconds: float = Field(default=10.0, alias="LIVE_TRAINS_HANDSHAKE_TIMEOUT")
    receive_timeout_seconds: float = Field(default=60.0, alias="LIVE_TRAINS_RECEIVE_TIMEOUT")
    max_message_bytes: int = 10 * 1024 * 1024

    # Page-scraped PID used by ShowTrack
    pid_cache_ttl_seconds: float = Field(default=3600.0, alias="LIVE_TRAINS_PID_TTL")

    # 0 keeps the immediate reconnect behaviour
    reconnect_delay_seconds: float = Field(default=0.0, alias="LIVE_TRAINS_RECONNECT_DELAY")

    gps_filter_enabled: bool = Field(default=False, alias="LIVE_TRAINS_GPS_FILTER")

    # RegisterParams arguments (region, zoom, bounding box, filters)
    region_code: str = "PL"
    zoom: float = 6.7
    south: float = 48.35
    west: float = 10.5
    north: float = 55.53
    east: float = 28.3
    train_filter_mode: int = 0
    show_all_trains: bool = True
    transport_filter: str = "ATM"
    search_text: str = ""

    def register_arguments(self) -> list:
        """Arguments of the RegisterParams invocation, in wire order."""
        return [
            self.region_code,
            self.zoom,
            self.south,
            self.west,
            self.north,
            self.east,
            self.train_filter_mode,
            self.show_all_trains,
            self.transport_filter,
            self.search_text,
        ]


@lru_cache
def get_live_trains_config() -> LiveTrainsConfig:
    """Get live trains configuration (cached singleton).

    Returns:
        LiveTrainsConfig with values from .env file or environment variables.
    """
    return LiveTrainsConfig()
