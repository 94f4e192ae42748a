"""Realtime feed ingestion: framing, payload recovery, decoding and speed tracking."""

from live_trains.feed.decoder import TrainIdMapping, TrainPositionDecoder
from live_trains.feed.dedup import filter_by_gps
from live_trains.feed.framer import RECORD_SEPARATOR, MessageFramer, encode_frame
from live_trains.feed.geo import categorize_speed, haversine_distance_km, speed_kmh
from live_trains.feed.history import PositionHistoryTracker
from live_trains.feed.orchestrator import FeedState, LiveTrainFeed
from live_trains.feed.recovery import ParsedFrame, parse_frame, split_concatenated_json

__all__ = [
    # Orchestration
    "LiveTrainFeed",
    "FeedState",
    # Pipeline
    "MessageFramer",
    "RECORD_SEPARATOR",
    "encode_frame",
    "ParsedFrame",
    "parse_frame",
    "split_concatenated_json",
    "TrainPositionDecoder",
    "TrainIdMapping",
    "filter_by_gps",
    # Speed
    "PositionHistoryTracker",
    "haversine_distance_km",
    "speed_kmh",
    "categorize_speed",
]
