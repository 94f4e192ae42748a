"""Decodes compact-keyed hub records into TrainPosition models.

Wire keys of a train record:
  s  latitude            d  longitude
  n  train number        p  train type code
  pr carrier code        t  internal train id (for ShowTrack)
  c  GPS fix timestamp; a non-empty value means the train is GPS-tracked

A TrainStatus batch is a hub invocation whose arguments[1] is the record list.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from live_trains.feed.history import PositionHistoryTracker
from live_trains.models.trains import TrainPosition

logger = logging.getLogger(__name__)

REQUIRED_RECORD_KEYS = ("s", "d", "n", "p")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TrainIdMapping:
    """Train number -> internal train id, filled from decoded records."""

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, number: object) -> bool:
        return number in self._ids

    def update(self, number: str, train_id: int) -> None:
        """Remember the id for a number; ignored unless both are set."""
        if number and train_id > 0:
            self._ids[number] = train_id

    def get(self, number: str) -> int | None:
        return self._ids.get(number)


def _as_coordinate(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TypeError(f"expected a number, got {value!r}")
    return float(value)


def _as_text(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, str | int):
        raise TypeError(f"expected a string, got {value!r}")
    return str(value)


def _gps_tracked_numbers(records: list[Any]) -> frozenset[str]:
    """Train numbers that have at least one GPS-tracked record in the batch."""
    numbers = set()
    for record in records:
        if not isinstance(record, dict):
            continue
        gps_timestamp = record.get("c")
        number = record.get("n")
        if isinstance(gps_timestamp, str) and gps_timestamp and isinstance(number, str | int):
            if not isinstance(number, bool):
                numbers.add(str(number))
    return frozenset(numbers)


class TrainPositionDecoder:
    """Turns hub payloads into TrainPosition models with speed info.

    Every decoded record updates the id mapping. The position history of a
    train is fed from its GPS entry when the batch has one, otherwise from
    its schedule-based entry. Duplicate train numbers within a batch are kept.
    """

    def __init__(
        self,
        tracker: PositionHistoryTracker,
        id_mapping: TrainIdMapping,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._tracker = tracker
        self._id_mapping = id_mapping
        self._clock = clock

    def decode_batch(self, payload: dict[str, Any]) -> list[TrainPosition]:
        """Decode a TrainStatus batch.

        Args:
            payload: Parsed TrainStatus invocation.

        Returns:
            Positions in upstream order. Invalid records are skipped.
        """
        arguments = payload.get("arguments")
        if not isinstance(arguments, list) or len(arguments) <= 1:
            logger.debug("TrainStatus payload without a record list")
            return []

        records = arguments[1]
        if not isinstance(records, list):
            logger.debug(f"TrainStatus records are {type(records).__name__}, not a list")
            return []

        now = self._clock()
        gps_numbers = _gps_tracked_numbers(records)
        positions: list[TrainPosition] = []
        for record in records:
            position = self._decode_record(record, now, gps_numbers)
            if position is not None:
                positions.append(position)

        logger.debug(f"Decoded {len(positions)} of {len(records)} train records")
        return positions

    def decode_single(self, record: dict[str, Any]) -> TrainPosition | None:
        """Decode one pushed train record outside of a batch."""
        return self._decode_record(record, self._clock())

    def _decode_record(
        self, record: Any, now: datetime, gps_numbers: frozenset[str] = frozenset()
    ) -> TrainPosition | None:
        if not isinstance(record, dict):
            return None
        if any(key not in record for key in REQUIRED_RECORD_KEYS):
            return None

        try:
            latitude = _as_coordinate(record["s"])
            longitude = _as_coordinate(record["d"])
            number = _as_text(record["n"])
            train_type = _as_text(record["p"])
            carrier = record.get("pr")
            carrier = carrier if isinstance(carrier, str) else ""
            raw_id = record.get("t")
            train_id = int(raw_id) if raw_id is not None and not isinstance(raw_id, bool) else 0
        except (TypeError, ValueError) as e:
            logger.debug(f"Skipping train record: {e}")
            return None

        gps_timestamp = record.get("c")
        if not isinstance(gps_timestamp, str):
            gps_timestamp = None
        has_gps = bool(gps_timestamp)

        self._id_mapping.update(number, train_id)
        # a schedule-based entry must not feed the history of a GPS-tracked train
        if has_gps or number not in gps_numbers:
            self._tracker.add_fix(number, latitude, longitude, now)
        speed, category = self._tracker.current_speed(number)

        return TrainPosition(
            latitude=latitude,
            longitude=longitude,
            number=number,
            type=train_type,
            carrier=carrier,
            train_id=train_id,
            has_gps=has_gps,
            gps_timestamp=gps_timestamp,
            average_speed_kmh=speed,
            speed_category=category,
            last_updated=now,
        )
