"""Per-train position history and smoothed speed estimates.

Each train number owns a short, time-bounded list of fixes. Every accepted
fix recomputes a weighted speed over consecutive fix pairs, favouring the
most recent movement. Implausible pairs are dropped rather than clamped, and
an estimate survives until a new valid sample replaces it.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from live_trains.feed.geo import categorize_speed, haversine_distance_km, speed_kmh
from live_trains.models.trains import PositionFix, SpeedCategory, TrainPositionHistory

logger = logging.getLogger(__name__)

MAX_FIXES = 20
MAX_FIX_AGE = timedelta(minutes=10)

# Debounce: a fix closer than this, sooner than that, is not recorded
DEBOUNCE_DISTANCE_M = 10.0
DEBOUNCE_SECONDS = 30.0

MIN_MOVEMENT_M = 1.0
MAX_PLAUSIBLE_KMH = 300.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PositionHistoryTracker:
    """Keeps recent fixes per train number and derives current speed.

    Usage:
        tracker = PositionHistoryTracker()
        tracker.add_fix("101", 52.0, 21.0)
        speed, category = tracker.current_speed("101")
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        """Initialize the tracker.

        Args:
            clock: Returns the current time; fixes older than ten minutes
                relative to it are pruned.
        """
        self._clock = clock
        self._histories: dict[str, TrainPositionHistory] = {}

    def __len__(self) -> int:
        return len(self._histories)

    def add_fix(
        self,
        train_number: str,
        latitude: float,
        longitude: float,
        timestamp: datetime | None = None,
    ) -> bool:
        """Record a fix for a train unless it is debounced.

        Args:
            train_number: Train number the fix belongs to.
            latitude, longitude: Position in degrees.
            timestamp: Time of the fix (default: now).

        Returns:
            True if the fix was appended, False if it was discarded.
        """
        now = self._clock()
        if timestamp is None:
            timestamp = now

        history = self._histories.get(train_number)
        if history is None:
            history = TrainPositionHistory()
            self._histories[train_number] = history

        instant_speed = None
        if history.fixes:
            last = history.fixes[-1]
            elapsed = (timestamp - last.timestamp).total_seconds()
            if elapsed <= 0:
                # fixes must stay strictly ordered by time
                return False
            distance_m = haversine_distance_km(
                last.latitude, last.longitude, latitude, longitude
            ) * 1000
            if distance_m < DEBOUNCE_DISTANCE_M and elapsed < DEBOUNCE_SECONDS:
                return False
            instant_speed = speed_kmh(
                last.latitude, last.longitude, last.timestamp, latitude, longitude, timestamp
            )

        history.fixes.append(PositionFix(latitude, longitude, timestamp, instant_speed))
        if len(history.fixes) > MAX_FIXES:
            del history.fixes[:-MAX_FIXES]

        cutoff = now - MAX_FIX_AGE
        history.fixes = [fix for fix in history.fixes if fix.timestamp >= cutoff]

        self._recompute_speed(train_number, history)
        return True

    def current_speed(self, train_number: str) -> tuple[float, SpeedCategory]:
        """Get the last computed speed for a train.

        Returns:
            (speed in km/h, category), or (0.0, UNKNOWN) with fewer than two fixes.
        """
        history = self._histories.get(train_number)
        if history is None or len(history.fixes) < 2:
            return 0.0, SpeedCategory.UNKNOWN
        return history.current_speed_kmh, history.speed_category

    def history_for(self, train_number: str) -> TrainPositionHistory | None:
        """Get the raw history for a train, if it has been seen."""
        return self._histories.get(train_number)

    def _recompute_speed(self, train_number: str, history: TrainPositionHistory) -> None:
        samples: list[float] = []
        fixes = history.fixes
        for previous, current in zip(fixes, fixes[1:]):
            elapsed = (current.timestamp - previous.timestamp).total_seconds()
            if elapsed <= 0:
                continue
            distance_km = haversine_distance_km(
                previous.latitude, previous.longitude, current.latitude, current.longitude
            )
            if distance_km * 1000 < MIN_MOVEMENT_M:
                continue
            sample = distance_km / (elapsed / 3600)
            if sample > MAX_PLAUSIBLE_KMH:
                logger.debug(f"Discarding {sample:.0f} km/h sample for train {train_number}")
                continue
            samples.append(sample)

        if not samples:
            # keep the previous estimate
            return

        weights = [2**index for index in range(len(samples))]
        weighted = sum(sample * weight for sample, weight in zip(samples, weights))
        history.current_speed_kmh = weighted / sum(weights)
        history.speed_category = categorize_speed(history.current_speed_kmh)
