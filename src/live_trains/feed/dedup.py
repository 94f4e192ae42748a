"""Resolves GPS and schedule-based duplicates of the same train."""

import logging

from live_trains.models.trains import TrainPosition

logger = logging.getLogger(__name__)


def filter_by_gps(positions: list[TrainPosition], prefer_gps: bool) -> list[TrainPosition]:
    """Keep one position per train number.

    The feed may report a train twice: once from its live GPS fix and once
    from the schedule. Among duplicates, the entry whose GPS flag matches the
    preference wins; otherwise the first one does.

    Args:
        positions: Decoded batch, possibly with repeated train numbers.
        prefer_gps: True to prefer GPS-tracked entries, False to prefer
            schedule-based ones.

    Returns:
        One position per number, in order of each number's first appearance.
    """
    groups: dict[str, list[TrainPosition]] = {}
    for position in positions:
        groups.setdefault(position.number, []).append(position)

    result: list[TrainPosition] = []
    for trains in groups.values():
        if len(trains) == 1:
            result.append(trains[0])
            continue
        preferred = next((t for t in trains if t.has_gps == prefer_gps), trains[0])
        result.append(preferred)

    logger.debug(
        f"GPS filter {'ON' if prefer_gps else 'OFF'}: {len(positions)} total -> "
        f"{len(result)} filtered (GPS: {sum(1 for t in result if t.has_gps)})"
    )
    return result
