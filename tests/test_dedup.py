"""Tests for GPS duplicate resolution."""

from live_trains.feed.dedup import filter_by_gps
from live_trains.models.trains import TrainPosition


def _train(number: str, has_gps: bool, lat: float = 52.0) -> TrainPosition:
    return TrainPosition(latitude=lat, longitude=21.0, number=number, type="IC", has_gps=has_gps)


def test_prefer_gps_keeps_gps_entry():
    schedule = _train("101", has_gps=False, lat=52.0)
    gps = _train("101", has_gps=True, lat=52.1)
    assert filter_by_gps([schedule, gps], prefer_gps=True) == [gps]


def test_prefer_schedule_keeps_non_gps_entry():
    gps = _train("101", has_gps=True, lat=52.1)
    schedule = _train("101", has_gps=False, lat=52.0)
    assert filter_by_gps([gps, schedule], prefer_gps=False) == [schedule]


def test_single_entry_survives_both_modes():
    gps = _train("101", has_gps=True)
    schedule = _train("202", has_gps=False)
    for prefer_gps in (True, False):
        assert filter_by_gps([gps, schedule], prefer_gps=prefer_gps) == [gps, schedule]


def test_no_preferred_entry_keeps_first():
    first = _train("101", has_gps=False, lat=52.0)
    second = _train("101", has_gps=False, lat=52.5)
    assert filter_by_gps([first, second], prefer_gps=True) == [first]

    first_gps = _train("202", has_gps=True, lat=50.0)
    second_gps = _train("202", has_gps=True, lat=50.5)
    assert filter_by_gps([first_gps, second_gps], prefer_gps=False) == [first_gps]


def test_order_follows_first_occurrence():
    a_gps = _train("A", has_gps=True)
    b = _train("B", has_gps=False)
    a_schedule = _train("A", has_gps=False)
    c = _train("C", has_gps=True)

    result = filter_by_gps([a_gps, b, a_schedule, c], prefer_gps=False)

    assert [t.number for t in result] == ["A", "B", "C"]
    assert result[0] is a_schedule


def test_at_most_one_entry_per_number():
    batch = [_train(str(i % 3), has_gps=i % 2 == 0, lat=50 + i) for i in range(10)]
    for prefer_gps in (True, False):
        numbers = [t.number for t in filter_by_gps(batch, prefer_gps=prefer_gps)]
        assert len(numbers) == len(set(numbers)) == 3


def test_empty_batch():
    assert filter_by_gps([], prefer_gps=True) == []
