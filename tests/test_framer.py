"""Tests for the record-separator framer."""

import pytest

from live_trains.feed.framer import RECORD_SEPARATOR, MessageFramer, encode_frame

RS = bytes([RECORD_SEPARATOR])


@pytest.fixture
def framer() -> MessageFramer:
    return MessageFramer()


def test_encode_frame_appends_separator():
    assert encode_frame('{"protocol":"json","version":1}') == b'{"protocol":"json","version":1}\x1e'


def test_single_terminated_frame(framer):
    assert framer.feed(b'{"a":1}' + RS, end_of_message=True) == [b'{"a":1}']


def test_k_separators_yield_k_frames(framer):
    data = RS.join([b"one", b"two", b"three"]) + RS
    assert framer.feed(data, end_of_message=True) == [b"one", b"two", b"three"]


def test_trailing_bytes_yield_extra_frame(framer):
    data = b"one" + RS + b"two" + RS + b"tail"
    assert framer.feed(data, end_of_message=True) == [b"one", b"two", b"tail"]


def test_empty_spans_are_skipped(framer):
    data = RS + b"one" + RS + RS + b"two" + RS + RS
    assert framer.feed(data, end_of_message=True) == [b"one", b"two"]


def test_frame_split_across_receives(framer):
    assert framer.feed(b'{"target":"Tra', end_of_message=False) == []
    assert framer.buffered == len(b'{"target":"Tra')
    assert framer.feed(b'inStatus"}' + RS, end_of_message=True) == [b'{"target":"TrainStatus"}']
    assert framer.buffered == 0


def test_separator_in_later_chunk(framer):
    framer.feed(b"first" + RS + b"sec", end_of_message=False)
    assert framer.feed(b"ond" + RS, end_of_message=True) == [b"first", b"second"]


def test_buffer_cleared_after_each_message(framer):
    framer.feed(b"one" + RS, end_of_message=True)
    assert framer.feed(b"two" + RS, end_of_message=True) == [b"two"]


def test_reset_discards_partial_data(framer):
    framer.feed(b"corrupt partial", end_of_message=False)
    framer.reset()
    assert framer.feed(b"fresh" + RS, end_of_message=True) == [b"fresh"]


def test_empty_message_yields_nothing(framer):
    assert framer.feed(b"", end_of_message=True) == []


def test_multibyte_utf8_is_kept_intact(framer):
    text = '{"n":"Kraków Główny"}'.encode("utf-8")
    assert framer.feed(text[:15], end_of_message=False) == []
    assert framer.feed(text[15:] + RS, end_of_message=True) == [text]
