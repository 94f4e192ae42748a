"""Recovers JSON payloads from hub frames.

A frame normally holds exactly one JSON document, but the upstream transport
can glue several documents together or cut one short. Payloads are recovered
in three stages, first success wins:

1. Parse the whole frame as one document.
2. Scan braces (aware of strings and escapes) to split concatenated objects,
   and isolate the object around the TrainStatus marker.
3. Drop anything after the last closing brace and parse again.

Nothing here raises: a frame that yields no payload is logged and dropped.
"""

import json
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from live_trains.feed.decoder import REQUIRED_RECORD_KEYS

logger = logging.getLogger(__name__)

TRAIN_STATUS_TARGET = "TrainStatus"

_MARKER_RE = re.compile(r'"target"\s*:\s*"TrainStatus"')
_PING_RE = re.compile(r'\{\s*"type"\s*:\s*6\s*\}')
# Completion of our RegisterParams invocation
_REGISTER_ACK = '"invocationId":"0","result":null'


@dataclass
class ParsedFrame:
    """Payloads recovered from one frame."""

    batches: list[dict[str, Any]] = field(default_factory=list)
    single_updates: list[dict[str, Any]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.batches or self.single_updates)


def is_control_frame(text: str) -> bool:
    """Check whether a frame carries no train data (handshake ack, ping, ack)."""
    if not text.replace("{", "").replace("}", "").strip():
        return True
    if _REGISTER_ACK in text and not _MARKER_RE.search(text):
        return True
    return _PING_RE.fullmatch(text.strip()) is not None


def is_train_status(document: Any) -> bool:
    """Check whether a parsed document is a TrainStatus batch."""
    return isinstance(document, dict) and document.get("target") == TRAIN_STATUS_TARGET


def is_single_train_record(document: Any) -> bool:
    """Check whether a parsed document looks like one train record."""
    return (
        isinstance(document, dict)
        and not is_train_status(document)
        and all(key in document for key in REQUIRED_RECORD_KEYS)
    )


def _iter_object_spans(text: str, start: int = 0) -> Iterator[tuple[int, int]]:
    """Yield (start, end) of every top-level {...} object from `start` on.

    Braces inside quoted strings are ignored, as are escaped quotes.
    A closing brace without a matching opening one is skipped.
    """
    depth = 0
    object_start = start
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                object_start = index
            depth += 1
        elif char == "}":
            if depth == 0:
                continue
            depth -= 1
            if depth == 0:
                yield object_start, index + 1


def split_concatenated_json(text: str) -> list[str]:
    """Split glued JSON objects into separate strings.

    Args:
        text: Frame text possibly holding several top-level objects.

    Returns:
        Each complete top-level object in order. If none is complete but the
        text starts with an opening brace, the whole text is returned.
    """
    objects = [text[start:end] for start, end in _iter_object_spans(text)]
    if not objects and text.strip().startswith("{"):
        objects.append(text)
    return objects


def _enclosing_object_span(text: str, position: int) -> tuple[int, int | None] | None:
    """Find the innermost object enclosing `position`.

    Each opening brace before `position` is tried with the same
    string-aware scan as splitting, nearest first, so braces inside
    quoted values do not upset the nesting. The end is None when the
    enclosing object never closes.
    """
    unclosed_start: int | None = None
    for index in range(position - 1, -1, -1):
        if text[index] != "{":
            continue
        span = next(_iter_object_spans(text, index), None)
        if span is None:
            if unclosed_start is None:
                unclosed_start = index
            continue
        if span[0] == index and span[1] > position:
            return span
    if unclosed_start is not None:
        return unclosed_start, None
    return None


def extract_marked_objects(text: str) -> list[str]:
    """Isolate every object carrying the TrainStatus marker.

    Works even when the marked object is surrounded by sibling objects or
    partial data. An object that never closes runs to the end of the text.
    """
    candidates: list[str] = []
    for match in _MARKER_RE.finditer(text):
        span = _enclosing_object_span(text, match.start())
        if span is None:
            continue
        start, end = span
        candidate = text[start:end]
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


def _loads_lenient(text: str) -> Any | None:
    """Parse JSON, retrying once with trailing garbage removed."""
    try:
        return json.loads(text)
    except ValueError:
        pass

    last_brace = text.rfind("}")
    if last_brace == -1 or last_brace == len(text) - 1:
        return None
    try:
        return json.loads(text[: last_brace + 1])
    except ValueError as e:
        logger.debug(f"Could not parse after trimming trailing data: {e}")
        return None


def _collect(document: Any, result: ParsedFrame) -> None:
    if is_train_status(document):
        result.batches.append(document)
    elif is_single_train_record(document):
        result.single_updates.append(document)


def parse_frame(text: str) -> ParsedFrame:
    """Recover train payloads from one frame.

    Args:
        text: Decoded frame text (record separator already stripped).

    Returns:
        ParsedFrame with TrainStatus batches and single-train records. Empty
        for control frames and unrecoverable data.
    """
    result = ParsedFrame()
    try:
        if not text or is_control_frame(text):
            return result

        try:
            document = json.loads(text)
        except ValueError:
            document = None

        if document is not None:
            _collect(document, result)
            return result

        for piece in split_concatenated_json(text):
            parsed = _loads_lenient(piece)
            if parsed is not None:
                _collect(parsed, result)

        if not result.batches and _MARKER_RE.search(text):
            for candidate in extract_marked_objects(text):
                parsed = _loads_lenient(candidate)
                if is_train_status(parsed):
                    result.batches.append(parsed)

        if not result:
            parsed = _loads_lenient(text)
            if parsed is not None:
                _collect(parsed, result)

        if not result:
            logger.debug(f"No payload recovered from frame: {text[:200]}")
    except Exception as e:
        logger.warning(f"Error recovering frame payload: {e}")
        return ParsedFrame()

    return result
