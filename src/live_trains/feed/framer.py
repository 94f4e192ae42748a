"""Splits the hub byte stream into record-separated frames."""

import logging

logger = logging.getLogger(__name__)

# Record separator terminating every hub protocol frame
RECORD_SEPARATOR = 0x1E


def encode_frame(message: str) -> bytes:
    """Encode an outbound control message as UTF-8 followed by the separator."""
    return message.encode("utf-8") + bytes([RECORD_SEPARATOR])


class MessageFramer:
    """Accumulates received chunks and yields complete frames.

    Chunks are buffered until a receive event marks the end of a logical
    message. The buffer is then split on the record separator. Empty spans are
    skipped and bytes after the last separator are forwarded as a final frame.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        """Number of bytes waiting for an end-of-message marker."""
        return len(self._buffer)

    def feed(self, chunk: bytes, end_of_message: bool) -> list[bytes]:
        """Add a received chunk.

        Args:
            chunk: Raw bytes from one receive operation.
            end_of_message: True if this chunk completes a logical message.

        Returns:
            Frames in order of appearance (separators stripped), or an empty
            list while the message is incomplete.
        """
        self._buffer.extend(chunk)
        if not end_of_message:
            return []

        try:
            return self._split(bytes(self._buffer))
        except Exception as e:
            logger.warning(f"Failed to split {len(self._buffer)} buffered bytes: {e}")
            return []
        finally:
            self._buffer.clear()

    def reset(self) -> None:
        """Discard any partial data, e.g. after a transport fault."""
        self._buffer.clear()

    @staticmethod
    def _split(data: bytes) -> list[bytes]:
        frames: list[bytes] = []
        start = 0
        while True:
            end = data.find(RECORD_SEPARATOR, start)
            if end == -1:
                break
            if end > start:
                frames.append(data[start:end])
            start = end + 1

        if start < len(data):
            frames.append(data[start:])

        logger.debug(f"Split {len(data)} bytes into {len(frames)} frames")
        return frames
