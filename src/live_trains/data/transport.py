"""Duplex websocket connection to the stream service."""

import logging
from dataclasses import dataclass
from typing import Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from live_trains.data.config import LiveTrainsConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReceiveResult:
    """Outcome of one receive operation."""

    data: bytes
    end_of_message: bool = True
    closed: bool = False


class DuplexConnection(Protocol):
    """Byte-oriented full-duplex channel used by the feed."""

    async def send(self, data: bytes) -> None: ...

    async def receive(self) -> ReceiveResult: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """DuplexConnection backed by a websockets client connection.

    The websockets library reassembles fragmented frames, so every
    successful receive completes a logical message.
    """

    def __init__(self, websocket: ClientConnection):
        self._websocket = websocket

    async def send(self, data: bytes) -> None:
        """Send one outbound frame as a websocket text message."""
        await self._websocket.send(data.decode("utf-8"))

    async def receive(self) -> ReceiveResult:
        """Receive the next message; reports closed instead of raising."""
        try:
            message = await self._websocket.recv(decode=False)
        except ConnectionClosed as e:
            logger.info(f"Websocket closed: {e}")
            return ReceiveResult(data=b"", closed=True)
        return ReceiveResult(data=message)

    async def close(self) -> None:
        await self._websocket.close()


async def open_websocket_connection(url: str, config: LiveTrainsConfig) -> WebSocketConnection:
    """Open a websocket to the stream service.

    Args:
        url: Stream URL including connection and access tokens.
        config: Configuration with origin, user agent and limits.

    Returns:
        Connected WebSocketConnection.
    """
    websocket = await connect(
        url,
        origin=config.portal_origin,
        user_agent_header=config.user_agent,
        open_timeout=config.http_timeout_seconds,
        max_size=config.max_message_bytes,
    )
    logger.info("Connected to stream websocket")
    return WebSocketConnection(websocket)
