"""Session lifecycle for the live train feed.

One background task runs the whole cycle:

    IDLE -> NEGOTIATING -> CONNECTED -> STREAMING -> CLOSED -> NEGOTIATING ...

Every exit from streaming, clean or not, starts a new cycle. A failed
negotiation drops back to IDLE and the next cycle starts right after it.
Frames are framed, parsed, decoded, deduplicated and published one at a time
inside the receive loop, so subscribers must not block.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum

from live_trains.data.config import LiveTrainsConfig
from live_trains.data.negotiate_client import negotiate_session
from live_trains.data.transport import DuplexConnection, open_websocket_connection
from live_trains.feed.decoder import TrainIdMapping, TrainPositionDecoder
from live_trains.feed.dedup import filter_by_gps
from live_trains.feed.framer import MessageFramer, encode_frame
from live_trains.feed.history import PositionHistoryTracker
from live_trains.feed.recovery import parse_frame
from live_trains.models.hub import StreamSession
from live_trains.models.trains import SpeedCategory, TrainPosition

logger = logging.getLogger(__name__)

HANDSHAKE_MESSAGE = '{"protocol":"json","version":1}'
REGISTER_TARGET = "RegisterParams"

Negotiator = Callable[[], Awaitable[StreamSession]]
Connector = Callable[[str], Awaitable[DuplexConnection]]
PositionsSubscriber = Callable[[list[TrainPosition]], None]


class FeedState(str, Enum):
    """Lifecycle state of the feed connection."""

    IDLE = "idle"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    STREAMING = "streaming"
    CLOSED = "closed"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class LiveTrainFeed:
    """Streams live train positions and publishes deduplicated batches.

    Usage:
        feed = LiveTrainFeed(config)
        feed.subscribe(on_positions)
        feed.start()
        ...
        await feed.aclose()
    """

    def __init__(
        self,
        config: LiveTrainsConfig,
        negotiator: Negotiator | None = None,
        connector: Connector | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """Initialize the feed.

        Args:
            config: Feed configuration.
            negotiator: Returns a fresh StreamSession (default: HTTP negotiation).
            connector: Opens a duplex connection to a stream URL
                (default: websocket).
            clock: Time source for fixes and history pruning.
        """
        self._config = config
        self._negotiator = negotiator or (lambda: negotiate_session(config))
        self._connector = connector or (lambda url: open_websocket_connection(url, config))

        self._tracker = PositionHistoryTracker(clock)
        self._id_mapping = TrainIdMapping()
        self._decoder = TrainPositionDecoder(self._tracker, self._id_mapping, clock)
        self._framer = MessageFramer()

        self._gps_filter_enabled = config.gps_filter_enabled
        self._all_positions: list[TrainPosition] = []
        self._filtered_positions: list[TrainPosition] = []
        self._subscribers: list[PositionsSubscriber] = []

        self._state = FeedState.IDLE
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._reconnect_count = 0

    # Lifecycle

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def reconnect_count(self) -> int:
        """Number of times the cycle has restarted."""
        return self._reconnect_count

    def start(self) -> None:
        """Start the background feed task (no-op if already running).

        Must be called from within a running event loop.
        """
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="live-train-feed")
        logger.info("Live train feed started")

    def stop(self) -> None:
        """Ask the feed to stop after the receive in flight returns."""
        self._stop_event.set()

    async def aclose(self, timeout: float = 5.0) -> None:
        """Stop the feed and wait for the background task to finish.

        Args:
            timeout: Seconds to wait before cancelling the task.
        """
        self.stop()
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._task, timeout)
        except TimeoutError:
            logger.info("Feed task did not stop in time, cancelled")
        self._task = None

    # Subscribers and filtering

    def subscribe(self, callback: PositionsSubscriber) -> Callable[[], None]:
        """Register a callback for published batches.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def gps_filter_enabled(self) -> bool:
        return self._gps_filter_enabled

    def set_filter_mode(self, gps_filter_enabled: bool) -> None:
        """Switch duplicate resolution and republish the last batch.

        Args:
            gps_filter_enabled: True to prefer GPS-tracked entries, False to
                prefer schedule-based ones.
        """
        if gps_filter_enabled == self._gps_filter_enabled:
            return
        self._gps_filter_enabled = gps_filter_enabled
        logger.info(f"GPS filter {'enabled' if gps_filter_enabled else 'disabled'}")
        self._publish_filtered()

    @property
    def latest_positions(self) -> list[TrainPosition]:
        """Last published (deduplicated) batch."""
        return list(self._filtered_positions)

    @property
    def all_positions(self) -> list[TrainPosition]:
        """Last decoded batch before deduplication."""
        return list(self._all_positions)

    # Queries

    def train_id_for(self, number: str) -> int | None:
        """Internal train id for a train number, if it has been seen."""
        return self._id_mapping.get(number)

    def current_speed_for(self, number: str) -> tuple[float, SpeedCategory]:
        """Smoothed speed and category for a train number."""
        return self._tracker.current_speed(number)

    def fix_count_for(self, number: str) -> int:
        """Number of fixes currently in a train's history."""
        history = self._tracker.history_for(number)
        return len(history.fixes) if history else 0

    # Frame pipeline

    def process_frame(self, frame: bytes) -> None:
        """Parse, decode and publish one framed message.

        Malformed frames are logged and dropped.
        """
        try:
            parsed = parse_frame(frame.decode("utf-8", errors="replace"))

            for payload in parsed.batches:
                positions = self._decoder.decode_batch(payload)
                if positions:
                    self._all_positions = positions
                    self._publish_filtered()

            for record in parsed.single_updates:
                position = self._decoder.decode_single(record)
                if position is not None:
                    self._apply_single_update(position)
        except Exception as e:
            logger.warning(f"Error processing frame: {e}")

    def _apply_single_update(self, position: TrainPosition) -> None:
        for index, existing in enumerate(self._all_positions):
            if existing.number == position.number and existing.has_gps == position.has_gps:
                self._all_positions[index] = position
                break
        else:
            self._all_positions.append(position)
        self._publish_filtered()

    def _publish_filtered(self) -> None:
        filtered = filter_by_gps(self._all_positions, prefer_gps=self._gps_filter_enabled)
        self._filtered_positions = filtered
        for callback in list(self._subscribers):
            try:
                callback(list(filtered))
            except Exception as e:
                logger.warning(f"Positions subscriber failed: {e}")

    # Connection cycle

    def _set_state(self, state: FeedState) -> None:
        if state != self._state:
            logger.debug(f"Feed state {self._state.value} -> {state.value}")
            self._state = state

    def _register_message(self) -> str:
        return json.dumps(
            {
                "arguments": self._config.register_arguments(),
                "invocationId": "0",
                "target": REGISTER_TARGET,
                "type": 1,
            },
            separators=(",", ":"),
        )

    async def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                await self._run_cycle()
                if self._stop_event.is_set():
                    break
                if self._state != FeedState.IDLE:
                    self._set_state(FeedState.CLOSED)
                self._reconnect_count += 1
                logger.info(f"Restarting feed session (restart #{self._reconnect_count})")
                await self._wait_before_reconnect()
        finally:
            self._framer.reset()
            self._set_state(FeedState.IDLE)
            logger.info("Live train feed stopped")

    async def _wait_before_reconnect(self) -> None:
        delay = self._config.reconnect_delay_seconds
        if delay <= 0:
            # still yield to the loop between cycles
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), delay)
        except TimeoutError:
            pass

    async def _run_cycle(self) -> None:
        self._set_state(FeedState.NEGOTIATING)
        try:
            session = await self._negotiator()
            connection = await self._connector(session.websocket_url)
        except Exception as e:
            logger.warning(f"Could not connect to the feed this cycle: {e}")
            self._set_state(FeedState.IDLE)
            return

        self._set_state(FeedState.CONNECTED)
        try:
            await connection.send(encode_frame(HANDSHAKE_MESSAGE))
            if not await self._receive_message(connection, self._config.handshake_timeout_seconds):
                logger.warning("Feed connection closed during handshake")
                return
            await connection.send(encode_frame(self._register_message()))

            self._set_state(FeedState.STREAMING)
            while not self._stop_event.is_set():
                if not await self._receive_message(connection, self._config.receive_timeout_seconds):
                    logger.info("Feed connection closed by server")
                    return
        except Exception as e:
            logger.warning(f"Feed transport fault: {e!r}")
            self._framer.reset()
        finally:
            try:
                await connection.close()
            except Exception as e:
                logger.debug(f"Error closing feed connection: {e}")

    async def _receive_message(self, connection: DuplexConnection, timeout: float) -> bool:
        """Receive one logical message and process its frames.

        Returns:
            False once the connection reports closed.
        """
        while True:
            result = await asyncio.wait_for(connection.receive(), timeout)
            if result.closed:
                self._framer.reset()
                return False
            for frame in self._framer.feed(result.data, result.end_of_message):
                self.process_frame(frame)
            if result.end_of_message:
                return True
