import argparse
import asyncio
import logging
from datetime import UTC, datetime

from pydantic import BaseModel

from live_trains.app import mcp
from live_trains.data.config import get_live_trains_config
from live_trains.feed.orchestrator import LiveTrainFeed
from live_trains.models.trains import TrainPosition
from live_trains.tools import train_tools  # noqa: F401  (registers tools)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@mcp.tool()
def health() -> HealthResponse:
    """Check if the Live Trains MCP server is running and healthy.

    Returns the server status, version, and current timestamp.
    """
    from live_trains import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


def format_batch(positions: list[TrainPosition], top: int = 5) -> str:
    """Summarize a published batch for the console."""
    gps_count = sum(1 for p in positions if p.has_gps)
    lines = [f"{datetime.now():%H:%M:%S} {len(positions)} trains ({gps_count} with GPS)"]
    moving = sorted(positions, key=lambda p: p.average_speed_kmh, reverse=True)[:top]
    for p in moving:
        lines.append(
            f"  {p.type:>4} {p.number:<8} {p.carrier:<4} "
            f"{p.latitude:.5f},{p.longitude:.5f} "
            f"{p.average_speed_kmh:6.1f} km/h {p.speed_category.value}"
        )
    return "\n".join(lines)


async def run_watch(gps_only: bool, duration: float | None) -> None:
    """Stream the live feed and print every published batch."""
    feed = LiveTrainFeed(get_live_trains_config())
    feed.set_filter_mode(gps_only)
    feed.subscribe(lambda positions: print(format_batch(positions)))
    feed.start()
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        await feed.aclose()
        print(f"\nFeed stopped after {feed.reconnect_count} reconnects.")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="live-trains",
        description="Live Trains MCP Server",
    )
    subparsers = parser.add_subparsers(dest="command")

    # watch command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Stream live train positions to the console",
    )
    watch_parser.add_argument(
        "--gps",
        action="store_true",
        help="Prefer GPS-tracked entries when a train is reported twice",
    )
    watch_parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    watch_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.command == "watch":
        # Configure logging
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        try:
            asyncio.run(run_watch(args.gps, args.duration))
        except KeyboardInterrupt:
            pass
    else:
        # Default: run MCP server
        mcp.run()


if __name__ == "__main__":
    main()
