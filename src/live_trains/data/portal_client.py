import logging
import re
from typing import Any

import httpx

from live_trains.data.config import LiveTrainsConfig
from live_trains.data.negotiate_client import portal_headers

logger = logging.getLogger(__name__)

# The map page embeds the session token as: var PID = '...';
PID_PATTERN = re.compile(r"var PID = '([^']*)'")


def extract_pid(page: str) -> str | None:
    """Extract the PID token from the map page HTML."""
    match = PID_PATTERN.search(page)
    if match is None:
        return None
    pid = match.group(1).replace("\n", "").replace("\r", "")
    return pid or None


class PortalClient:
    """Async HTTP client for the map page and the ShowTrack API.

    Usage:
        async with PortalClient(config) as client:
            pid = await client.fetch_page_pid()
            document = await client.fetch_show_track(train_id, pid)
    """

    def __init__(self, config: LiveTrainsConfig):
        """Initialize the client.

        Args:
            config: Configuration with portal URLs and timeouts.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PortalClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(
            headers=portal_headers(self._config),
            timeout=self._config.http_timeout_seconds,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_page_pid(self) -> str | None:
        """Fetch the map page and extract its PID token.

        Returns:
            The PID, or None if the page does not contain one.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        response = await self._client.get(self._config.map_page_url)
        response.raise_for_status()

        pid = extract_pid(response.text)
        if pid is None:
            logger.warning("Could not find PID in the map page")
        return pid

    async def fetch_show_track(self, train_id: int, pid: str) -> dict[str, Any]:
        """Fetch route, stations and track geometry for one train.

        Args:
            train_id: Internal train id from the live feed.
            pid: Page token from fetch_page_pid.

        Returns:
            Raw ShowTrack JSON document.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If the HTTP request fails.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        response = await self._client.post(
            self._config.show_track_url,
            json={"AM": 0, "IS": train_id, "PID": pid},
        )
        response.raise_for_status()
        return response.json()
