import httpx

from live_trains.data.config import LiveTrainsConfig
from live_trains.models.hub import FirstNegotiateResponse, SecondNegotiateResponse, StreamSession


def portal_headers(config: LiveTrainsConfig) -> dict[str, str]:
    """Browser-like headers the portal expects on every request."""
    headers = {
        "User-Agent": config.user_agent,
        "Accept": "*/*",
        "Origin": config.portal_origin,
        "Referer": config.map_page_url,
    }
    if config.antiforgery_cookie:
        headers["Cookie"] = config.antiforgery_cookie
    return headers


class NegotiateClient:
    """Async HTTP client for the two-step hub session negotiation.

    Usage:
        async with NegotiateClient(config) as client:
            session = await client.negotiate()
    """

    def __init__(self, config: LiveTrainsConfig):
        """Initialize the client.

        Args:
            config: Configuration with portal URLs and timeouts.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NegotiateClient":
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

    async def negotiate(self) -> StreamSession:
        """Negotiate a stream session.

        Returns:
            StreamSession with the stream URL and both tokens.

        Raises:
            RuntimeError: If client not initialized.
            httpx.HTTPError: If either HTTP request fails.
            pydantic.ValidationError: If a response lacks the expected fields.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")

        first = await self._first_negotiate()
        second = await self._second_negotiate(first)

        return StreamSession(
            access_token=first.access_token,
            url=first.url,
            connection_token=second.connection_token,
        )

    async def _first_negotiate(self) -> FirstNegotiateResponse:
        """Ask the portal hub for the stream service URL and access token."""
        response = await self._client.post(
            self._config.negotiate_url,
            content=b"",
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        return FirstNegotiateResponse.model_validate(response.json())

    async def _second_negotiate(self, first: FirstNegotiateResponse) -> SecondNegotiateResponse:
        """Ask the stream service for a connection token."""
        url = first.url.replace("/client/?", "/client/negotiate?")
        response = await self._client.post(
            url,
            content=b"",
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {first.access_token}",
            },
        )
        response.raise_for_status()
        return SecondNegotiateResponse.model_validate(response.json())


async def negotiate_session(config: LiveTrainsConfig) -> StreamSession:
    """Run both negotiation steps with a short-lived client."""
    async with NegotiateClient(config) as client:
        return await client.negotiate()
