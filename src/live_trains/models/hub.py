"""Pydantic models for the realtime hub session negotiation."""

from pydantic import BaseModel, ConfigDict, Field


class FirstNegotiateResponse(BaseModel):
    """Response of the portal hub negotiate call (redirect to the stream service)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    url: str


class SecondNegotiateResponse(BaseModel):
    """Response of the stream service negotiate call."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    connection_id: str = Field(default="", alias="connectionId")
    connection_token: str = Field(alias="connectionToken")


class StreamSession(BaseModel):
    """Credentials for one websocket connection to the stream service."""

    access_token: str
    url: str
    connection_token: str

    @property
    def websocket_url(self) -> str:
        """Stream URL with the connection token and access token appended."""
        return (
            self.url.replace("https://", "wss://")
            + f"&id={self.connection_token}"
            + f"&access_token={self.access_token}"
        )
