"""Backend targets configuration model."""

from pydantic import BaseModel, Field


class BackendsConfig(BaseModel):
    """Configuration for the logical backend targets.

    Attributes:
        api_gateway_url: Base address of the primary backend (``apiGateway``)
        chat_server_url: Base address of the chat backend (``chatServer``)
        timeout: Per-request timeout in seconds
    """

    api_gateway_url: str = "http://localhost:3000"
    chat_server_url: str = "http://localhost:5002"
    timeout: float = Field(30.0, gt=0.0)
