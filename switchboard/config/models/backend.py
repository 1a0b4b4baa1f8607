"""Backend API configuration models."""

from pydantic import BaseModel, Field


class BackendConfig(BaseModel):
    """Connection settings for the backend that owns bots and conversation logs."""

    base_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the backend API",
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Request timeout for lookup and storage calls",
    )
