"""Stream configuration with environment variable loading.

Pydantic-based configuration for the completion endpoint connection.
Endpoint location and credentials come from the environment.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()


def _default_function_url() -> str:
    """Resolve the edge function base URL.

    Falls back to the functions path of the Supabase project URL.
    """
    if url := os.getenv("EDGE_FUNCTION_URL"):
        return url
    if project_url := os.getenv("SUPABASE_URL"):
        return f"{project_url.rstrip('/')}/functions/v1"
    return ""


class StreamConfig(BaseModel):
    """Configuration for streaming completion sessions.

    Attributes:
        function_url: Base URL hosting the completion function.
        api_key: Anonymous API key sent as apikey and bearer token.
        endpoint: Path of the completion function.
        timeout: Network timeout in seconds.
    """

    function_url: str = Field(
        default_factory=_default_function_url,
        description="Base URL of the edge functions",
    )
    api_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_ANON_KEY", ""),
        description="API key for the completion endpoint",
    )
    endpoint: str = Field(
        default_factory=lambda: os.getenv("SEARCH_ENDPOINT", "clippy-search"),
        description="Completion function path",
    )
    timeout: float = Field(
        default=120.0,
        gt=0.0,
        le=600.0,
        description="Network timeout in seconds",
    )

    @field_validator("function_url")
    @classmethod
    def validate_function_url(cls, v: str) -> str:
        """Validate that a function URL is configured."""
        if not v or not v.strip():
            raise ValueError(
                "Function URL required. Set EDGE_FUNCTION_URL or SUPABASE_URL in .env"
            )
        return v.strip().rstrip("/")

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError("API key required. Set SUPABASE_ANON_KEY in .env")
        return v.strip()

    @property
    def completion_url(self) -> str:
        return f"{self.function_url}/{self.endpoint.lstrip('/')}"

    def headers(self) -> dict[str, str]:
        """Request headers carrying the credentials."""
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }


def get_stream_config() -> StreamConfig:
    """Create stream configuration from environment.

    Returns:
        Configured StreamConfig instance.

    Raises:
        ValueError: If the function URL or API key is not set.
    """
    return StreamConfig()
