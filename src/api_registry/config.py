"""Process settings for the API registry."""

from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class RegistrySettings(BaseSettings):
    """Configuration for the registry server.

    The service list, API key, host and port keep their deployment-facing
    names (``SERVICES``, ``API_REGISTRY_SERVICE_API_KEY``, ``HOST``, ``PORT``);
    every other knob is read with the ``REGISTRY_`` prefix.
    """

    services: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("services", "SERVICES"),
        description="Comma-separated name=url pairs",
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("api_key", "API_REGISTRY_SERVICE_API_KEY"),
        description="Shared secret required on inbound requests (unset = open)",
    )
    host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("host", "HOST"),
    )
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("port", "PORT"),
    )
    cache_ttl_seconds: float = Field(
        default=300.0, gt=0, description="Time-to-live of cached specs"
    )
    fetch_timeout: float = Field(
        default=10.0, gt=0, description="Timeout for fetching a service spec"
    )
    call_timeout: float = Field(
        default=30.0, gt=0, description="Timeout for proxied API calls"
    )
    max_concurrent_calls: int = Field(
        default=20, ge=1, description="Upper bound on in-flight proxied calls"
    )
    json_response: bool = Field(
        default=False,
        description="Answer MCP POSTs with plain JSON instead of an SSE stream",
    )
    transport: Literal["http", "stdio"] = Field(default="http")
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    model_config = {
        "env_prefix": "REGISTRY_",
        "case_sensitive": False,
        "populate_by_name": True,
    }
