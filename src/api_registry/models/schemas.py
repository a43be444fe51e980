"""Pydantic models for MCP tool arguments."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class ServiceSpecRequest(BaseModel):
    """Arguments of ``get_service_spec``."""

    service: str = Field(description="Service name (e.g. 'campaign-service')")

    model_config = {"extra": "forbid"}


class SearchEndpointsRequest(BaseModel):
    """Arguments of ``search_endpoints``."""

    query: str = Field(description="Keyword to search for")

    model_config = {"extra": "forbid"}


class CallApiRequest(BaseModel):
    """Arguments of ``call_api``."""

    service: str = Field(description="Service name")
    method: HttpMethod = Field(description="HTTP method")
    path: str = Field(description="Endpoint path (e.g. '/v1/campaigns')")
    body: Optional[Dict[str, Any]] = Field(
        default=None, description="Request body (for POST/PUT/PATCH)"
    )
    headers: Optional[Dict[str, str]] = Field(
        default=None, description="Additional headers to send"
    )

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    model_config = {"extra": "forbid"}
