"""The registry's MCP tools: discovery, search and proxied calls."""

from __future__ import annotations

import json
from typing import Any

from mcp.types import Tool
from pydantic import BaseModel, ValidationError

from ..errors import NotFoundError
from ..models.schemas import CallApiRequest, SearchEndpointsRequest, ServiceSpecRequest
from .aggregator import RegistryAggregator
from .curated_descriptions import TOOL_DESCRIPTIONS, USAGE_HINT
from .dispatcher import Dispatcher

# ─── Tool definitions ────────────────────────────────────────────────

TOOL_DEFINITIONS: list[Tool] = [
    Tool(
        name="list_services",
        description=TOOL_DESCRIPTIONS["list_services"],
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="get_service_spec",
        description=TOOL_DESCRIPTIONS["get_service_spec"],
        inputSchema={
            "type": "object",
            "properties": {
                "service": {
                    "type": "string",
                    "description": "Service name (e.g. 'api-service', 'campaign-service')",
                },
            },
            "required": ["service"],
        },
    ),
    Tool(
        name="get_all_endpoints",
        description=TOOL_DESCRIPTIONS["get_all_endpoints"],
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="search_endpoints",
        description=TOOL_DESCRIPTIONS["search_endpoints"],
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Keyword to search for (e.g. 'campaign', 'email', 'brand')",
                },
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="call_api",
        description=TOOL_DESCRIPTIONS["call_api"],
        inputSchema={
            "type": "object",
            "properties": {
                "service": {
                    "type": "string",
                    "description": "Service name (e.g. 'api-service')",
                },
                "method": {
                    "type": "string",
                    "description": "HTTP method",
                    "enum": ["GET", "POST", "PUT", "PATCH", "DELETE"],
                },
                "path": {
                    "type": "string",
                    "description": "Endpoint path (e.g. '/v1/campaigns')",
                },
                "body": {
                    "type": "object",
                    "description": "Request body (for POST/PUT/PATCH)",
                    "additionalProperties": True,
                },
                "headers": {
                    "type": "object",
                    "description": "Additional headers to send",
                    "additionalProperties": {"type": "string"},
                },
            },
            "required": ["service", "method", "path"],
        },
    ),
]

TOOL_NAMES: set[str] = {t.name for t in TOOL_DEFINITIONS}


class RegistryTools:
    """Handles the registry tools. Every handler returns JSON text."""

    def __init__(self, aggregator: RegistryAggregator, dispatcher: Dispatcher):
        self._aggregator = aggregator
        self._dispatcher = dispatcher

    @staticmethod
    def get_tools() -> list[Tool]:
        return list(TOOL_DEFINITIONS)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> str:
        """Dispatch a tool call. Returns a text string."""
        arguments = arguments or {}
        try:
            if name == "list_services":
                return self._list_services()
            if name == "get_service_spec":
                return await self._get_service_spec(
                    _parse(ServiceSpecRequest, arguments)
                )
            if name == "get_all_endpoints":
                return await self._get_all_endpoints()
            if name == "search_endpoints":
                return await self._search_endpoints(
                    _parse(SearchEndpointsRequest, arguments)
                )
            if name == "call_api":
                return await self._call_api(_parse(CallApiRequest, arguments))
        except ValidationError as e:
            return _dumps(
                {
                    "error": f"Invalid arguments for {name}",
                    "details": [
                        {"loc": list(err["loc"]), "msg": err["msg"]}
                        for err in e.errors()
                    ],
                }
            )
        raise ValueError(f"Unknown tool: {name}")

    # ─── Handlers ──────────────────────────────────────────────────

    def _list_services(self) -> str:
        return _dumps(self._aggregator.list_services(), indent=2)

    async def _get_service_spec(self, request: ServiceSpecRequest) -> str:
        try:
            cached = await self._aggregator.get_spec(request.service)
        except NotFoundError as e:
            return _dumps(e.to_dict())
        if cached.error:
            return _dumps({"error": cached.error})
        return _dumps(cached.document, indent=2)

    async def _get_all_endpoints(self) -> str:
        summaries = await self._aggregator.aggregate_all()
        return _dumps(
            {
                "_usage": USAGE_HINT,
                "services": [s.to_dict() for s in summaries],
            },
            indent=2,
        )

    async def _search_endpoints(self, request: SearchEndpointsRequest) -> str:
        matches = await self._aggregator.search(request.query)
        return _dumps(
            {
                "query": request.query,
                "matchCount": len(matches),
                "matches": [m.to_dict() for m in matches],
            },
            indent=2,
        )

    async def _call_api(self, request: CallApiRequest) -> str:
        result = await self._dispatcher.call_api(
            request.service,
            request.method,
            request.path,
            body=request.body,
            headers=request.headers,
        )
        indent = 2 if "error" not in result else None
        return _dumps(result, indent=indent)


def _parse(model: type[BaseModel], arguments: dict[str, Any]) -> Any:
    return model.model_validate(arguments)


def _dumps(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, default=str)
