"""REST surface of the registry. Each route maps onto one aggregator call."""

from __future__ import annotations

from typing import Any

import structlog
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .discovery.aggregator import RegistryAggregator
from .discovery.curated_descriptions import REGISTRY_DESCRIPTION, USAGE_HINT
from .errors import NotFoundError

logger = structlog.get_logger(__name__)

SERVICE_NAME = "api-registry"


def _aggregator(request: Request) -> RegistryAggregator:
    return request.app.state.aggregator


async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "ok",
            "service": SERVICE_NAME,
            "registeredServices": len(_aggregator(request).directory),
        }
    )


async def own_openapi(request: Request) -> JSONResponse:
    return JSONResponse(REGISTRY_OPENAPI)


async def list_services(request: Request) -> JSONResponse:
    return JSONResponse({"services": _aggregator(request).list_services()})


async def all_specs(request: Request) -> JSONResponse:
    return JSONResponse({"services": await _aggregator(request).fetch_all()})


async def service_spec(request: Request) -> JSONResponse:
    service = request.path_params["service"]
    try:
        cached = await _aggregator(request).get_spec(service)
    except NotFoundError as e:
        return JSONResponse(e.to_dict(), status_code=404)
    if cached.error:
        return JSONResponse(
            {
                "error": f'Failed to fetch spec for "{service}"',
                "detail": cached.error,
            },
            status_code=502,
        )
    return JSONResponse(cached.document)


async def llm_context(request: Request) -> JSONResponse:
    summaries = await _aggregator(request).aggregate_all()
    return JSONResponse(
        {
            "_description": REGISTRY_DESCRIPTION,
            "_usage": USAGE_HINT,
            "services": [s.to_dict() for s in summaries],
        }
    )


async def refresh_service(request: Request) -> JSONResponse:
    service = request.path_params["service"]
    try:
        cached = await _aggregator(request).refresh(service)
    except NotFoundError as e:
        return JSONResponse({"error": e.message}, status_code=404)
    logger.info("Refreshed service", service=service, error=cached.error)
    return JSONResponse({"service": service, "refreshed": True, "error": cached.error})


async def refresh_all(request: Request) -> JSONResponse:
    results = await _aggregator(request).refresh_all()
    logger.info("Refreshed all services", service_count=len(results))
    return JSONResponse({"refreshed": True, "services": results})


routes = [
    Route("/health", health, methods=["GET"]),
    Route("/openapi.json", own_openapi, methods=["GET"]),
    Route("/services", list_services, methods=["GET"]),
    Route("/openapi", all_specs, methods=["GET"]),
    Route("/openapi/{service}", service_spec, methods=["GET"]),
    Route("/llm-context", llm_context, methods=["GET"]),
    Route("/refresh", refresh_all, methods=["POST"]),
    Route("/refresh/{service}", refresh_service, methods=["POST"]),
]


# ------------------------------------------------------------------
# The registry's own spec, served unauthenticated at /openapi.json
# ------------------------------------------------------------------


def _op(summary: str, *, service_param: bool = False) -> dict[str, Any]:
    op: dict[str, Any] = {
        "summary": summary,
        "responses": {"200": {"description": "OK"}},
    }
    if service_param:
        op["parameters"] = [
            {
                "name": "service",
                "in": "path",
                "required": True,
                "schema": {"type": "string"},
            }
        ]
        op["responses"]["404"] = {"description": "Unknown service"}
    return op


REGISTRY_OPENAPI: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {
        "title": "API Registry",
        "version": "0.3.0",
        "description": REGISTRY_DESCRIPTION,
    },
    "components": {
        "securitySchemes": {
            "ApiKeyHeader": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
            "BearerAuth": {"type": "http", "scheme": "bearer"},
        }
    },
    "security": [{"ApiKeyHeader": []}, {"BearerAuth": []}],
    "paths": {
        "/health": {"get": {**_op("Health check"), "security": []}},
        "/services": {"get": _op("List registered services")},
        "/openapi": {"get": _op("Fetch the OpenAPI spec of every service")},
        "/openapi/{service}": {
            "get": {
                **_op("Fetch the OpenAPI spec of one service", service_param=True),
                "responses": {
                    "200": {"description": "OK"},
                    "404": {"description": "Unknown service"},
                    "502": {"description": "Spec could not be fetched"},
                },
            }
        },
        "/llm-context": {
            "get": _op("Compact summary of all services and endpoints for LLMs")
        },
        "/refresh": {"post": _op("Invalidate and refetch every cached spec")},
        "/refresh/{service}": {
            "post": _op("Invalidate and refetch one cached spec", service_param=True)
        },
        "/mcp": {
            "post": _op("MCP Streamable HTTP request"),
            "get": _op("MCP server-push stream for an existing session"),
            "delete": _op("Close an MCP session"),
        },
    },
}
