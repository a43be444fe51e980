"""Curated text shown to agents.

Tool descriptions double as instructions for the model, so they say when to
use each tool, not just what it returns.
"""

REGISTRY_DESCRIPTION = (
    "API Registry - Use this to discover available services and their "
    "endpoints. Each service exposes a REST API."
)

USAGE_HINT = (
    "To call an endpoint: send HTTP request to {baseUrl}{path} with the "
    "documented method, params, and body fields."
)

TOOL_DESCRIPTIONS: dict[str, str] = {
    "list_services": "List all registered API services with their base URLs",
    "get_service_spec": (
        "Get the full OpenAPI specification for a specific service"
    ),
    "get_all_endpoints": (
        "Get a compact LLM-friendly summary of all services and their "
        "endpoints. Use this to discover what APIs are available before "
        "calling them."
    ),
    "search_endpoints": (
        "Search for API endpoints across all services matching a keyword "
        "(searches path, summary, and body fields)"
    ),
    "call_api": (
        "Call an API endpoint on a registered service. Use get_all_endpoints "
        "first to discover available endpoints."
    ),
}
