"""API registry: OpenAPI aggregation and an MCP bridge for LLM agents."""

__version__ = "0.3.0"
