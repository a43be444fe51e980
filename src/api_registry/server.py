"""API Registry MCP Server: OpenAPI aggregation across services for agents."""

import asyncio
import contextlib
import logging
import sys
from typing import Any, Dict, Mapping, Optional

import structlog
import uvicorn
from mcp import types
from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import Tool
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from . import __version__
from .client import ServiceClient
from .config import RegistrySettings
from .discovery.aggregator import RegistryAggregator
from .discovery.directory import ServiceDirectory
from .discovery.dispatcher import Dispatcher
from .discovery.fetcher import SpecFetcher
from .discovery.registry_tools import TOOL_NAMES, RegistryTools
from .discovery.spec_cache import SpecCache
from .errors import RegistryError
from .routes import routes
from .sessions import SessionManager, SessionTable
from .utils.auth import ApiKeyMiddleware

logger = structlog.get_logger(__name__)

SERVER_NAME = "api-registry"


class RegistryMCPServer:
    """Owns the registry's stores and exposes them over MCP and REST."""

    def __init__(
        self,
        settings: Optional[RegistrySettings] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        fetcher: Optional[SpecFetcher] = None,
        client: Optional[ServiceClient] = None,
        session_table: Optional[SessionTable] = None,
    ):
        self.settings = settings or RegistrySettings()
        self.server = Server(SERVER_NAME)

        # Registry components
        self.directory = ServiceDirectory.from_environment(
            self.settings.services, environ
        )
        self.cache = SpecCache(
            fetcher or SpecFetcher(timeout=self.settings.fetch_timeout),
            ttl=self.settings.cache_ttl_seconds,
        )
        self.client = client or ServiceClient(
            timeout=self.settings.call_timeout,
            max_concurrent_calls=self.settings.max_concurrent_calls,
        )
        self.aggregator = RegistryAggregator(self.directory, self.cache)
        self.dispatcher = Dispatcher(self.directory, self.client)
        self.tools = RegistryTools(self.aggregator, self.dispatcher)

        # Streamable HTTP sessions
        self.sessions = SessionManager(
            self.server,
            self.initialization_options(),
            table=session_table,
            json_response=self.settings.json_response,
        )

        # Register MCP handlers
        self._register_handlers()

    def initialization_options(self) -> InitializationOptions:
        return InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
            ),
        )

    # ------------------------------------------------------------------
    # MCP handlers
    # ------------------------------------------------------------------

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            tools = self.tools.get_tools()
            logger.info("list_tools", count=len(tools))
            return tools

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> list[types.TextContent]:
            try:
                logger.info("call_tool", tool=name)

                if name not in TOOL_NAMES:
                    return [types.TextContent(
                        type="text",
                        text=f"Unknown tool: {name}",
                    )]

                text = await self.tools.call_tool(name, arguments)
                return [types.TextContent(type="text", text=text)]

            except RegistryError as e:
                logger.error("Registry error", error=e.message, code=e.code, tool=name)
                return [types.TextContent(
                    type="text",
                    text=f"Registry error: {e.message}",
                )]
            except Exception as e:
                logger.error("Unexpected error", error=str(e), tool=name, exc_info=True)
                return [types.TextContent(
                    type="text",
                    text=f"Error: {e}",
                )]

    # ------------------------------------------------------------------
    # HTTP application
    # ------------------------------------------------------------------

    def create_app(self) -> Starlette:
        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette):
            async with self.sessions.run():
                try:
                    yield
                finally:
                    await self.client.aclose()

        app = Starlette(
            routes=[
                *routes,
                Route("/mcp", endpoint=self.sessions, methods=["GET", "POST", "DELETE"]),
            ],
            middleware=[
                Middleware(
                    CORSMiddleware,
                    allow_origins=["*"],
                    allow_methods=["*"],
                    allow_headers=["*"],
                    expose_headers=["mcp-session-id"],
                ),
                Middleware(ApiKeyMiddleware, api_key=self.settings.api_key),
            ],
            lifespan=lifespan,
        )
        app.state.aggregator = self.aggregator
        return app

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run_http(self) -> None:
        logger.info(
            "Starting API registry",
            host=self.settings.host,
            port=self.settings.port,
            services=self.directory.names or "(none - configure via SERVICES env var)",
        )
        config = uvicorn.Config(
            self.create_app(),
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
        )
        await uvicorn.Server(config).serve()

    async def run_stdio(self) -> None:
        logger.info("Starting API registry over stdio", services=self.directory.names)
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.initialization_options(),
                )
        finally:
            await self.client.aclose()

    async def run(self) -> None:
        if self.settings.transport == "stdio":
            await self.run_stdio()
        else:
            await self.run_http()


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    # stdout carries the MCP stream in stdio mode
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())

    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


async def async_main() -> None:
    settings = RegistrySettings()
    configure_logging(settings.log_level, settings.log_format)

    try:
        server = RegistryMCPServer(settings)
        await server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e), exc_info=True)
        sys.exit(1)


def main() -> None:
    """Synchronous entry point for console script."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
