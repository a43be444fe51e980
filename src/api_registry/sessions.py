"""MCP sessions over Streamable HTTP.

A POST without ``mcp-session-id`` opens a session: a transport is created,
registered in the session table and connected to the MCP server in a task
of its own. Later requests carrying the id are routed to that transport.
DELETE closes the session. Sessions live until closed or until shutdown.

A POST carrying an id that is not in the table (expired, closed, or from
before a restart) is answered with 404 rather than silently opening a new
session, as the MCP SDK session manager does; the client then sends a fresh
``initialize``.
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional
from uuid import uuid4

import anyio
import structlog
from anyio.abc import TaskGroup, TaskStatus
from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.server.streamable_http import (
    MCP_SESSION_ID_HEADER,
    StreamableHTTPServerTransport,
)
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Receive, Scope, Send

from .errors import ProtocolError

logger = structlog.get_logger(__name__)


def new_session_id() -> str:
    """Random, unguessable session token."""
    return uuid4().hex


@dataclass
class Session:
    id: str
    transport: StreamableHTTPServerTransport
    created_at: float = field(default_factory=time.time)

    @property
    def age(self) -> float:
        """Seconds since the session was opened."""
        return round(time.time() - self.created_at, 3)


class SessionTable:
    """Process-wide session store keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def add(self, session: Session) -> None:
        self._sessions[session.id] = session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        return self._sessions.pop(session_id, None)

    def clear(self) -> list[Session]:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions

    @property
    def ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


class SessionManager:
    """ASGI endpoint for ``/mcp`` that owns the lifecycle of every session.

    Must be running (``async with manager.run():``) before it serves
    requests; the Starlette lifespan takes care of that.
    """

    def __init__(
        self,
        server: Server,
        init_options: InitializationOptions,
        table: Optional[SessionTable] = None,
        json_response: bool = False,
    ):
        self.server = server
        self.init_options = init_options
        self.table = table if table is not None else SessionTable()
        self.json_response = json_response
        self._task_group: Optional[TaskGroup] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            logger.info("Session manager started")
            try:
                yield
            finally:
                await self.close_all()
                tg.cancel_scope.cancel()
                self._task_group = None
                logger.info("Session manager stopped")

    async def close_all(self) -> None:
        for session in self.table.clear():
            await session.transport.terminate()

    # ------------------------------------------------------------------
    # ASGI
    # ------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        try:
            if request.method == "POST":
                await self._handle_post(request, scope, receive, send)
            elif request.method == "GET":
                await self._handle_get(request, scope, receive, send)
            elif request.method == "DELETE":
                await self._handle_delete(request, scope, receive, send)
            else:
                raise ProtocolError("Method not allowed", status_code=405)
        except ProtocolError as e:
            logger.warning(
                "MCP protocol error", error=e.message, code=e.code, method=request.method
            )
            response = JSONResponse(e.to_jsonrpc(), status_code=e.status_code)
            await response(scope, receive, send)

    async def _handle_post(
        self, request: Request, scope: Scope, receive: Receive, send: Send
    ) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if session_id is None:
            session = await self._create_session()
        else:
            session = self.table.get(session_id)
            if session is None:
                raise ProtocolError("Session not found", status_code=404)

        try:
            await session.transport.handle_request(scope, receive, send)
        except Exception as e:
            logger.error("MCP request error", session_id=session.id, exc_info=True)
            response = JSONResponse(
                ProtocolError(
                    str(e) or "Internal error", status_code=500, rpc_code=-32603
                ).to_jsonrpc(),
                status_code=500,
            )
            await response(scope, receive, send)

    async def _handle_get(
        self, request: Request, scope: Scope, receive: Receive, send: Send
    ) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if not session_id:
            raise ProtocolError(f"Missing {MCP_SESSION_ID_HEADER} header", status_code=400)
        session = self.table.get(session_id)
        if session is None:
            raise ProtocolError("Session not found", status_code=404)
        await session.transport.handle_request(scope, receive, send)

    async def _handle_delete(
        self, request: Request, scope: Scope, receive: Receive, send: Send
    ) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        if session_id:
            session = self.table.remove(session_id)
            if session is not None:
                await session.transport.terminate()
                logger.info("Session closed", session_id=session_id, age=session.age)
        response = JSONResponse({"success": True})
        await response(scope, receive, send)

    # ------------------------------------------------------------------
    # Session creation
    # ------------------------------------------------------------------

    async def _create_session(self) -> Session:
        if self._task_group is None:
            raise RuntimeError("SessionManager.run() must be active to open sessions")

        transport = StreamableHTTPServerTransport(
            mcp_session_id=new_session_id(),
            is_json_response_enabled=self.json_response,
        )
        session = Session(id=transport.mcp_session_id, transport=transport)
        self.table.add(session)
        await self._task_group.start(self._run_session, session)
        logger.info("Session opened", session_id=session.id, active=len(self.table))
        return session

    async def _run_session(
        self,
        session: Session,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        async with session.transport.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                await self.server.run(read_stream, write_stream, self.init_options)
            except Exception:
                logger.error("Session crashed", session_id=session.id, exc_info=True)
            finally:
                if self.table.get(session.id) is session:
                    self.table.remove(session.id)
                    logger.info("Session ended", session_id=session.id, age=session.age)
