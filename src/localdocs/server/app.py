"""FastAPI application serving the MCP endpoint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from localdocs import __version__
from localdocs.config import AppConfig
from localdocs.embedding.provider import EmbeddingProvider, create_embedding_provider
from localdocs.errors import ProtocolError
from localdocs.index.indexer import Indexer
from localdocs.index.search import Searcher
from localdocs.index.storage import SQLiteVectorStore
from localdocs.server.sessions import (
    BAD_SESSION_MESSAGE,
    SessionTable,
    SessionTransport,
    is_initialize_request,
)
from localdocs.server.tools import ToolDispatcher

LOGGER = logging.getLogger(__name__)

MCP_SESSION_HEADER = "Mcp-Session-Id"

router = APIRouter()


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _rpc_error(status_code: int, code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": None},
    )


def _lookup_session(request: Request) -> SessionTransport | None:
    session_id = request.headers.get(MCP_SESSION_HEADER)
    if not session_id:
        return None
    return request.app.state.sessions.get(session_id)


@router.post("/mcp")
async def handle_post(request: Request) -> Response:
    try:
        message: Any = await request.json()
    except ValueError:
        return _rpc_error(400, ProtocolError.PARSE_ERROR, "Parse error")

    sessions: SessionTable = request.app.state.sessions
    session_id = request.headers.get(MCP_SESSION_HEADER)
    transport = sessions.get(session_id) if session_id else None

    if transport is None:
        if session_id is None and is_initialize_request(message):
            transport, response = await sessions.open(message)
            if transport is None:
                return JSONResponse(status_code=400, content=response)
            return JSONResponse(
                content=response, headers={MCP_SESSION_HEADER: transport.session_id}
            )
        return _rpc_error(400, ProtocolError.BAD_SESSION, BAD_SESSION_MESSAGE)

    response = await transport.handle_message(message)
    if response is None:
        return Response(status_code=202)
    return JSONResponse(content=response, headers={MCP_SESSION_HEADER: transport.session_id})


@router.get("/mcp")
async def handle_get(request: Request) -> Response:
    if _lookup_session(request) is None:
        return PlainTextResponse("Invalid or missing session ID", status_code=400)
    # No server-initiated messages, so there is no stream to open
    return Response(status_code=405, headers={"Allow": "POST, DELETE"})


@router.delete("/mcp")
async def handle_delete(request: Request) -> Response:
    transport = _lookup_session(request)
    if transport is None:
        return PlainTextResponse("Invalid or missing session ID", status_code=400)
    transport.close()
    return Response(status_code=200)


@router.get("/healthz")
async def healthz(request: Request) -> dict[str, Any]:
    return {"status": "ok", "sessions": len(request.app.state.sessions)}


async def _expire_idle_sessions(sessions: SessionTable, max_idle_seconds: float) -> None:
    interval = min(max(max_idle_seconds / 2, 1.0), 60.0)
    while True:
        await asyncio.sleep(interval)
        expired = sessions.close_idle(max_idle_seconds)
        if expired:
            LOGGER.info("Closed %d idle session(s)", len(expired))


def create_app(
    config: AppConfig | None = None,
    *,
    embedder: EmbeddingProvider | None = None,
    store: SQLiteVectorStore | None = None,
) -> FastAPI:
    """Build the MCP application.

    The store, embedding provider and session table are created when the
    application starts and torn down on shutdown. A caller-supplied store is
    used as-is and left open.
    """
    config = config or AppConfig.from_env()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        provider = embedder or create_embedding_provider(config)
        vector_store = store
        if vector_store is None:
            db_path = config.resolve_db_path(Path.cwd())
            _ensure_db_parent(db_path)
            vector_store = SQLiteVectorStore(db_path, dimension=provider.dimension)

        indexer = Indexer(
            provider,
            vector_store,
            chunk_chars=config.chunk_chars,
            overlap=config.overlap,
            batch_size=config.embed_batch_size,
            embed_timeout=config.embed_timeout,
        )
        searcher = Searcher(
            provider, vector_store, limit=config.search_limit, embed_timeout=config.embed_timeout
        )
        sessions = SessionTable(ToolDispatcher(indexer, searcher))
        app.state.sessions = sessions
        app.state.store = vector_store

        sweeper = None
        if config.session_idle_seconds > 0:
            sweeper = asyncio.create_task(
                _expire_idle_sessions(sessions, config.session_idle_seconds)
            )
        LOGGER.info("MCP server ready (database: %s)", vector_store.db_path)
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            sessions.close_all()
            if store is None:
                vector_store.close()

    app = FastAPI(title="localdocs MCP", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[MCP_SESSION_HEADER],
    )
    app.include_router(router)
    return app
