"""Session bookkeeping for the MCP JSON-RPC transport.

Every client connection is bound to one ``SessionTransport`` through a
server-assigned session id. The id is only issued after a successful
``initialize`` handshake, and the binding is removed exactly once when the
transport closes.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Callable

from localdocs import __version__
from localdocs.errors import InvalidArgumentError, ProtocolError
from localdocs.server.tools import ToolDispatcher

LOGGER = logging.getLogger(__name__)

PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")
SERVER_INFO = {"name": "local-docs-mcp", "version": __version__}
BAD_SESSION_MESSAGE = "Bad Request: No valid session ID provided"


def is_initialize_request(message: Any) -> bool:
    return (
        isinstance(message, dict)
        and message.get("jsonrpc") == "2.0"
        and message.get("method") == "initialize"
        and "id" in message
    )


def error_response(request_id: Any, error: ProtocolError) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "error": error.to_error(), "id": request_id}


class SessionTransport:
    """JSON-RPC endpoint for a single session."""

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        *,
        on_close: Callable[["SessionTransport"], None] | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.session_id: str | None = None
        self.state = "pending"
        self.initialized = False
        self.protocol_version: str | None = None
        self.client_info: dict[str, Any] | None = None
        self.last_seen = time.monotonic()
        self._in_flight = 0
        self._on_close = on_close
        self._state_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self.state == "closed"

    @property
    def busy(self) -> bool:
        return self._in_flight > 0

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def bind(self, session_id: str) -> None:
        self.session_id = session_id
        self.state = "bound"

    def close(self) -> bool:
        """Close the transport. Returns False if it was already closed."""
        with self._state_lock:
            if self.state == "closed":
                return False
            self.state = "closed"
        LOGGER.info("Session %s closed", self.session_id)
        if self._on_close is not None:
            self._on_close(self)
        return True

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        """Handle one JSON-RPC message; notifications yield ``None``."""
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            request_id = message.get("id") if isinstance(message, dict) else None
            return error_response(
                request_id, ProtocolError(ProtocolError.INVALID_REQUEST, "Invalid Request")
            )

        method = message.get("method")
        request_id = message.get("id")
        is_notification = "id" not in message
        if not isinstance(method, str):
            if "result" in message or "error" in message:
                # Responses from the client; nothing is awaiting them
                return None
            return error_response(
                request_id, ProtocolError(ProtocolError.INVALID_REQUEST, "Invalid Request")
            )

        with self._state_lock:
            self._in_flight += 1
        self.touch()
        try:
            result = await self._dispatch(method, message.get("params"))
        except ProtocolError as exc:
            error = exc
        except InvalidArgumentError as exc:
            error = ProtocolError(ProtocolError.INVALID_PARAMS, str(exc))
        except Exception:
            LOGGER.exception("Unhandled error while processing %s", method)
            error = ProtocolError(ProtocolError.INTERNAL_ERROR, "Internal error")
        else:
            if is_notification:
                return None
            return {"jsonrpc": "2.0", "id": request_id, "result": result}
        finally:
            with self._state_lock:
                self._in_flight -= 1
            self.touch()

        if is_notification:
            LOGGER.warning("Dropping failed notification %s: %s", method, error.message)
            return None
        return error_response(request_id, error)

    async def _dispatch(self, method: str, params: Any) -> Any:
        if self.closed:
            raise ProtocolError(ProtocolError.BAD_SESSION, BAD_SESSION_MESSAGE)
        if method == "initialize":
            return self._initialize(params)
        if not self.initialized:
            raise ProtocolError(ProtocolError.INVALID_REQUEST, "Session not initialized")
        if method.startswith("notifications/"):
            return None
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": self.dispatcher.list_tools()}
        if method == "tools/call":
            if not isinstance(params, dict) or not isinstance(params.get("name"), str):
                raise InvalidArgumentError("tools/call requires a tool name")
            return await self.dispatcher.call_tool(params["name"], params.get("arguments"))
        raise ProtocolError(ProtocolError.METHOD_NOT_FOUND, f"Method not found: {method}")

    def _initialize(self, params: Any) -> dict[str, Any]:
        if self.initialized:
            raise ProtocolError(ProtocolError.INVALID_REQUEST, "Session already initialized")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ProtocolError(ProtocolError.INVALID_PARAMS, "initialize params must be an object")

        requested = params.get("protocolVersion")
        self.protocol_version = requested if requested in PROTOCOL_VERSIONS else PROTOCOL_VERSIONS[0]
        client_info = params.get("clientInfo")
        self.client_info = client_info if isinstance(client_info, dict) else None
        self.initialized = True
        return {
            "protocolVersion": self.protocol_version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": SERVER_INFO,
        }


class SessionTable:
    """Thread-safe map from session id to transport."""

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._sessions: dict[str, SessionTransport] = {}
        self._lock = threading.Lock()
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    async def open(self, message: Any) -> tuple[SessionTransport | None, dict[str, Any]]:
        """Run the handshake on a fresh transport and bind it to a new id.

        Returns ``(None, error_response)`` when the handshake fails; no
        binding is created in that case.
        """
        if not is_initialize_request(message):
            raise ProtocolError(ProtocolError.BAD_SESSION, BAD_SESSION_MESSAGE)

        transport = SessionTransport(self._dispatcher, on_close=self._discard)
        response = await transport.handle_message(message)
        if response is None or "error" in response:
            return None, response or error_response(
                message.get("id"),
                ProtocolError(ProtocolError.INVALID_REQUEST, "Invalid initialize request"),
            )

        with self._lock:
            session_id = self._id_factory()
            while session_id in self._sessions:
                session_id = self._id_factory()
            transport.bind(session_id)
            self._sessions[session_id] = transport

        LOGGER.info("Session %s initialized", session_id)
        return transport, response

    def get(self, session_id: str) -> SessionTransport | None:
        with self._lock:
            transport = self._sessions.get(session_id)
        if transport is not None:
            transport.touch()
        return transport

    def close(self, session_id: str) -> bool:
        with self._lock:
            transport = self._sessions.get(session_id)
        if transport is None:
            return False
        return transport.close()

    def close_idle(self, max_idle_seconds: float) -> list[str]:
        """Close sessions not seen for more than ``max_idle_seconds``.

        Sessions with a request still being handled are never idle.
        """
        cutoff = time.monotonic() - max_idle_seconds
        with self._lock:
            stale = [
                t for t in self._sessions.values() if t.last_seen < cutoff and not t.busy
            ]
        return [t.session_id for t in stale if t.close() and t.session_id]

    def close_all(self) -> None:
        with self._lock:
            transports = list(self._sessions.values())
        for transport in transports:
            transport.close()

    def _discard(self, transport: SessionTransport) -> None:
        with self._lock:
            if transport.session_id and self._sessions.get(transport.session_id) is transport:
                del self._sessions[transport.session_id]
