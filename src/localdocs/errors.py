"""Exception hierarchy shared by the pipelines and the session layer."""

from __future__ import annotations


class LocalDocsError(Exception):
    """Base class for all localdocs failures."""


class InvalidArgumentError(LocalDocsError, ValueError):
    """Malformed chunking parameters, query or tool arguments."""


class IngestionIOError(LocalDocsError, OSError):
    """Crawl or file read failure. Aborts the ingestion run for a root."""


class ProviderError(LocalDocsError, RuntimeError):
    """The embedding provider failed or timed out."""


class StoreError(LocalDocsError, RuntimeError):
    """Persistence failure or a misconfigured vector index."""


class ProtocolError(LocalDocsError):
    """JSON-RPC level failure reported back to the client."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    BAD_SESSION = -32000

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_error(self) -> dict:
        return {"code": self.code, "message": self.message}
