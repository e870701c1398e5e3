"""localdocs - local document indexing and semantic search over MCP."""

__version__ = "1.0.0"
