"""MCP tools exposing the ingestion and retrieval pipelines."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from localdocs.errors import InvalidArgumentError, LocalDocsError
from localdocs.index.indexer import Indexer
from localdocs.index.search import Searcher
from localdocs.utils.files import normalize_path

LOGGER = logging.getLogger(__name__)


class IndexArguments(BaseModel):
    path: str = Field(description="The path to the directory to index.")


class SearchArguments(BaseModel):
    query: str = Field(description="The search query.")
    path: str | None = Field(
        default=None, description="The path to the directory to search in."
    )


def _text_result(text: str, *, is_error: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


class ToolDispatcher:
    """Binds the ``index`` and ``search`` tools to the pipelines."""

    def __init__(self, indexer: Indexer, searcher: Searcher) -> None:
        self.indexer = indexer
        self.searcher = searcher
        self._tools = {
            "index": (
                "Index Directory",
                "Index a directory of documents.",
                IndexArguments,
                self._index,
            ),
            "search": (
                "Search Documents",
                "Search for documents.",
                SearchArguments,
                self._search,
            ),
        }

    def list_tools(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "title": title,
                "description": description,
                "inputSchema": model.model_json_schema(),
            }
            for name, (title, description, model, _) in self._tools.items()
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Run a tool and return an MCP ``CallToolResult``.

        Pipeline failures are reported in the result with ``isError`` set.
        Unknown tools and invalid arguments raise ``InvalidArgumentError``.
        """
        if name not in self._tools:
            raise InvalidArgumentError(f"Unknown tool: {name}")
        _, _, model, handler = self._tools[name]
        try:
            args = model.model_validate(arguments or {})
        except ValidationError as exc:
            raise InvalidArgumentError(f"Invalid arguments for tool {name}: {exc}") from exc
        return await handler(args)

    async def _index(self, args: IndexArguments) -> dict[str, Any]:
        root = Path(normalize_path(args.path))
        try:
            stats = await self.indexer.index(root)
        except LocalDocsError as exc:
            LOGGER.error("Indexing %s failed: %s", root, exc)
            return _text_result(f"Error indexing {args.path}: {exc}", is_error=True)

        if stats.failed:
            return _text_result(
                f"Error indexing {args.path}: {stats.failed} file(s) could not be embedded",
                is_error=True,
            )
        return _text_result(f"Successfully indexed {args.path}")

    async def _search(self, args: SearchArguments) -> dict[str, Any]:
        prefix = normalize_path(args.path) if args.path else None
        try:
            results = await self.searcher.search(args.query, path=prefix)
        except LocalDocsError as exc:
            LOGGER.error("Error during search: %s", exc)
            return _text_result(f"Error searching: {exc}", is_error=True)

        content = [result.to_dict() for result in results]
        return _text_result(json.dumps(content, indent=2))
