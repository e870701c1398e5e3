"""SQLite vector store for paths, documents and chunk embeddings."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Sequence

import numpy as np

from localdocs.errors import InvalidArgumentError, StoreError
from localdocs.models import ChunkHit, ChunkRecord, DocumentRecord, PathRecord

LOGGER = logging.getLogger(__name__)


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteVectorStore:
    """Persistence layer for documents, chunks and their embeddings.

    Writes go through one connection serialized by a lock; each file is
    written in a single transaction. Reads open their own read-only
    connection and run inside one read transaction, so with WAL they see a
    consistent snapshot and never wait for the writer.
    """

    def __init__(self, db_path: Path, *, dimension: int) -> None:
        self.db_path = Path(db_path)
        self.dimension = dimension
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to open database {self.db_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        try:
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.execute("PRAGMA foreign_keys=ON;")
            self._ensure_schema()
            self._check_dimension()
        except Exception:
            self._conn.close()
            raise

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(str(exc)) from exc
            except BaseException:
                self._conn.rollback()
                raise

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        uri = self.db_path.resolve().as_uri() + "?mode=ro"
        try:
            conn = sqlite3.connect(uri, uri=True, isolation_level=None)
        except sqlite3.Error as exc:
            raise StoreError(f"Unable to open database {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS paths (
                    path TEXT PRIMARY KEY,
                    is_directory INTEGER NOT NULL,
                    last_indexed TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    doc_id TEXT PRIMARY KEY,
                    path TEXT NOT NULL,
                    raw_text TEXT NOT NULL,
                    last_modified TEXT NOT NULL,
                    FOREIGN KEY(path) REFERENCES paths(path)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    chunk_id TEXT PRIMARY KEY,
                    doc_id TEXT NOT NULL,
                    ordinal INTEGER NOT NULL,
                    start_offset INTEGER NOT NULL,
                    end_offset INTEGER NOT NULL,
                    text TEXT NOT NULL,
                    FOREIGN KEY(doc_id) REFERENCES documents(doc_id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunk_vectors (
                    chunk_id TEXT PRIMARY KEY,
                    embedding BLOB NOT NULL,
                    FOREIGN KEY(chunk_id) REFERENCES chunks(chunk_id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_doc_id
                    ON chunks(doc_id)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS store_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def _check_dimension(self) -> None:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT value FROM store_meta WHERE key = 'embedding_dimension'"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO store_meta(key, value) VALUES ('embedding_dimension', ?)",
                    (str(self.dimension),),
                )
                return

        stored = int(row["value"])
        if stored != self.dimension:
            raise StoreError(
                f"Embedding dimension {self.dimension} does not match the index in "
                f"{self.db_path} (built with dimension {stored})"
            )

    @staticmethod
    def _upsert_path(conn: sqlite3.Connection, record: PathRecord) -> None:
        conn.execute(
            """
            INSERT INTO paths(path, is_directory, last_indexed) VALUES (?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                is_directory = excluded.is_directory,
                last_indexed = excluded.last_indexed
            """,
            (record.path, int(record.is_directory), record.last_indexed),
        )

    def upsert_document(
        self,
        document: DocumentRecord,
        chunks: Sequence[ChunkRecord],
        embeddings: np.ndarray,
    ) -> str:
        """Replace a document, its chunks and their vectors in one transaction.

        Returns 'inserted' for a new document and 'updated' otherwise.
        """
        vectors = np.asarray(embeddings, dtype="float32")
        if vectors.shape[0] != len(chunks):
            raise StoreError(
                f"Embeddings and chunks length mismatch ({vectors.shape[0]} != {len(chunks)})"
            )
        if chunks and (vectors.ndim != 2 or vectors.shape[1] != self.dimension):
            raise StoreError(
                f"Embedding width {vectors.shape[-1]} does not match index dimension {self.dimension}"
            )

        now = utcnow()
        parent = str(Path(document.path).parent)
        with self.transaction() as conn:
            self._upsert_path(conn, PathRecord(path=parent, is_directory=True, last_indexed=now))
            self._upsert_path(
                conn, PathRecord(path=document.path, is_directory=False, last_indexed=now)
            )

            existing = conn.execute(
                "SELECT 1 FROM documents WHERE doc_id = ?", (document.doc_id,)
            ).fetchone()
            conn.execute(
                """
                INSERT INTO documents(doc_id, path, raw_text, last_modified) VALUES (?, ?, ?, ?)
                ON CONFLICT(doc_id) DO UPDATE SET
                    path = excluded.path,
                    raw_text = excluded.raw_text,
                    last_modified = excluded.last_modified
                """,
                (document.doc_id, document.path, document.raw_text, document.last_modified),
            )

            conn.execute(
                """
                DELETE FROM chunk_vectors
                WHERE chunk_id IN (SELECT chunk_id FROM chunks WHERE doc_id = ?)
                """,
                (document.doc_id,),
            )
            conn.execute("DELETE FROM chunks WHERE doc_id = ?", (document.doc_id,))

            conn.executemany(
                """
                INSERT INTO chunks(chunk_id, doc_id, ordinal, start_offset, end_offset, text)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (c.chunk_id, c.doc_id, c.ordinal, c.start_offset, c.end_offset, c.text)
                    for c in chunks
                ],
            )
            conn.executemany(
                "INSERT INTO chunk_vectors(chunk_id, embedding) VALUES (?, ?)",
                [
                    (chunk.chunk_id, sqlite3.Binary(vector.tobytes()))
                    for chunk, vector in zip(chunks, vectors)
                ],
            )

        LOGGER.debug("Stored %s with %d chunks", document.doc_id, len(chunks))
        return "updated" if existing else "inserted"

    def query(
        self,
        embedding: np.ndarray,
        *,
        limit: int = 10,
        path_prefix: str | None = None,
    ) -> List[ChunkHit]:
        """Return the ``limit`` chunks nearest to ``embedding`` by L2 distance.

        Results are ordered by ascending distance, ties by chunk id. With a
        ``path_prefix`` only chunks of documents whose path starts with it
        are eligible.
        """
        if limit < 1:
            raise InvalidArgumentError(f"limit must be positive, got {limit}")
        query = np.asarray(embedding, dtype="float32").reshape(-1)
        if query.shape[0] != self.dimension:
            raise StoreError(
                f"Query vector width {query.shape[0]} does not match index dimension {self.dimension}"
            )

        sql = """
            SELECT v.chunk_id AS chunk_id, v.embedding AS embedding
            FROM chunk_vectors v
            JOIN chunks c ON c.chunk_id = v.chunk_id
            JOIN documents d ON d.doc_id = c.doc_id
        """
        params: tuple = ()
        if path_prefix is not None:
            sql += " WHERE substr(d.path, 1, ?) = ?"
            params = (len(path_prefix), path_prefix)

        with self._reader() as conn:
            rows = conn.execute(sql, params).fetchall()
            if not rows:
                return []

            matrix = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in rows])
            distances = np.linalg.norm(matrix - query, axis=1)
            chunk_ids = [row["chunk_id"] for row in rows]
            order = sorted(range(len(rows)), key=lambda i: (float(distances[i]), chunk_ids[i]))
            top = order[:limit]

            placeholders = ", ".join("?" for _ in top)
            details = {
                row["chunk_id"]: row
                for row in conn.execute(
                    f"""
                    SELECT
                        c.chunk_id AS chunk_id,
                        c.doc_id AS doc_id,
                        c.start_offset AS start_offset,
                        c.text AS text,
                        d.path AS path,
                        d.raw_text AS raw_text
                    FROM chunks c
                    JOIN documents d ON d.doc_id = c.doc_id
                    WHERE c.chunk_id IN ({placeholders})
                    """,
                    [chunk_ids[i] for i in top],
                )
            }

        results: List[ChunkHit] = []
        for idx in top:
            row = details[chunk_ids[idx]]
            results.append(
                ChunkHit(
                    chunk_id=row["chunk_id"],
                    doc_id=row["doc_id"],
                    path=row["path"],
                    start_offset=int(row["start_offset"]),
                    text=row["text"],
                    raw_text=row["raw_text"],
                    distance=float(distances[idx]),
                )
            )
        return results

    def get_document(self, doc_id: str) -> DocumentRecord | None:
        with self._reader() as conn:
            row = conn.execute(
                "SELECT doc_id, path, raw_text, last_modified FROM documents WHERE doc_id = ?",
                (doc_id,),
            ).fetchone()
        if row is None:
            return None
        return DocumentRecord(
            doc_id=row["doc_id"],
            path=row["path"],
            raw_text=row["raw_text"],
            last_modified=row["last_modified"],
        )

    def list_documents(self) -> List[DocumentRecord]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT doc_id, path, raw_text, last_modified FROM documents ORDER BY doc_id"
            ).fetchall()
        return [
            DocumentRecord(
                doc_id=row["doc_id"],
                path=row["path"],
                raw_text=row["raw_text"],
                last_modified=row["last_modified"],
            )
            for row in rows
        ]

    def list_chunks(self, doc_id: str) -> List[ChunkRecord]:
        with self._reader() as conn:
            rows = conn.execute(
                """
                SELECT chunk_id, doc_id, ordinal, start_offset, end_offset, text
                FROM chunks WHERE doc_id = ? ORDER BY ordinal
                """,
                (doc_id,),
            ).fetchall()
        return [
            ChunkRecord(
                chunk_id=row["chunk_id"],
                doc_id=row["doc_id"],
                ordinal=int(row["ordinal"]),
                start_offset=int(row["start_offset"]),
                end_offset=int(row["end_offset"]),
                text=row["text"],
            )
            for row in rows
        ]

    def list_paths(self) -> List[PathRecord]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT path, is_directory, last_indexed FROM paths ORDER BY path"
            ).fetchall()
        return [
            PathRecord(
                path=row["path"],
                is_directory=bool(row["is_directory"]),
                last_indexed=row["last_indexed"],
            )
            for row in rows
        ]

    def get_stats(self) -> dict[str, int]:
        with self._reader() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM paths) AS path_count,
                    (SELECT COUNT(*) FROM documents) AS document_count,
                    (SELECT COUNT(*) FROM chunks) AS chunk_count,
                    (SELECT COUNT(*) FROM chunk_vectors) AS vector_count
                """
            ).fetchone()
        return {key: int(row[key]) for key in row.keys()}

    def remove_missing_files(self) -> int:
        """Remove documents and paths that no longer exist on disk."""
        with self.transaction() as conn:
            rows = conn.execute("SELECT doc_id, path FROM documents").fetchall()
            missing = [row for row in rows if not Path(row["path"]).exists()]
            for row in missing:
                conn.execute(
                    """
                    DELETE FROM chunk_vectors
                    WHERE chunk_id IN (SELECT chunk_id FROM chunks WHERE doc_id = ?)
                    """,
                    (row["doc_id"],),
                )
                conn.execute("DELETE FROM chunks WHERE doc_id = ?", (row["doc_id"],))
                conn.execute("DELETE FROM documents WHERE doc_id = ?", (row["doc_id"],))

            referenced = {row["path"] for row in conn.execute("SELECT path FROM documents")}
            for row in conn.execute("SELECT path FROM paths").fetchall():
                if row["path"] not in referenced and not Path(row["path"]).exists():
                    conn.execute("DELETE FROM paths WHERE path = ?", (row["path"],))

        if missing:
            LOGGER.info("Removed %d documents whose files no longer exist", len(missing))
        return len(missing)
