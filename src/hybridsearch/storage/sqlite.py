"""SQLite storage implementation.

Provides persistent chunk storage using SQLite via aiosqlite:
- ``chunks`` holds chunk rows with float32 embedding blobs
- ``chunks_fts`` is an FTS5 external-content index over chunk content,
  kept in sync by triggers

Vector search loads stored embeddings and ranks them by cosine similarity in
Python. Keyword search ranks with FTS5 ``bm25``; scores are negated so that
higher is better.
"""

import json
import os
import re
import struct
import time
from collections.abc import Sequence
from typing import Optional

import aiosqlite

from hybridsearch.config.schema import StorageConfig
from hybridsearch.entities import Chunk, ScoredChunk
from hybridsearch.observability.logging import get_logger
from hybridsearch.storage.base import (
    KeywordSearchOptions,
    StorageBackend,
    StorageError,
    StorageStats,
    VectorSearchOptions,
    cosine_similarity,
)

logger = get_logger(__name__)

DEFAULT_DB_PATH = "~/.hybridsearch/index.db"

_TERM_PATTERN = re.compile(r"\w+")


def encode_embedding(vector: list[float] | None) -> bytes | None:
    """Pack an embedding as little-endian float32."""
    if vector is None:
        return None
    return struct.pack(f"<{len(vector)}f", *vector)


def decode_embedding(blob: bytes | None) -> list[float] | None:
    """Unpack a float32 embedding blob."""
    if blob is None:
        return None
    return list(struct.unpack(f"<{len(blob) // 4}f", blob))


def build_match_query(query: str) -> str | None:
    """Turn free text into an FTS5 prefix query over its word terms.

    Every term is quoted so FTS5 operators in user input are treated as text.
    Returns None when the query has no searchable terms.
    """
    terms = _TERM_PATTERN.findall(query)
    if not terms:
        return None
    return " OR ".join(f'"{term}"*' for term in terms)


class SQLiteStorage(StorageBackend):
    """SQLite chunk store with FTS5 keyword search."""

    storage_type = "sqlite"

    def __init__(self, config: StorageConfig) -> None:
        """Initialize SQLite storage."""
        super().__init__(config)

        conn_str = config.connection_string or DEFAULT_DB_PATH
        if conn_str.startswith("sqlite:///"):
            conn_str = conn_str[len("sqlite:///"):]
        self.db_path = os.path.expanduser(conn_str)

        prefix = config.table_prefix
        self.chunks_table = f"{prefix}chunks"
        self.fts_table = f"{prefix}chunks_fts"

        self.connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the database and create tables, indices and triggers."""
        try:
            if self.db_path != ":memory:":
                db_dir = os.path.dirname(self.db_path)
                if db_dir:
                    os.makedirs(db_dir, exist_ok=True)

            self.connection = await aiosqlite.connect(self.db_path)
            self.connection.row_factory = aiosqlite.Row
            await self.connection.execute("PRAGMA journal_mode = WAL")

            chunks, fts = self.chunks_table, self.fts_table
            await self.connection.executescript(f"""
                CREATE TABLE IF NOT EXISTS {chunks} (
                    id TEXT PRIMARY KEY,
                    path TEXT NOT NULL,
                    content TEXT NOT NULL,
                    start_line INTEGER NOT NULL,
                    end_line INTEGER NOT NULL,
                    metadata TEXT NOT NULL,
                    embedding BLOB,
                    updated_at INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_{chunks}_path ON {chunks}(path);

                CREATE VIRTUAL TABLE IF NOT EXISTS {fts} USING fts5(
                    content, content='{chunks}', content_rowid='rowid', tokenize='porter'
                );

                CREATE TRIGGER IF NOT EXISTS {chunks}_ai AFTER INSERT ON {chunks} BEGIN
                    INSERT INTO {fts}(rowid, content) VALUES (new.rowid, new.content);
                END;

                CREATE TRIGGER IF NOT EXISTS {chunks}_ad AFTER DELETE ON {chunks} BEGIN
                    INSERT INTO {fts}({fts}, rowid, content) VALUES ('delete', old.rowid, old.content);
                END;

                CREATE TRIGGER IF NOT EXISTS {chunks}_au AFTER UPDATE ON {chunks} BEGIN
                    INSERT INTO {fts}({fts}, rowid, content) VALUES ('delete', old.rowid, old.content);
                    INSERT INTO {fts}(rowid, content) VALUES (new.rowid, new.content);
                END;
            """)
            await self.connection.commit()

            logger.info("sqlite_storage_initialized", db_path=self.db_path)

        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite storage: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    def _require_connection(self) -> aiosqlite.Connection:
        if not self.connection:
            raise StorageError("Database not initialized", storage_type="sqlite")
        return self.connection

    async def close(self) -> None:
        """Close the database connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None

    async def add_chunk(self, chunk: Chunk) -> None:
        """Insert or update a chunk."""
        await self.add_chunks([chunk])

    async def add_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Insert or update chunks in one transaction."""
        connection = self._require_connection()
        now = int(time.time() * 1000)

        try:
            await connection.executemany(
                f"""
                INSERT INTO {self.chunks_table}
                    (id, path, content, start_line, end_line, metadata, embedding, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    path = excluded.path,
                    content = excluded.content,
                    start_line = excluded.start_line,
                    end_line = excluded.end_line,
                    metadata = excluded.metadata,
                    embedding = excluded.embedding,
                    updated_at = excluded.updated_at
                """,
                [
                    (
                        chunk.id,
                        chunk.path,
                        chunk.content,
                        chunk.start_line,
                        chunk.end_line,
                        json.dumps(chunk.metadata),
                        encode_embedding(chunk.embedding),
                        now,
                    )
                    for chunk in chunks
                ],
            )
            await connection.commit()
        except Exception as e:
            await connection.rollback()
            raise StorageError(
                f"Failed to store chunks: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def delete_chunk(self, chunk_id: str) -> bool:
        """Delete a chunk by id."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"DELETE FROM {self.chunks_table} WHERE id = ?", (chunk_id,)
            )
            await connection.commit()
            return cursor.rowcount > 0
        except Exception as e:
            raise StorageError(
                f"Failed to delete chunk {chunk_id}: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def delete_chunks_by_path(self, path: str) -> int:
        """Delete all chunks for a document."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"DELETE FROM {self.chunks_table} WHERE path = ?", (path,)
            )
            await connection.commit()
            return cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to delete chunks for {path}: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def search_by_vector(
        self, query_vector: list[float], options: VectorSearchOptions
    ) -> list[ScoredChunk]:
        """Rank stored embeddings by cosine similarity."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"SELECT * FROM {self.chunks_table} WHERE embedding IS NOT NULL"
            )
            rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(
                f"Vector search failed: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        results = []
        for row in rows:
            chunk = self._row_to_chunk(row)
            score = cosine_similarity(query_vector, chunk.embedding)
            if score >= options.min_score:
                results.append(ScoredChunk(chunk=chunk, score=score))

        results.sort(key=lambda result: result.score, reverse=True)
        return results[: options.limit]

    async def search_by_keyword(
        self, query: str, options: KeywordSearchOptions
    ) -> list[ScoredChunk]:
        """Full-text search ranked by bm25."""
        connection = self._require_connection()

        match_query = build_match_query(query)
        if match_query is None or options.limit == 0:
            return []

        try:
            cursor = await connection.execute(
                f"""
                SELECT c.*, bm25({self.fts_table}) AS rank
                FROM {self.fts_table}
                JOIN {self.chunks_table} AS c ON c.rowid = {self.fts_table}.rowid
                WHERE {self.fts_table} MATCH ?
                ORDER BY rank
                LIMIT ?
                """,
                (match_query, options.limit),
            )
            rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(
                f"Keyword search failed: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        return [ScoredChunk(chunk=self._row_to_chunk(row), score=-row["rank"]) for row in rows]

    async def get_chunk(self, chunk_id: str) -> Optional[Chunk]:
        """Retrieve a chunk by id."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"SELECT * FROM {self.chunks_table} WHERE id = ?", (chunk_id,)
            )
            row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(
                f"Failed to get chunk {chunk_id}: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        return self._row_to_chunk(row) if row else None

    async def get_chunks_by_path(self, path: str) -> list[Chunk]:
        """Retrieve all chunks for a document ordered by start line."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"SELECT * FROM {self.chunks_table} WHERE path = ? ORDER BY start_line", (path,)
            )
            rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(
                f"Failed to get chunks for {path}: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        return [self._row_to_chunk(row) for row in rows]

    async def list_paths(self) -> list[str]:
        """Return stored document paths."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"SELECT DISTINCT path FROM {self.chunks_table} ORDER BY path"
            )
            rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(
                f"Failed to list paths: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        return [row["path"] for row in rows]

    async def get_stats(self) -> StorageStats:
        """Return document and chunk counts."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                f"SELECT COUNT(DISTINCT path) AS files, COUNT(*) AS chunks FROM {self.chunks_table}"
            )
            row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(
                f"Failed to get stats: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        return StorageStats(files=row["files"], chunks=row["chunks"])

    async def clear(self) -> None:
        """Delete all chunks."""
        connection = self._require_connection()

        try:
            await connection.execute(f"DELETE FROM {self.chunks_table}")
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to clear storage: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        logger.info("sqlite_storage_cleared", db_path=self.db_path)

    def _row_to_chunk(self, row: aiosqlite.Row) -> Chunk:
        return Chunk(
            id=row["id"],
            path=row["path"],
            content=row["content"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            embedding=decode_embedding(row["embedding"]),
        )
