"""PostgreSQL storage implementation (pgvector + full-text search).

Chunks live in one table with:
- a ``vector(N)`` embedding column indexed with ivfflat cosine ops
- a generated ``tsvector`` column indexed with GIN for keyword search

The pgvector asyncpg codec is registered on every pooled connection, so
embeddings are passed and returned as plain float sequences.
"""

import json
import re
from collections.abc import Sequence
from typing import Any, Optional

import asyncpg
from pgvector.asyncpg import register_vector

from hybridsearch.config.schema import StorageConfig
from hybridsearch.entities import Chunk, ScoredChunk
from hybridsearch.observability.logging import get_logger
from hybridsearch.storage.base import (
    KeywordSearchOptions,
    StorageBackend,
    StorageError,
    StorageStats,
    VectorSearchOptions,
)

logger = get_logger(__name__)

_TERM_PATTERN = re.compile(r"\w+")

_COLUMNS = "id, path, content, start_line, end_line, metadata, embedding"


def build_tsquery(query: str) -> str | None:
    """OR together the word terms of a query for ``to_tsquery``."""
    terms = _TERM_PATTERN.findall(query)
    if not terms:
        return None
    return " | ".join(terms)


class PostgreSQLStorage(StorageBackend):
    """PostgreSQL chunk store using pgvector and tsvector indices."""

    storage_type = "postgresql"

    def __init__(self, config: StorageConfig) -> None:
        """Initialize PostgreSQL storage.

        Raises:
            StorageError: If no DSN is configured
        """
        super().__init__(config)
        if not config.connection_string:
            raise StorageError(
                "PostgreSQL storage requires connection_string (a postgresql:// DSN)",
                storage_type="postgresql",
            )

        self.dsn = config.connection_string
        self.table = f"{config.table_prefix}hybridsearch_chunks"
        self.dimension = config.vector_dimension
        self.pool_size = int(config.extra_params.get("pool_size", 10))
        self.command_timeout = float(config.extra_params.get("command_timeout", 60))
        self._pool: Optional[Any] = None

    async def initialize(self) -> None:
        """Create the connection pool, extension, table and indices."""
        try:
            # The vector type must exist before the codec can be registered
            conn = await asyncpg.connect(dsn=self.dsn)
            try:
                await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
            finally:
                await conn.close()

            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=1,
                max_size=self.pool_size,
                command_timeout=self.command_timeout,
                init=self._init_connection,
            )
            async with self._pool.acquire() as conn:
                await conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        id TEXT PRIMARY KEY,
                        path TEXT NOT NULL,
                        content TEXT NOT NULL,
                        start_line INTEGER NOT NULL,
                        end_line INTEGER NOT NULL,
                        metadata JSONB NOT NULL DEFAULT '{{}}',
                        embedding vector({self.dimension}),
                        fts tsvector GENERATED ALWAYS AS (to_tsvector('english', content)) STORED,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
                    )
                """)
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{self.table}_path ON {self.table}(path)"
                )
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{self.table}_embedding ON {self.table} "
                    f"USING ivfflat (embedding vector_cosine_ops) WITH (lists = 100)"
                )
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{self.table}_fts ON {self.table} USING GIN (fts)"
                )

            logger.info("postgres_storage_initialized", table=self.table, dimension=self.dimension)

        except Exception as e:
            raise StorageError(
                f"Failed to initialize PostgreSQL storage: {e}",
                storage_type="postgresql",
                original_error=e,
            )

    async def _init_connection(self, conn: Any) -> None:
        """Register the pgvector codec on a new pool connection."""
        await register_vector(conn)

    def _require_pool(self) -> Any:
        if self._pool is None:
            raise StorageError("Connection pool not initialized", storage_type="postgresql")
        return self._pool

    async def _fetch(self, query: str, *args: Any) -> list[Any]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except Exception as e:
            raise StorageError(
                f"PostgreSQL query failed: {e}",
                storage_type="postgresql",
                original_error=e,
            )

    async def _execute(self, query: str, *args: Any) -> str:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.execute(query, *args)
        except Exception as e:
            raise StorageError(
                f"PostgreSQL command failed: {e}",
                storage_type="postgresql",
                original_error=e,
            )

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def add_chunk(self, chunk: Chunk) -> None:
        """Insert or update a chunk."""
        await self.add_chunks([chunk])

    async def add_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Insert or update chunks in one transaction."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        f"""
                        INSERT INTO {self.table}
                            (id, path, content, start_line, end_line, metadata, embedding)
                        VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
                        ON CONFLICT (id) DO UPDATE SET
                            path = EXCLUDED.path,
                            content = EXCLUDED.content,
                            start_line = EXCLUDED.start_line,
                            end_line = EXCLUDED.end_line,
                            metadata = EXCLUDED.metadata,
                            embedding = EXCLUDED.embedding,
                            updated_at = now()
                        """,
                        [
                            (
                                chunk.id,
                                chunk.path,
                                chunk.content,
                                chunk.start_line,
                                chunk.end_line,
                                json.dumps(chunk.metadata),
                                chunk.embedding,
                            )
                            for chunk in chunks
                        ],
                    )
        except Exception as e:
            raise StorageError(
                f"Failed to store chunks: {e}",
                storage_type="postgresql",
                original_error=e,
            )

    async def delete_chunk(self, chunk_id: str) -> bool:
        """Delete a chunk by id."""
        status = await self._execute(f"DELETE FROM {self.table} WHERE id = $1", chunk_id)
        return _affected_rows(status) > 0

    async def delete_chunks_by_path(self, path: str) -> int:
        """Delete all chunks for a document."""
        status = await self._execute(f"DELETE FROM {self.table} WHERE path = $1", path)
        return _affected_rows(status)

    async def search_by_vector(
        self, query_vector: list[float], options: VectorSearchOptions
    ) -> list[ScoredChunk]:
        """Cosine similarity search with the pgvector ``<=>`` operator."""
        rows = await self._fetch(
            f"""
            SELECT {_COLUMNS}, 1 - (embedding <=> $1) AS score
            FROM {self.table}
            WHERE embedding IS NOT NULL
              AND 1 - (embedding <=> $1) >= $3
            ORDER BY embedding <=> $1
            LIMIT $2
            """,
            query_vector,
            options.limit,
            options.min_score,
        )
        return [ScoredChunk(chunk=self._row_to_chunk(row), score=float(row["score"])) for row in rows]

    async def search_by_keyword(
        self, query: str, options: KeywordSearchOptions
    ) -> list[ScoredChunk]:
        """Full-text search ranked by ``ts_rank``."""
        tsquery = build_tsquery(query)
        if tsquery is None:
            return []

        rows = await self._fetch(
            f"""
            SELECT {_COLUMNS}, ts_rank(fts, to_tsquery('english', $1)) AS score
            FROM {self.table}
            WHERE fts @@ to_tsquery('english', $1)
            ORDER BY score DESC
            LIMIT $2
            """,
            tsquery,
            options.limit,
        )
        return [ScoredChunk(chunk=self._row_to_chunk(row), score=float(row["score"])) for row in rows]

    async def get_chunk(self, chunk_id: str) -> Optional[Chunk]:
        """Retrieve a chunk by id."""
        rows = await self._fetch(f"SELECT {_COLUMNS} FROM {self.table} WHERE id = $1", chunk_id)
        return self._row_to_chunk(rows[0]) if rows else None

    async def get_chunks_by_path(self, path: str) -> list[Chunk]:
        """Retrieve all chunks for a document ordered by start line."""
        rows = await self._fetch(
            f"SELECT {_COLUMNS} FROM {self.table} WHERE path = $1 ORDER BY start_line", path
        )
        return [self._row_to_chunk(row) for row in rows]

    async def list_paths(self) -> list[str]:
        """Return stored document paths."""
        rows = await self._fetch(f"SELECT DISTINCT path FROM {self.table} ORDER BY path")
        return [row["path"] for row in rows]

    async def get_stats(self) -> StorageStats:
        """Return document and chunk counts."""
        rows = await self._fetch(
            f"SELECT COUNT(DISTINCT path) AS files, COUNT(*) AS chunks FROM {self.table}"
        )
        return StorageStats(files=rows[0]["files"], chunks=rows[0]["chunks"])

    async def clear(self) -> None:
        """Delete all chunks."""
        await self._execute(f"DELETE FROM {self.table}")
        logger.info("postgres_storage_cleared", table=self.table)

    def _row_to_chunk(self, row: Any) -> Chunk:
        metadata = row["metadata"]
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        embedding = row["embedding"]
        return Chunk(
            id=row["id"],
            path=row["path"],
            content=row["content"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            metadata=metadata or {},
            embedding=[float(value) for value in embedding] if embedding is not None else None,
        )


def _affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg status string like 'DELETE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0
