"""Search pipeline: the hybrid search engine.

Why this exists:
- Owns every collaborator of one search index (chunker, storage, embedding
  provider, search adapters, score merger, indexing pipeline)
- Runs vector and keyword sub-queries concurrently and fuses their results
- Manages the engine lifecycle (lazy initialization, close)

How to use:
    from hybridsearch.pipelines.search import HybridSearch

    async with await HybridSearch.create(config) as engine:
        await engine.sync()
        results = await engine.search("connection pooling", SearchOptions(max_results=5))
"""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Optional

from hybridsearch.config.schema import AppConfig, MergeStrategy, SearchOptions, StorageType
from hybridsearch.core.chunking import MarkdownChunker
from hybridsearch.entities import IndexStatus, ReadResult, SearchResult
from hybridsearch.observability.logging import get_logger, operation_context
from hybridsearch.pipelines.indexing import IndexingError, IndexingPipeline, IndexingResult
from hybridsearch.providers import create_embedding_provider
from hybridsearch.providers.base import EmbeddingProvider, ProviderError
from hybridsearch.search import KeywordSearch, ScoreMerger, VectorSearch
from hybridsearch.storage import create_storage
from hybridsearch.storage.base import (
    KeywordSearchOptions,
    StorageBackend,
    StorageError,
    VectorSearchOptions,
)

logger = get_logger(__name__)

# The vector sub-query admits candidates down to half the final threshold
VECTOR_MIN_SCORE_FACTOR = 0.5


class EngineState(str, Enum):
    """Lifecycle of a HybridSearch engine."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


class HybridSearch:
    """Hybrid vector + keyword search over a directory of documents.

    Collaborators are built from the config by the provider and storage
    factories unless they are passed in explicitly.
    """

    def __init__(
        self,
        config: AppConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
        storage: Optional[StorageBackend] = None,
    ):
        """Initialize the engine without touching storage.

        Args:
            config: Application configuration
            embedding_provider: Provider override (built from config.embedding otherwise)
            storage: Storage override (built from config.storage otherwise)

        Raises:
            ValueError: If the configured provider or storage type is unknown
        """
        self.config = config
        self.chunker = MarkdownChunker(config.chunking)
        self.embedding_provider = embedding_provider or create_embedding_provider(config.embedding)
        self.storage = storage or create_storage(config.storage)
        self.vector_search = VectorSearch(self.storage)
        self.keyword_search = KeywordSearch(self.storage)
        self.merger = ScoreMerger(config.hybrid)
        self.indexer = IndexingPipeline(
            self.chunker,
            self.embedding_provider,
            self.storage,
            batch_size=config.embedding.batch_size,
        )

        self._state = EngineState.UNINITIALIZED
        self._init_task: Optional[asyncio.Task] = None

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
        storage: Optional[StorageBackend] = None,
    ) -> "HybridSearch":
        """Build and initialize an engine."""
        engine = cls(config, embedding_provider=embedding_provider, storage=storage)
        await engine.initialize()
        return engine

    @property
    def state(self) -> EngineState:
        return self._state

    async def initialize(self) -> None:
        """Initialize storage.

        Safe to call repeatedly; concurrent first callers wait on the same
        initialization.

        Raises:
            SearchError: If the engine is closed or storage fails to initialize
        """
        if self._state is EngineState.READY:
            return
        if self._state is EngineState.CLOSED:
            raise SearchError("Search engine is closed")

        if self._init_task is None:
            self._state = EngineState.INITIALIZING
            self._init_task = asyncio.create_task(self._initialize())

        await asyncio.shield(self._init_task)

    async def _initialize(self) -> None:
        try:
            await self.storage.initialize()
        except StorageError as e:
            self._state = EngineState.UNINITIALIZED
            self._init_task = None
            raise SearchError(f"Failed to initialize storage: {e.message}") from e

        if (
            self.config.storage.store_type == StorageType.POSTGRESQL
            and self.embedding_provider.get_dimension() != self.config.storage.vector_dimension
        ):
            logger.warning(
                "embedding_dimension_mismatch",
                provider_dimension=self.embedding_provider.get_dimension(),
                storage_dimension=self.config.storage.vector_dimension,
            )

        self._state = EngineState.READY
        logger.info(
            "search_engine_ready",
            provider=self.embedding_provider.provider_name,
            model=self.embedding_provider.model_name,
            storage_type=self.storage.storage_type,
        )

    async def _ensure_ready(self) -> None:
        if self._state is EngineState.CLOSED:
            raise SearchError("Search engine is closed")
        if self._state is not EngineState.READY:
            await self.initialize()

    async def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        strategy: Optional[MergeStrategy] = None,
    ) -> list[SearchResult]:
        """Perform hybrid search.

        Args:
            query: Search query, used as-is for keyword search
            options: Result bounds (defaults to config.search)
            strategy: Fusion strategy override (defaults to config.hybrid.strategy)

        Returns:
            Fused results, best first

        Raises:
            SearchError: If embedding the query or either sub-query fails
        """
        with operation_context("search"):
            return await self._search(query, options, strategy)

    async def _search(
        self,
        query: str,
        options: Optional[SearchOptions],
        strategy: Optional[MergeStrategy],
    ) -> list[SearchResult]:
        await self._ensure_ready()
        options = options or self.config.search
        strategy = strategy or self.config.hybrid.strategy

        logger.info(
            "search_started",
            query=query,
            max_results=options.max_results,
            min_score=options.min_score,
            strategy=strategy.value,
        )

        try:
            query_vector = await self.embedding_provider.embed_text(query)
        except ProviderError as e:
            logger.error("search_failed", query=query, stage="embedding", error=e.message)
            raise SearchError(f"Failed to embed query: {e.message}") from e

        # A failing sub-query cancels its sibling
        try:
            async with asyncio.TaskGroup() as group:
                vector_task = group.create_task(
                    self.vector_search.search(
                        query_vector,
                        VectorSearchOptions(
                            limit=options.max_results,
                            min_score=options.min_score * VECTOR_MIN_SCORE_FACTOR,
                        ),
                    )
                )
                keyword_task = group.create_task(
                    self.keyword_search.search(query, KeywordSearchOptions(limit=options.max_results))
                )
        except ExceptionGroup as group_error:
            storage_errors = group_error.subgroup(StorageError)
            if storage_errors is None:
                raise
            e = storage_errors.exceptions[0]
            logger.error("search_failed", query=query, stage="storage", error=e.message)
            raise SearchError(f"Search query failed: {e.message}") from e

        vector_results, keyword_results = vector_task.result(), keyword_task.result()

        if strategy == MergeStrategy.RRF:
            results = self.merger.merge_with_rrf(vector_results, keyword_results, options)
        else:
            results = self.merger.merge(vector_results, keyword_results, options)

        logger.info(
            "search_completed",
            query=query,
            vector_hits=len(vector_results),
            keyword_hits=len(keyword_results),
            result_count=len(results),
        )

        return results

    async def search_vector(
        self, query_vector: list[float], options: Optional[SearchOptions] = None
    ) -> list[SearchResult]:
        """Vector-only search with a precomputed query embedding (unmerged)."""
        await self._ensure_ready()
        options = options or self.config.search
        try:
            return await self.vector_search.search(
                query_vector,
                VectorSearchOptions(limit=options.max_results, min_score=options.min_score),
            )
        except StorageError as e:
            raise SearchError(f"Vector search failed: {e.message}") from e

    async def search_keyword(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> list[SearchResult]:
        """Keyword-only search (unmerged)."""
        await self._ensure_ready()
        options = options or self.config.search
        try:
            return await self.keyword_search.search(
                query, KeywordSearchOptions(limit=options.max_results)
            )
        except StorageError as e:
            raise SearchError(f"Keyword search failed: {e.message}") from e

    async def index_text(self, path: str, text: str, force: bool = False) -> IndexingResult:
        """Index text under a logical document path."""
        await self._ensure_ready()
        try:
            return await self.indexer.index_text(path, text, force=force)
        except IndexingError as e:
            raise SearchError(str(e)) from e

    async def index_file(self, path: str, force: bool = False) -> IndexingResult:
        """Index one file, given relative to config.docs_dir."""
        await self._ensure_ready()
        file_path = self._resolve(path)
        try:
            return await self.indexer.index_file(file_path, root=self.config.docs_dir, force=force)
        except IndexingError as e:
            raise SearchError(str(e)) from e

    async def sync(self, force: bool = False) -> list[IndexingResult]:
        """Bring the index in step with config.docs_dir."""
        await self._ensure_ready()
        with operation_context("sync", docs_dir=str(self.config.docs_dir)):
            try:
                return await self.indexer.index_directory(
                    self.config.docs_dir, self.config.include, force=force
                )
            except IndexingError as e:
                raise SearchError(str(e)) from e

    async def remove(self, path: str) -> int:
        """Remove a document from the index."""
        await self._ensure_ready()
        try:
            return await self.indexer.remove(path)
        except IndexingError as e:
            raise SearchError(str(e)) from e

    async def read_file(
        self, path: str, from_line: int = 1, lines: Optional[int] = None
    ) -> ReadResult:
        """Read a slice of a document under config.docs_dir.

        Args:
            path: Document path relative to config.docs_dir
            from_line: 1-based first line to return
            lines: Number of lines to return (all remaining when None)

        Raises:
            SearchError: If the path escapes the directory or cannot be read
        """
        await self._ensure_ready()
        if from_line < 1:
            raise SearchError(f"from_line must be >= 1, got {from_line}")
        if lines is not None and lines < 0:
            raise SearchError(f"lines must be >= 0, got {lines}")

        file_path = self._resolve(path)
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SearchError(f"Failed to read {path}: {e}") from e

        all_lines = content.split("\n")
        start = from_line - 1
        end = len(all_lines) if lines is None else start + lines
        return ReadResult(path=path, text="\n".join(all_lines[start:end]))

    def _resolve(self, path: str) -> Path:
        root = self.config.docs_dir.resolve()
        candidate = (root / path).resolve()
        if not candidate.is_relative_to(root):
            raise SearchError(f"Path escapes the document directory: {path}")
        return candidate

    async def status(self) -> IndexStatus:
        """Report index size and the collaborators serving it."""
        await self._ensure_ready()
        try:
            stats = await self.storage.get_stats()
        except StorageError as e:
            raise SearchError(f"Failed to read index stats: {e.message}") from e

        return IndexStatus(
            files=stats.files,
            chunks=stats.chunks,
            provider=self.embedding_provider.provider_name,
            model=self.embedding_provider.model_name,
            storage_type=self.storage.storage_type,
        )

    async def clear(self) -> None:
        """Delete every indexed chunk."""
        await self._ensure_ready()
        try:
            await self.storage.clear()
        except StorageError as e:
            raise SearchError(f"Failed to clear index: {e.message}") from e
        logger.info("index_cleared")

    async def close(self) -> None:
        """Close storage and the embedding provider. Idempotent."""
        if self._state is EngineState.CLOSED:
            return
        if self._init_task is not None and not self._init_task.done():
            await asyncio.wait([self._init_task])

        self._state = EngineState.CLOSED
        try:
            await self.storage.close()
        finally:
            await self.embedding_provider.close()
        logger.info("search_engine_closed")

    async def __aenter__(self) -> "HybridSearch":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class SearchError(Exception):
    """Exception raised by search engine operations."""

    pass
