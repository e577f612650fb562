"""Indexing pipeline: chunk, embed and store documents.

Why this exists:
- Turns raw document text into stored, embedded chunks
- Skips documents whose chunks are unchanged
- Keeps the index in step with a directory of files

How to use:
    from hybridsearch.pipelines.indexing import IndexingPipeline

    pipeline = IndexingPipeline(chunker, embedding_provider, storage, batch_size=32)
    await pipeline.index_directory(Path("docs"), "**/*.md")
"""

from dataclasses import dataclass
from pathlib import Path

from hybridsearch.core.chunking import MarkdownChunker
from hybridsearch.entities import Chunk
from hybridsearch.observability.logging import get_logger
from hybridsearch.providers.base import EmbeddingProvider, ProviderError
from hybridsearch.storage.base import StorageBackend, StorageError

logger = get_logger(__name__)


@dataclass
class IndexingResult:
    """Result of indexing (or removing) one document."""
    path: str
    chunk_count: int
    updated: bool
    reason: str | None = None
    error: str | None = None


class IndexingPipeline:
    """Pipeline for indexing documents into a storage backend."""

    def __init__(
        self,
        chunker: MarkdownChunker,
        embedding_provider: EmbeddingProvider,
        storage: StorageBackend,
        batch_size: int = 32,
    ):
        """Initialize the indexing pipeline.

        Args:
            chunker: Splits documents into chunks
            embedding_provider: Provider for chunk embeddings
            storage: Chunk storage
            batch_size: Number of chunks per embedding request
        """
        self.chunker = chunker
        self.embedding_provider = embedding_provider
        self.storage = storage
        self.batch_size = batch_size

    async def index_text(self, path: str, text: str, force: bool = False) -> IndexingResult:
        """Index a document's text under a logical path.

        Args:
            path: Logical document identifier
            text: Document content
            force: If True, re-embed even if the chunks haven't changed

        Returns:
            IndexingResult with chunk count and update status

        Raises:
            IndexingError: If embedding or storage fails
        """
        chunks = self.chunker.chunk(text, path)

        try:
            existing = await self.storage.get_chunks_by_path(path)
        except StorageError as e:
            raise IndexingError(f"Failed to read stored chunks for {path}: {e.message}") from e

        unchanged = [(c.id, c.content) for c in existing] == [(c.id, c.content) for c in chunks]
        if existing and unchanged and not force:
            logger.debug("content_unchanged", path=path, chunk_count=len(existing))
            return IndexingResult(
                path=path,
                chunk_count=len(existing),
                updated=False,
                reason="content_unchanged",
            )

        try:
            embedded = await self._embed_chunks(chunks)
        except ProviderError as e:
            logger.error("indexing_failed", path=path, stage="embedding", error=e.message)
            raise IndexingError(f"Failed to embed {path}: {e.message}") from e

        try:
            await self.storage.delete_chunks_by_path(path)
            await self.storage.add_chunks(embedded)
        except StorageError as e:
            logger.error("indexing_failed", path=path, stage="storage", error=e.message)
            await self._restore(path, existing)
            raise IndexingError(f"Failed to store chunks for {path}: {e.message}") from e

        if not existing:
            reason = "new_document"
        elif unchanged:
            reason = "forced"
        else:
            reason = "content_changed"

        logger.info("document_indexed", path=path, chunk_count=len(embedded), reason=reason)

        return IndexingResult(path=path, chunk_count=len(embedded), updated=True, reason=reason)

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[Chunk]:
        """Attach embeddings to every chunk with non-blank content.

        Blank chunks are stored without an embedding.
        """
        pending = [i for i, chunk in enumerate(chunks) if chunk.content.strip()]
        embedded = list(chunks)

        for start in range(0, len(pending), self.batch_size):
            batch = pending[start : start + self.batch_size]
            vectors = await self.embedding_provider.embed_batch([chunks[i].content for i in batch])
            if len(vectors) != len(batch):
                raise ProviderError(
                    message=f"Expected {len(batch)} embeddings, got {len(vectors)}",
                    provider=getattr(self.embedding_provider, "provider_name", "unknown"),
                )
            for i, vector in zip(batch, vectors):
                embedded[i] = chunks[i].model_copy(update={"embedding": list(vector)})

        return embedded

    async def _restore(self, path: str, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        logger.warning("attempting_rollback_after_failure", path=path, chunk_count=len(chunks))
        try:
            await self.storage.delete_chunks_by_path(path)
            await self.storage.add_chunks(chunks)
            logger.info("rollback_successful", path=path)
        except StorageError as rollback_error:
            logger.error("rollback_failed", path=path, error=rollback_error.message)

    async def index_file(
        self, file_path: Path, root: Path | None = None, force: bool = False
    ) -> IndexingResult:
        """Index a file from the filesystem.

        The document path is ``file_path`` relative to ``root`` in POSIX
        form, or ``file_path`` itself when no root is given.

        Raises:
            IndexingError: If the file cannot be read or indexed
        """
        if not file_path.is_file():
            raise IndexingError(f"File not found: {file_path}")

        if root is not None:
            try:
                path = file_path.resolve().relative_to(root.resolve()).as_posix()
            except ValueError as e:
                raise IndexingError(f"{file_path} is not inside {root}") from e
        else:
            path = file_path.as_posix()

        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise IndexingError(f"Failed to read file: {e}") from e

        return await self.index_text(path, text, force=force)

    async def index_directory(
        self, root: Path, pattern: str = "**/*.md", force: bool = False
    ) -> list[IndexingResult]:
        """Index every file under ``root`` matching ``pattern``.

        Stored documents whose files no longer exist are removed. A file that
        fails to index is reported with reason ``"failed"`` and its previously
        stored chunks are kept.

        Raises:
            IndexingError: If root is not a directory or stored paths cannot be listed
        """
        if not root.is_dir():
            raise IndexingError(f"Not a directory: {root}")

        files = sorted(p for p in root.glob(pattern) if p.is_file())
        logger.info("directory_indexing_started", root=str(root), pattern=pattern, file_count=len(files))

        results = []
        for file_path in files:
            try:
                results.append(await self.index_file(file_path, root=root, force=force))
            except IndexingError as e:
                path = file_path.relative_to(root).as_posix()
                logger.error("indexing_failed", path=path, error=str(e))
                results.append(
                    IndexingResult(path=path, chunk_count=0, updated=False, reason="failed", error=str(e))
                )

        on_disk = {result.path for result in results}
        try:
            stale = [path for path in await self.storage.list_paths() if path not in on_disk]
        except StorageError as e:
            raise IndexingError(f"Failed to list stored documents: {e.message}") from e

        for path in stale:
            await self.remove(path)
            results.append(IndexingResult(path=path, chunk_count=0, updated=True, reason="removed"))

        logger.info(
            "directory_indexed",
            root=str(root),
            indexed=sum(1 for r in results if r.updated and r.reason != "removed"),
            unchanged=sum(1 for r in results if r.reason == "content_unchanged"),
            failed=sum(1 for r in results if r.reason == "failed"),
            removed=len(stale),
        )

        return results

    async def remove(self, path: str) -> int:
        """Delete a document's chunks.

        Returns:
            Number of chunks deleted
        """
        try:
            deleted = await self.storage.delete_chunks_by_path(path)
        except StorageError as e:
            raise IndexingError(f"Failed to remove {path}: {e.message}") from e

        logger.info("document_removed", path=path, chunk_count=deleted)
        return deleted


class IndexingError(Exception):
    """Exception raised during document indexing."""

    pass
