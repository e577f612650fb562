"""Markdown chunking utilities.

Why this exists:
- Splits documents into embedding-sized, line-aligned chunks
- Maintains context with overlapping windows
- Records header structure so results can show where they came from

Chunks never split a line: a window closes on a line boundary once the next
line would push it over the token budget, and the trailing lines of the
closed window (up to the overlap budget) seed the next one.
"""

import re
from collections.abc import Sequence
from typing import Any

from hybridsearch.config.schema import ChunkingConfig
from hybridsearch.entities import Chunk, make_chunk_id
from hybridsearch.observability.logging import get_logger

logger = get_logger(__name__)

HEADER_PATTERN = re.compile(r"^(#{1,6})\s+(\S.*)$")


def count_tokens(text: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(text.split())


def extract_metadata(lines: Sequence[str]) -> dict[str, Any]:
    """Collect the title and header lines of a chunk.

    The first level-1 header becomes ``title``; every header line, trimmed,
    is listed under ``headers`` in encounter order. Keys are omitted when
    nothing matched.
    """
    metadata: dict[str, Any] = {}
    headers: list[str] = []

    for line in lines:
        match = HEADER_PATTERN.match(line.rstrip())
        if not match:
            continue

        level = len(match.group(1))
        if level == 1 and "title" not in metadata:
            metadata["title"] = match.group(2).strip()
        headers.append(line.strip())

    if headers:
        metadata["headers"] = headers

    return metadata


class MarkdownChunker:
    """Token-budgeted sliding-window chunker for Markdown and plain text.

    Example:
        chunker = MarkdownChunker(ChunkingConfig(tokens_per_chunk=256, overlap_tokens=32))
        chunks = chunker.chunk(text, "guides/setup.md")
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    @property
    def tokens_per_chunk(self) -> int:
        return self.config.tokens_per_chunk

    @property
    def overlap_tokens(self) -> int:
        return self.config.overlap_tokens

    def chunk(self, text: str, path: str) -> list[Chunk]:
        """Split text into overlapping line-aligned chunks.

        Args:
            text: Document content
            path: Logical document identifier stored on every chunk

        Returns:
            Chunks in document order; together they cover every line
        """
        lines = text.split("\n")
        chunks: list[Chunk] = []

        buffer: list[str] = []
        start_line = 1
        buffer_tokens = 0

        for index, line in enumerate(lines):
            line_tokens = count_tokens(line)

            if buffer_tokens + line_tokens > self.tokens_per_chunk and buffer:
                # The buffer ends on line `index` (1-based numbering)
                chunks.append(self._build_chunk(path, buffer, start_line, index))

                overlap = self._overlap_lines(buffer)
                buffer = overlap
                start_line = index - len(overlap) + 1
                buffer_tokens = sum(count_tokens(item) for item in buffer)

            buffer.append(line)
            buffer_tokens += line_tokens

        if buffer:
            chunks.append(self._build_chunk(path, buffer, start_line, len(lines)))

        logger.debug(
            "document_chunked",
            path=path,
            line_count=len(lines),
            chunk_count=len(chunks),
            tokens_per_chunk=self.tokens_per_chunk,
            overlap_tokens=self.overlap_tokens,
        )

        return chunks

    def _overlap_lines(self, buffer: list[str]) -> list[str]:
        """Trailing lines of a closed buffer that fit the overlap budget.

        The first line of the buffer is never included so the next chunk
        always starts after the previous one.
        """
        overlap: list[str] = []
        token_count = 0

        for line in reversed(buffer[1:]):
            line_tokens = count_tokens(line)
            if token_count + line_tokens > self.overlap_tokens:
                break
            overlap.insert(0, line)
            token_count += line_tokens

        return overlap

    def _build_chunk(self, path: str, lines: list[str], start_line: int, end_line: int) -> Chunk:
        return Chunk(
            id=make_chunk_id(path, start_line),
            path=path,
            content="\n".join(lines),
            start_line=start_line,
            end_line=end_line,
            metadata=extract_metadata(lines),
        )
