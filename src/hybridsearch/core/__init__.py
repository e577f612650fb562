"""Core algorithms: document chunking."""

from hybridsearch.core.chunking import MarkdownChunker, count_tokens, extract_metadata

__all__ = ["MarkdownChunker", "count_tokens", "extract_metadata"]
