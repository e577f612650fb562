"""Chunk entity - represents a contiguous line span of a document."""

from typing import Any

from pydantic import BaseModel, Field, field_validator


def make_chunk_id(path: str, start_line: int) -> str:
    """Build the deterministic chunk id for a (path, start line) pair."""
    return f"{path}:{start_line}"


class Chunk(BaseModel):
    """A span of a source document suitable for embedding.

    Documents are split into line-aligned chunks so that search results can
    point back to an exact line range. The id is derived from the path and
    start line, so re-chunking the same boundaries is idempotent.
    """

    id: str = Field(..., description="Deterministic id: '<path>:<start_line>'")
    path: str = Field(..., description="Logical document identifier (relative path)")
    content: str = Field(default="", description="Newline-joined text of the span")
    start_line: int = Field(..., ge=1, description="1-based first line, inclusive")
    end_line: int = Field(..., ge=1, description="1-based last line, inclusive")
    metadata: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None

    @field_validator("end_line")
    @classmethod
    def end_not_before_start(cls, v: int, info: Any) -> int:
        if "start_line" in info.data and v < info.data["start_line"]:
            raise ValueError("end_line must not be before start_line")
        return v

    @property
    def title(self) -> str | None:
        return self.metadata.get("title")

    @property
    def headers(self) -> list[str] | None:
        return self.metadata.get("headers")


class ScoredChunk(BaseModel):
    """A chunk returned by a storage query with the backend's native score.

    The score is opaque: cosine similarity for vector queries, a full-text
    rank for keyword queries. Only the ordering of a result list is relied on.
    """

    chunk: Chunk
    score: float = 0.0
